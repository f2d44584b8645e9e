"""Uniquifies minute-precision event dates of XML records moving between directories."""

__version__ = "1.0.0"
