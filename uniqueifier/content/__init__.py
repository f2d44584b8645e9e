"""Structured content readers and writers."""

from .xml_record import XmlRecord, has_seconds, is_xml_file

__all__ = ["XmlRecord", "has_seconds", "is_xml_file"]
