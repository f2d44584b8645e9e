"""XML record access for the two fields the uniqueifier patches.

A record carries a ``Patient`` element with a ``PatientCode`` attribute and an
``Event`` element with an ``EventDate`` attribute at minute precision, e.g.
``2016-01-01T10:15``. The first matching element in document order wins.
"""
from __future__ import annotations

import errno
import io
import os
import re
import shutil
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional, Union

from uniqueifier.errors import ContentError

PATIENT_ELEMENT = "Patient"
PATIENT_ATTRIBUTE = "PatientCode"
EVENT_ELEMENT = "Event"
EVENT_ATTRIBUTE = "EventDate"

_DECLARATION_RE = re.compile(rb"^\s*<\?xml[^>]*?encoding=[\"']([A-Za-z0-9._-]+)[\"']")

# Prefixes ElementTree generates itself and refuses to register
_RESERVED_PREFIX_RE = re.compile(r"^ns\d+$")


def is_xml_file(path: Union[str, Path]) -> bool:
    """Check the extension, case-insensitively."""
    return Path(path).suffix.lower() == ".xml"


def has_seconds(event_date: str) -> bool:
    """An event date with more than one colon already carries seconds."""
    return event_date.count(":") > 1


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _register_namespaces(raw: bytes) -> None:
    """Keep the document's namespace prefixes when it is written back."""
    for _, (prefix, uri) in ET.iterparse(io.BytesIO(raw), events=("start-ns",)):
        # The default namespace cannot be registered without qualifying attributes
        if prefix and not _RESERVED_PREFIX_RE.match(prefix):
            ET.register_namespace(prefix, uri)


class XmlRecord:
    """A parsed XML record whose event date can be rewritten in place."""

    def __init__(
        self,
        tree: ET.ElementTree,
        source: Optional[Path] = None,
        encoding: str = "utf-8",
        has_declaration: bool = False,
    ):
        self.tree = tree
        self.source = source
        self.encoding = encoding
        self.has_declaration = has_declaration

    @classmethod
    def load(cls, path: Union[str, Path]) -> "XmlRecord":
        """Parse a record from disk.

        Raises:
            ContentError: the file is not well-formed XML
        """
        path = Path(path)
        raw = path.read_bytes()

        try:
            _register_namespaces(raw)
            parser = ET.XMLParser(
                target=ET.TreeBuilder(insert_comments=True, insert_pis=True)
            )
            root = ET.fromstring(raw, parser=parser)
        except ET.ParseError as e:
            raise ContentError(f"XML file could not be parsed ({e})", str(path)) from e

        declaration = _DECLARATION_RE.match(raw)
        has_declaration = raw.lstrip().startswith(b"<?xml")
        encoding = declaration.group(1).decode("ascii") if declaration else "utf-8"

        return cls(
            ET.ElementTree(root),
            source=path,
            encoding=encoding,
            has_declaration=has_declaration,
        )

    @property
    def root(self) -> ET.Element:
        return self.tree.getroot()

    def _find(self, element_name: str, attribute_name: str) -> Optional[ET.Element]:
        """First element with the local name, if it has a non-empty attribute."""
        for element in self.root.iter():
            # Comments and processing instructions have callable tags
            if not isinstance(element.tag, str):
                continue
            if _local_name(element.tag) == element_name:
                return element if element.get(attribute_name) else None
        return None

    def _require(self, element_name: str, attribute_name: str) -> ET.Element:
        element = self._find(element_name, attribute_name)
        if element is None:
            raise ContentError(
                f"XML file has no {element_name}/@{attribute_name}",
                str(self.source) if self.source else None,
            )
        return element

    @property
    def patient_code(self) -> str:
        return self._require(PATIENT_ELEMENT, PATIENT_ATTRIBUTE).get(PATIENT_ATTRIBUTE)

    @property
    def event_date(self) -> str:
        return self._require(EVENT_ELEMENT, EVENT_ATTRIBUTE).get(EVENT_ATTRIBUTE)

    @event_date.setter
    def event_date(self, value: str) -> None:
        self._require(EVENT_ELEMENT, EVENT_ATTRIBUTE).set(EVENT_ATTRIBUTE, value)

    def save(
        self,
        path: Union[str, Path],
        staging_directory: Optional[Union[str, Path]] = None,
    ) -> None:
        """Write the record to ``path`` without ever replacing an existing file.

        The document is written to a temporary file in ``staging_directory``
        (next to ``path`` when omitted) and then linked into place, so readers
        of ``path``'s directory never see a partial file.

        Raises:
            FileExistsError: ``path`` already exists
        """
        path = Path(path)
        staging = Path(staging_directory) if staging_directory else path.parent
        tmp_path = staging / f".{path.name}.{os.getpid()}.tmp"
        try:
            self.tree.write(
                tmp_path,
                encoding=self.encoding,
                xml_declaration=self.has_declaration,
            )
            _publish(tmp_path, path)
        finally:
            tmp_path.unlink(missing_ok=True)


def _publish(tmp_path: Path, path: Path) -> None:
    """Make ``tmp_path`` visible as ``path``; fails if ``path`` exists."""
    try:
        os.link(tmp_path, path)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        # Staging is on another filesystem
        with open(tmp_path, "rb") as src, open(path, "xb") as dst:
            shutil.copyfileobj(src, dst)
