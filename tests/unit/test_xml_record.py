"""Unit tests for XML record access."""

import errno
import xml.etree.ElementTree as ET
from pathlib import Path
from unittest import mock

import pytest

from uniqueifier.content import xml_record
from uniqueifier.content.xml_record import XmlRecord, has_seconds, is_xml_file
from uniqueifier.errors import ContentError

from conftest import BUCKET, record_xml


@pytest.fixture
def record_path(tmp_path):
    path = tmp_path / "record.xml"
    path.write_text(record_xml(), encoding="utf-8")
    return path


class TestReadFields:
    """Field extraction."""

    def test_reads_patient_and_event_date(self, record_path):
        record = XmlRecord.load(record_path)

        assert record.patient_code == "P1"
        assert record.event_date == BUCKET

    def test_first_element_wins(self, tmp_path):
        """Only the first Patient/Event elements in document order count."""
        path = tmp_path / "multi.xml"
        path.write_text(
            '<Root><Patient PatientCode="A"/><Patient PatientCode="B"/>'
            '<Visit><Event EventDate="2016-01-01T09:00"/></Visit>'
            '<Event EventDate="2016-01-01T11:00"/></Root>'
        )

        record = XmlRecord.load(path)

        assert record.patient_code == "A"
        assert record.event_date == "2016-01-01T09:00"

    def test_namespaced_elements(self, tmp_path):
        """Elements are matched by local name."""
        path = tmp_path / "ns.xml"
        path.write_text(
            '<r:Record xmlns:r="urn:ward"><r:Patient PatientCode="P9"/>'
            '<r:Event EventDate="2016-01-01T10:15"/></r:Record>'
        )

        record = XmlRecord.load(path)
        record.event_date = "2016-01-01T10:15:00"
        target = tmp_path / "out.xml"
        record.save(target)

        text = target.read_text()
        assert "r:Patient" in text
        assert XmlRecord.load(target).event_date == "2016-01-01T10:15:00"

    def test_generated_namespace_prefix(self, tmp_path):
        """Records using ElementTree-style ns0 prefixes are readable and writable."""
        path = tmp_path / "ns0.xml"
        path.write_text(
            '<ns0:Record xmlns:ns0="urn:ward"><ns0:Patient PatientCode="P1"/>'
            '<ns0:Event EventDate="2016-01-01T10:15"/></ns0:Record>'
        )

        record = XmlRecord.load(path)
        assert record.patient_code == "P1"
        record.event_date = "2016-01-01T10:15:00"
        target = tmp_path / "out.xml"
        record.save(target)

        saved = XmlRecord.load(target)
        assert saved.event_date == "2016-01-01T10:15:00"
        assert saved.root.tag == "{urn:ward}Record"

    def test_missing_patient(self, tmp_path):
        path = tmp_path / "no_patient.xml"
        path.write_text('<Record><Event EventDate="2016-01-01T10:15"/></Record>')

        with pytest.raises(ContentError):
            XmlRecord.load(path).patient_code

    def test_missing_event_attribute(self, tmp_path):
        path = tmp_path / "no_date.xml"
        path.write_text('<Record><Patient PatientCode="P1"/><Event Type="Visit"/></Record>')

        with pytest.raises(ContentError):
            XmlRecord.load(path).event_date

    def test_empty_attribute_is_missing(self, tmp_path):
        path = tmp_path / "empty.xml"
        path.write_text('<Record><Patient PatientCode=""/><Event EventDate="2016-01-01T10:15"/></Record>')

        with pytest.raises(ContentError):
            XmlRecord.load(path).patient_code

    def test_malformed_xml(self, tmp_path):
        path = tmp_path / "broken.xml"
        path.write_text("<Record><Patient PatientCode='P1'>")

        with pytest.raises(ContentError):
            XmlRecord.load(path)


class TestWrite:
    """Rewriting the event date."""

    def test_save_updates_event_date(self, record_path, tmp_path):
        record = XmlRecord.load(record_path)
        record.event_date = f"{BUCKET}:07"

        target = tmp_path / "out.xml"
        record.save(target)

        saved = XmlRecord.load(target)
        assert saved.event_date == f"{BUCKET}:07"
        assert saved.patient_code == "P1"

    def test_save_keeps_declaration_comments_and_attributes(self, record_path, tmp_path):
        record = XmlRecord.load(record_path)
        record.event_date = f"{BUCKET}:00"

        target = tmp_path / "out.xml"
        record.save(target)

        text = target.read_text(encoding="utf-8")
        assert text.startswith("<?xml")
        assert "exported by the ward system" in text
        assert 'Type="Visit"' in text
        assert 'Name="Test Patient"' in text

    def test_save_without_declaration(self, tmp_path):
        path = tmp_path / "plain.xml"
        path.write_text('<Record><Patient PatientCode="P1"/><Event EventDate="2016-01-01T10:15"/></Record>')

        target = tmp_path / "out.xml"
        XmlRecord.load(path).save(target)

        assert not target.read_text().startswith("<?xml")

    def test_save_leaves_no_temporary_files(self, record_path, tmp_path):
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        XmlRecord.load(record_path).save(out_dir / "record.xml")

        assert [p.name for p in out_dir.iterdir()] == ["record.xml"]

    def test_save_never_replaces_existing_file(self, record_path, tmp_path):
        target = tmp_path / "out.xml"
        target.write_text("third party")

        with pytest.raises(FileExistsError):
            XmlRecord.load(record_path).save(target)

        assert target.read_text() == "third party"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["out.xml", "record.xml"]

    def test_save_stages_in_given_directory(self, record_path, tmp_path):
        """The temporary file lives in the staging directory, not next to the target."""
        out_dir = tmp_path / "out"
        staging = tmp_path / "staging"
        out_dir.mkdir()
        staging.mkdir()
        written = []
        real_write = ET.ElementTree.write

        def recording_write(tree, file, *args, **kwargs):
            written.append(Path(file).parent)
            return real_write(tree, file, *args, **kwargs)

        with mock.patch.object(ET.ElementTree, "write", recording_write):
            XmlRecord.load(record_path).save(out_dir / "record.xml", staging_directory=staging)

        assert written == [staging]
        assert [p.name for p in out_dir.iterdir()] == ["record.xml"]
        assert list(staging.iterdir()) == []

    def test_save_across_filesystems(self, record_path, tmp_path, monkeypatch):
        """When linking is impossible the file is copied with exclusive create."""
        def no_link(src, dst):
            raise OSError(errno.EXDEV, "Invalid cross-device link")

        monkeypatch.setattr(xml_record.os, "link", no_link)
        target = tmp_path / "out.xml"

        XmlRecord.load(record_path).save(target)

        assert XmlRecord.load(target).patient_code == "P1"
        with pytest.raises(FileExistsError):
            XmlRecord.load(record_path).save(target)


class TestHelpers:
    """Module-level helpers."""

    @pytest.mark.parametrize("value,expected", [
        ("2016-01-01T10:15", False),
        ("2016-01-01T10:15:00", True),
        ("2016-01-01T10:15:59.5", True),
        ("2016-01-01", False),
    ])
    def test_has_seconds(self, value, expected):
        assert has_seconds(value) is expected

    @pytest.mark.parametrize("name,expected", [
        ("a.xml", True),
        ("A.XML", True),
        ("a.Xml", True),
        ("a.txt", False),
        ("xml", False),
        ("a.xml.bak", False),
    ])
    def test_is_xml_file(self, name, expected):
        assert is_xml_file(name) is expected
