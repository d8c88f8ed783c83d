"""Tests for reading parts out of the deck container."""

import pytest

from deckimport.exceptions import InvalidArchiveError, MalformedPartError
from deckimport.parser.archive import NAMESPACES, ArchiveReader


class TestArchiveReader:
    """Tests for ArchiveReader class."""

    @pytest.fixture
    def archive(self, deck) -> ArchiveReader:
        deck.add_slide()
        deck.parts["ppt/notes.txt"] = "café notes".encode("utf-8")
        deck.parts["ppt/slides/slide2.xml"] = b"<p:sld><unclosed"
        return ArchiveReader(deck.build())

    def test_not_a_zip(self):
        with pytest.raises(InvalidArchiveError):
            ArchiveReader(b"plain text, not a zip")

    def test_has_and_names(self, archive):
        assert archive.has("ppt/presentation.xml")
        assert not archive.has("ppt/slides/slide9.xml")
        assert "ppt/slides/slide1.xml" in archive.names

    def test_read_text(self, archive):
        assert archive.read_text("ppt/notes.txt") == "café notes"
        assert archive.read_text("ppt/presentation.xml").lstrip().startswith("<?xml")

    def test_missing_part_is_none(self, archive):
        assert archive.read_text("ppt/missing.xml") is None
        assert archive.read_bytes("ppt/missing.xml") is None
        assert archive.read_xml("ppt/missing.xml") is None

    def test_read_xml(self, archive):
        root = archive.read_xml("ppt/presentation.xml")

        assert root.tag == f"{{{NAMESPACES['p']}}}presentation"

    def test_malformed_part(self, archive, caplog):
        with pytest.raises(MalformedPartError) as excinfo:
            archive.parse_xml_strict("ppt/slides/slide2.xml")

        assert excinfo.value.context == {"part": "ppt/slides/slide2.xml"}
        assert archive.read_xml("ppt/slides/slide2.xml") is None
        assert "ppt/slides/slide2.xml" in caplog.text
