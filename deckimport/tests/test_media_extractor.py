"""Tests for media classification and extraction."""

import base64
from unittest import mock

import pytest

from deckimport.dsl.schema import MediaBlob, MediaKind
from deckimport.parser.archive import ArchiveReader
from deckimport.parser.media_extractor import MediaExtractor, is_audio_filename, kinds_for


class TestClassification:
    """Tests for extension based classification."""

    @pytest.mark.parametrize(
        "filename, kinds",
        [
            ("image1.png", (MediaKind.IMAGE,)),
            ("PHOTO.JPEG", (MediaKind.IMAGE,)),
            ("clip.mov", (MediaKind.VIDEO,)),
            ("clip.mp4", (MediaKind.VIDEO, MediaKind.AUDIO)),
            ("song.mp3", (MediaKind.AUDIO,)),
            ("voice.m4a", (MediaKind.AUDIO,)),
            ("notes.txt", ()),
            ("noextension", ()),
        ],
    )
    def test_kinds_for(self, filename, kinds):
        assert kinds_for(filename) == kinds

    def test_is_audio_filename(self):
        assert is_audio_filename("clip.mp4")
        assert is_audio_filename("a.wav")
        assert not is_audio_filename("a.png")


class TestMediaExtractor:
    """Tests for MediaExtractor class."""

    @pytest.fixture
    def archive(self, deck, png_bytes) -> ArchiveReader:
        deck.add_media("image1.png", png_bytes)
        deck.add_media("clip.mp4", b"mp4-bytes")
        deck.add_media("song.mp3", b"mp3-bytes")
        deck.add_media("readme.txt", b"ignored")
        return ArchiveReader(deck.build())

    @pytest.fixture
    def extractor(self) -> MediaExtractor:
        return MediaExtractor()

    def test_extract_skips_unsupported_files(self, extractor, archive):
        entries = extractor.extract(archive)

        assert sorted(entries) == ["clip.mp4", "image1.png", "song.mp3"]
        assert entries["image1.png"].path == "ppt/media/image1.png"

    def test_get_checks_kind(self, extractor, archive):
        extractor.extract(archive)

        assert extractor.get("image1.png", MediaKind.IMAGE) is not None
        assert extractor.get("image1.png", MediaKind.VIDEO) is None
        assert extractor.get("missing.png", MediaKind.IMAGE) is None
        assert extractor.get(None, MediaKind.IMAGE) is None

    def test_mp4_is_video_and_audio(self, extractor, archive):
        extractor.extract(archive)
        entry = extractor.get("clip.mp4", MediaKind.AUDIO)

        assert entry is extractor.get("clip.mp4", MediaKind.VIDEO)
        assert entry.mime_type(MediaKind.VIDEO) == "video/mp4"
        assert entry.mime_type(MediaKind.AUDIO) == "audio/mp4"
        assert entry.data_uri(MediaKind.AUDIO).startswith("data:audio/mp4;base64,")

    def test_data_uri(self, extractor, archive, png_bytes):
        extractor.extract(archive)
        entry = extractor.get("image1.png", MediaKind.IMAGE)

        expected = "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")
        assert entry.data_uri() == expected
        assert entry.data_uri() is entry.data_uri()

    def test_extract_cached_for_same_archive(self, extractor, deck):
        deck.add_media("song.mp3", b"mp3-bytes")
        buffer = deck.build()

        with mock.patch.object(extractor, "_scan", wraps=extractor._scan) as scan:
            first = extractor.extract(ArchiveReader(buffer))
            second = extractor.extract(ArchiveReader(buffer))

        assert scan.call_count == 1
        assert first is second

    def test_blobs(self, extractor, archive, png_bytes):
        extractor.extract(archive)

        blobs = extractor.blobs()

        assert blobs["image1.png"] == MediaBlob(blob=png_bytes, mime_type="image/png")
        assert blobs["song.mp3"].mime_type == "audio/mpeg"
        assert blobs["clip.mp4"].mime_type == "video/mp4"

    def test_clear(self, extractor, archive):
        extractor.extract(archive)

        extractor.clear()

        assert extractor.blobs() == {}

    def test_custom_media_dir(self, deck):
        deck.parts["ppt/assets/logo.gif"] = b"gif"
        extractor = MediaExtractor("ppt/assets")

        assert list(extractor.extract(ArchiveReader(deck.build()))) == ["logo.gif"]
