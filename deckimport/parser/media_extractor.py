"""Extract media binaries from the deck's media directory.

Entries are classified by extension. ``.mp4`` is eligible as both video
and audio; the referencing element decides which one it is.
"""

import base64
import logging
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Optional

from deckimport.dsl.schema import MediaBlob, MediaKind
from deckimport.parser.archive import ArchiveReader


logger = logging.getLogger(__name__)

# Extension -> mime type, per media kind
MIME_TYPES: dict[MediaKind, dict[str, str]] = {
    MediaKind.IMAGE: {
        "png": "image/png",
        "jpg": "image/jpeg",
        "jpeg": "image/jpeg",
        "gif": "image/gif",
        "bmp": "image/bmp",
    },
    MediaKind.VIDEO: {
        "mp4": "video/mp4",
        "mov": "video/quicktime",
        "avi": "video/x-msvideo",
        "wmv": "video/x-ms-wmv",
    },
    MediaKind.AUDIO: {
        "mp3": "audio/mpeg",
        "wav": "audio/wav",
        "m4a": "audio/mp4",
        "mp4": "audio/mp4",
        "aac": "audio/aac",
        "wma": "audio/x-ms-wma",
        "ogg": "audio/ogg",
    },
}


def extension_of(filename: str) -> str:
    return PurePosixPath(filename).suffix.lstrip(".").lower()


def kinds_for(filename: str) -> tuple[MediaKind, ...]:
    """Media kinds a filename is eligible for, in image/video/audio order."""
    ext = extension_of(filename)
    return tuple(kind for kind, types in MIME_TYPES.items() if ext in types)


def is_audio_filename(filename: str) -> bool:
    return MediaKind.AUDIO in kinds_for(filename)


@dataclass
class MediaEntry:
    """One media file and its encodings."""

    filename: str
    path: str
    data: bytes
    kinds: tuple[MediaKind, ...]
    _data_uris: dict[MediaKind, str] = field(default_factory=dict, repr=False)

    @property
    def primary_kind(self) -> MediaKind:
        return self.kinds[0]

    def mime_type(self, kind: Optional[MediaKind] = None) -> str:
        kind = kind or self.primary_kind
        return MIME_TYPES[kind][extension_of(self.filename)]

    def data_uri(self, kind: Optional[MediaKind] = None) -> str:
        """Inline ``data:`` URI, encoded once per kind."""
        kind = kind or self.primary_kind
        uri = self._data_uris.get(kind)
        if uri is None:
            encoded = base64.b64encode(self.data).decode("ascii")
            uri = f"data:{self.mime_type(kind)};base64,{encoded}"
            self._data_uris[kind] = uri
        return uri


class MediaExtractor:
    """Scans and caches the media of one archive."""

    def __init__(self, media_dir: str = "ppt/media/") -> None:
        self.media_dir = media_dir if media_dir.endswith("/") else f"{media_dir}/"
        self._entries: dict[str, MediaEntry] = {}
        self._digest: Optional[str] = None

    def extract(self, archive: ArchiveReader) -> dict[str, MediaEntry]:
        """Scan the media directory.

        Repeated calls for the same archive contents return the cached
        entries without scanning again.

        Returns:
            Mapping of media filename to entry.
        """
        if self._digest == archive.digest:
            return self._entries

        self._entries = self._scan(archive)
        self._digest = archive.digest
        logger.debug(f"Extracted {len(self._entries)} media file(s)")
        return self._entries

    def _scan(self, archive: ArchiveReader) -> dict[str, MediaEntry]:
        entries: dict[str, MediaEntry] = {}
        for path in archive.names:
            if not path.startswith(self.media_dir) or path.endswith("/"):
                continue
            filename = PurePosixPath(path).name
            kinds = kinds_for(filename)
            if not kinds:
                logger.debug(f"Skipping unsupported media file {path}")
                continue
            data = archive.read_bytes(path)
            if data is None:
                continue
            entries[filename] = MediaEntry(filename=filename, path=path, data=data, kinds=kinds)
        return entries

    def get(self, filename: Optional[str], kind: MediaKind) -> Optional[MediaEntry]:
        """Entry for a filename if it is eligible for ``kind``."""
        if not filename:
            return None
        entry = self._entries.get(filename)
        if entry is None or kind not in entry.kinds:
            return None
        return entry

    def blobs(self) -> dict[str, MediaBlob]:
        """Raw payloads of every extracted file, for upload by the caller."""
        return {
            filename: MediaBlob(blob=entry.data, mime_type=entry.mime_type())
            for filename, entry in self._entries.items()
        }

    def clear(self) -> None:
        self._entries = {}
        self._digest = None
