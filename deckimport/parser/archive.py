"""Read parts out of the deck's ZIP container.

A missing part is never an error here: readers return None and leave the
fallback decision to the caller. Only a buffer that is not a ZIP at all
raises.
"""

import hashlib
import io
import logging
import zipfile
from typing import Optional

from lxml import etree

from deckimport.exceptions import InvalidArchiveError, MalformedPartError


logger = logging.getLogger(__name__)

# XML namespaces for Office Open XML
NAMESPACES = {
    "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
    "p": "http://schemas.openxmlformats.org/presentationml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "p14": "http://schemas.microsoft.com/office/powerpoint/2010/main",
    "rel": "http://schemas.openxmlformats.org/package/2006/relationships",
}

R_EMBED = f"{{{NAMESPACES['r']}}}embed"
R_LINK = f"{{{NAMESPACES['r']}}}link"
R_ID = f"{{{NAMESPACES['r']}}}id"

_XML_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=True)


class ArchiveReader:
    """Random access to the parts of one deck archive."""

    def __init__(self, buffer: bytes) -> None:
        """Open the archive.

        Args:
            buffer: Raw bytes of the .pptx container.

        Raises:
            InvalidArchiveError: If the buffer is not a ZIP archive.
        """
        try:
            self._zip = zipfile.ZipFile(io.BytesIO(buffer))
        except (zipfile.BadZipFile, TypeError, ValueError) as e:
            raise InvalidArchiveError("Input is not a valid presentation archive", cause=e) from e

        self._names = set(self._zip.namelist())
        self.digest = hashlib.sha256(buffer).hexdigest()

    @property
    def names(self) -> list[str]:
        """All part names, sorted."""
        return sorted(self._names)

    def has(self, path: str) -> bool:
        return path in self._names

    def read_bytes(self, path: str) -> Optional[bytes]:
        """Read a part as raw bytes, or None if it is absent or unreadable."""
        if path not in self._names:
            return None
        try:
            return self._zip.read(path)
        except (zipfile.BadZipFile, KeyError, OSError, RuntimeError) as e:
            logger.warning(f"Could not read part {path}: {e}")
            return None

    def read_text(self, path: str) -> Optional[str]:
        """Read a part decoded as UTF-8 text."""
        data = self.read_bytes(path)
        if data is None:
            return None
        return data.decode("utf-8", errors="replace")

    def parse_xml_strict(self, path: str) -> Optional[etree._Element]:
        """Parse an XML part.

        Returns:
            The root element, or None if the part does not exist.

        Raises:
            MalformedPartError: If the part exists but is not well-formed XML.
        """
        data = self.read_bytes(path)
        if data is None:
            return None
        try:
            return etree.fromstring(data, _XML_PARSER)
        except etree.XMLSyntaxError as e:
            raise MalformedPartError(f"Malformed XML part {path}", cause=e, context={"part": path}) from e

    def read_xml(self, path: str) -> Optional[etree._Element]:
        """Parse an XML part, treating malformed content like a missing part."""
        try:
            return self.parse_xml_strict(path)
        except MalformedPartError as e:
            logger.warning(str(e))
            return None

    def close(self) -> None:
        self._zip.close()
