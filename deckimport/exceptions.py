"""
Exception hierarchy for deck import.

Only InvalidArchiveError escapes PresentationParser.parse(); everything
else is caught at the part or element boundary and logged.
"""

from typing import Any, Dict, Optional


class DeckImportError(Exception):
    """Base exception for all import errors"""

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.cause = cause
        self.context = context or {}

    def __str__(self):
        parts = [super().__str__()]
        if self.cause:
            parts.append(f" (caused by: {type(self.cause).__name__}: {str(self.cause)})")
        if self.context:
            parts.append(f" Context: {self.context}")
        return "".join(parts)


class InvalidArchiveError(DeckImportError):
    """Input buffer is not a readable ZIP container"""
    pass


class MalformedPartError(DeckImportError):
    """An XML part inside the archive could not be parsed"""
    pass
