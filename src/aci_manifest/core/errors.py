"""Error types raised by the manifest builder and extractor.

Every error carries a ``kind`` tag and a ``fields`` mapping with the
context needed to diagnose it (archive path, identifier, raw content).
Errors are always raised to the caller with the underlying cause chained;
nothing in this package logs and swallows them.
"""

from collections.abc import Mapping
from typing import Any

# Longest value rendered in an error message; ``fields`` keeps the full value
MAX_FIELD_DISPLAY_LENGTH = 200


class ManifestError(Exception):
    """Base class for all manifest errors.

    Attributes:
        kind: Short tag identifying the failure category
        message: Human-readable description of what failed
        fields: Contextual values attached where the failure happened
    """

    kind = "manifest"

    def __init__(self, message: str, fields: Mapping[str, Any] | None = None):
        self.message = message
        self.fields: dict[str, Any] = dict(fields or {})
        super().__init__(self._render())

    def _render(self) -> str:
        if not self.fields:
            return self.message
        parts = []
        for key, value in self.fields.items():
            text = str(value)
            if len(text) > MAX_FIELD_DISPLAY_LENGTH:
                text = text[:MAX_FIELD_DISPLAY_LENGTH] + "..."
            parts.append(f"{key}={text}")
        return f"{self.message} [{' '.join(parts)}]"


class ManifestIOError(ManifestError):
    """A file could not be opened, read or written."""

    kind = "io"


class ArchiveFormatError(ManifestError):
    """The archive is not a valid (compressed) tar stream or has a corrupt entry."""

    kind = "format"


class ManifestNotFoundError(ManifestError):
    """The archive is valid but holds no manifest entry."""

    kind = "not_found"


class ManifestParseError(ManifestError):
    """Manifest or build configuration content does not decode as expected."""

    kind = "parse"


class InvalidIdentifierError(ManifestError):
    """A name does not satisfy the AC identifier grammar."""

    kind = "invalid_identifier"
