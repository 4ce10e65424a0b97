"""Core utilities for manifest building and extraction.

This package contains the manifest data model, identifier rules,
error types and schema validation shared by the builder and the
extractor.
"""

from .errors import (
    ArchiveFormatError,
    InvalidIdentifierError,
    ManifestError,
    ManifestIOError,
    ManifestNotFoundError,
    ManifestParseError,
)
from .identifier import FullName, is_valid_identifier, sanitize_identifier, validate_identifier
from .types import App, Dependency, EventHandler, ImageManifest, NameValueList
from .validator import validate_manifest, validate_manifest_with_error_details

__all__ = [
    "App",
    "ArchiveFormatError",
    "Dependency",
    "EventHandler",
    "FullName",
    "ImageManifest",
    "InvalidIdentifierError",
    "ManifestError",
    "ManifestIOError",
    "ManifestNotFoundError",
    "ManifestParseError",
    "NameValueList",
    "is_valid_identifier",
    "sanitize_identifier",
    "validate_identifier",
    "validate_manifest",
    "validate_manifest_with_error_details",
]
