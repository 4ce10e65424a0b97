"""ACI Manifest - build and extract App Container image manifests.

This package converts declarative build specifications into canonical
image manifest files, and reads existing image archives to recover their
manifest and ``name[:version]``.
"""

# Builder
from .build_config import BuildSpec
from .builder import build_manifest, serialize_manifest, to_dependencies, write_manifest

# Extractor
from .extractor import (
    extract_full_name,
    extract_full_name_from_archive,
    extract_manifest,
    extract_manifest_content,
)

# Core utilities
from .core import (
    App,
    ArchiveFormatError,
    Dependency,
    FullName,
    ImageManifest,
    InvalidIdentifierError,
    ManifestError,
    ManifestIOError,
    ManifestNotFoundError,
    ManifestParseError,
    NameValueList,
    validate_manifest,
    validate_manifest_with_error_details,
)

__version__ = "0.1.0"

__all__ = [
    # Builder
    "BuildSpec",
    "build_manifest",
    "serialize_manifest",
    "to_dependencies",
    "write_manifest",
    # Extractor
    "extract_full_name",
    "extract_full_name_from_archive",
    "extract_manifest",
    "extract_manifest_content",
    # Data model
    "App",
    "Dependency",
    "FullName",
    "ImageManifest",
    "NameValueList",
    # Errors
    "ArchiveFormatError",
    "InvalidIdentifierError",
    "ManifestError",
    "ManifestIOError",
    "ManifestNotFoundError",
    "ManifestParseError",
    # Validation
    "validate_manifest",
    "validate_manifest_with_error_details",
]
