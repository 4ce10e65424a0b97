"""Manifest extraction from App Container image archives.

An image archive is a tar stream, optionally gzip, bzip2 or xz compressed,
whose manifest lives in a top-level entry named ``manifest``. These
functions only read the archive; nothing is extracted to disk.
"""

import json
import logging
import lzma
import posixpath
import tarfile
import zlib
from pathlib import Path

from jsonschema import ValidationError

from .core.errors import (
    ArchiveFormatError,
    ManifestError,
    ManifestIOError,
    ManifestNotFoundError,
    ManifestParseError,
)
from .core.identifier import FullName
from .core.types import ImageManifest
from .core.validator import format_validation_error, validate_manifest

logger = logging.getLogger(__name__)

# Reserved path of the manifest inside an image archive
MANIFEST_FILE = "manifest"

# Errors a decompressing tar reader raises on corrupt or truncated input
_ARCHIVE_READ_ERRORS = (tarfile.TarError, EOFError, zlib.error, lzma.LZMAError, OSError)


def _next_member(tar: tarfile.TarFile) -> tarfile.TarInfo | None:
    """Return the next entry header of a streamed archive, or None at its end.

    TarFile.next stops silently at a corrupt header past the first entry;
    here only end-of-archive blocks or a clean end of data finish the scan,
    and every other header error is raised.
    """
    if tar.firstmember is not None:
        return tar.next()

    # Skip the unread data of the previous entry
    if tar.offset != tar.fileobj.tell():
        tar.fileobj.seek(tar.offset - 1)
        if not tar.fileobj.read(1):
            raise tarfile.ReadError("unexpected end of data")

    try:
        return tar.tarinfo.fromtarfile(tar)
    except (tarfile.EOFHeaderError, tarfile.EmptyHeaderError):
        return None


def extract_manifest_content(archive_path: str | Path) -> bytes:
    """Return the raw bytes of the manifest entry of an image archive.

    The archive is read as a stream: entries are scanned in order and the
    first regular file whose normalized path is ``manifest`` wins.

    Args:
        archive_path: Path to the (compressed) tar archive

    Returns:
        Raw manifest content

    Raises:
        ManifestIOError: If the file cannot be opened
        ArchiveFormatError: If the file is not a valid tar stream or an
            entry cannot be read
        ManifestNotFoundError: If no manifest entry exists
    """
    fields = {"file": str(archive_path)}
    try:
        input_file = open(archive_path, "rb")
    except OSError as e:
        raise ManifestIOError("cannot open file", fields) from e

    with input_file:
        try:
            tar = tarfile.open(fileobj=input_file, mode="r|*")
        except _ARCHIVE_READ_ERRORS as e:
            raise ArchiveFormatError("cannot open file as tar", fields) from e

        with tar:
            try:
                while (member := _next_member(tar)) is not None:
                    if posixpath.normpath(member.name) != MANIFEST_FILE:
                        continue
                    entry = tar.extractfile(member)
                    if entry is None:
                        continue
                    content = entry.read()
                    logger.debug("Found manifest entry %r in %s", member.name, archive_path)
                    return content
            except _ARCHIVE_READ_ERRORS as e:
                raise ArchiveFormatError("error reading tarball file", fields) from e

    raise ManifestNotFoundError("cannot find manifest in file", fields)


def parse_manifest(content: bytes) -> ImageManifest:
    """Decode and validate raw manifest bytes.

    Raises:
        ManifestParseError: If the content is not a valid manifest document;
            the raw content is attached under ``fields["content"]``
    """
    text = content.decode("utf-8", errors="replace")
    fields = {"content": text}
    try:
        document = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestParseError("cannot unmarshal json content", fields) from e

    try:
        validate_manifest(document)
    except ValidationError as e:
        raise ManifestParseError(format_validation_error(e), fields) from e

    try:
        return ImageManifest.from_dict(document)
    except (KeyError, TypeError, ValueError, ManifestError) as e:
        raise ManifestParseError(f"invalid manifest: {e}", fields) from e


def extract_manifest(archive_path: str | Path) -> ImageManifest:
    """Extract and parse the manifest of an image archive.

    Raises:
        ManifestIOError, ArchiveFormatError, ManifestNotFoundError: see
            extract_manifest_content
        ManifestParseError: If the manifest does not decode; carries both
            the archive path and the raw content
    """
    content = extract_manifest_content(archive_path)
    try:
        return parse_manifest(content)
    except ManifestParseError as e:
        fields = {"file": str(archive_path), **e.fields}
        raise ManifestParseError(e.message, fields) from e.__cause__


def extract_full_name(manifest: ImageManifest) -> FullName:
    """Derive ``name[:version]`` from a manifest's name and version label.

    A present but empty version label still renders its colon.
    """
    return FullName(name=manifest.name, version=manifest.labels.get("version"))


def extract_full_name_from_archive(archive_path: str | Path) -> FullName:
    return extract_full_name(extract_manifest(archive_path))
