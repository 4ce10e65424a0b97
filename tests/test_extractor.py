"""Tests for manifest extraction from image archives."""

import gzip
import json
import tarfile

import pytest

from aci_manifest.builder import serialize_manifest
from aci_manifest.core.errors import (
    ArchiveFormatError,
    ManifestIOError,
    ManifestNotFoundError,
    ManifestParseError,
)
from aci_manifest.core.identifier import FullName
from aci_manifest.core.types import ImageManifest, NameValueList
from aci_manifest.extractor import (
    extract_full_name,
    extract_full_name_from_archive,
    extract_manifest,
    extract_manifest_content,
)


class TestExtractManifestContent:
    """Test locating the manifest entry inside an archive."""

    def test_returns_manifest_bytes(self, sample_archive, sample_document) -> None:
        """Test that the manifest entry content is returned verbatim."""
        content = extract_manifest_content(sample_archive)
        assert json.loads(content) == sample_document

    @pytest.mark.parametrize("compression", ["", "gz", "bz2", "xz"])
    def test_detects_compression(self, make_archive, compression) -> None:
        """Test that plain and compressed tar streams are read transparently."""
        archive = make_archive({"manifest": b"{}"}, compression=compression)
        assert extract_manifest_content(archive) == b"{}"

    def test_matches_normalized_entry_path(self, make_archive) -> None:
        """Test that ./manifest is treated as the manifest entry."""
        archive = make_archive({"./rootfs": None, "./manifest": b"content"})
        assert extract_manifest_content(archive) == b"content"

    def test_first_matching_entry_wins(self, make_archive) -> None:
        """Test that scanning stops at the first manifest entry."""
        archive = make_archive({"manifest": b"first", "./manifest": b"second"})
        assert extract_manifest_content(archive) == b"first"

    def test_missing_manifest_raises_not_found(self, make_archive) -> None:
        """Test that a valid archive without a manifest is reported."""
        archive = make_archive({"rootfs/manifest": b"{}", "rootfs/etc/hosts": b""})

        with pytest.raises(ManifestNotFoundError) as exc_info:
            extract_manifest_content(archive)

        assert exc_info.value.fields["file"] == str(archive)

    def test_non_archive_raises_format_error(self, tmp_path) -> None:
        """Test that a plain text file is not accepted as an archive."""
        path = tmp_path / "notes.txt"
        path.write_text("this is not an archive")

        with pytest.raises(ArchiveFormatError) as exc_info:
            extract_manifest_content(path)

        assert exc_info.value.fields["file"] == str(path)

    def test_empty_file_raises_format_error(self, tmp_path) -> None:
        """Test that an empty file is not accepted as an archive."""
        path = tmp_path / "empty.aci"
        path.write_bytes(b"")

        with pytest.raises(ArchiveFormatError):
            extract_manifest_content(path)

    def test_corrupt_compressed_stream_raises_format_error(self, tmp_path) -> None:
        """Test that a gzip header followed by garbage is rejected."""
        path = tmp_path / "corrupt.aci"
        path.write_bytes(b"\x1f\x8b\x08\x00" + b"\x00" * 6 + b"garbage" * 100)

        with pytest.raises(ArchiveFormatError):
            extract_manifest_content(path)

    @pytest.mark.parametrize("compressed", [False, True])
    def test_corrupt_header_mid_scan_raises_format_error(
        self, make_archive, tmp_path, compressed
    ) -> None:
        """Test that a damaged header after the first entry is not read as end of archive."""
        archive = make_archive(
            {"rootfs/a": b"a", "rootfs/b": b"b", "manifest": b"{}"}, compression=""
        )
        data = bytearray(archive.read_bytes())
        # Second header follows the first header and its single data block
        data[2 * tarfile.BLOCKSIZE] ^= 0xFF
        if compressed:
            data = bytearray(gzip.compress(bytes(data)))
        path = tmp_path / "corrupt.aci"
        path.write_bytes(bytes(data))

        with pytest.raises(ArchiveFormatError, match="error reading tarball file") as exc_info:
            extract_manifest_content(path)

        assert exc_info.value.fields["file"] == str(path)

    def test_truncated_header_mid_scan_raises_format_error(self, make_archive, tmp_path) -> None:
        """Test that an archive cut inside a header is reported as corrupt."""
        archive = make_archive({"rootfs/a": b"a", "manifest": b"{}"}, compression="")
        path = tmp_path / "truncated.aci"
        path.write_bytes(archive.read_bytes()[: 2 * tarfile.BLOCKSIZE + 100])

        with pytest.raises(ArchiveFormatError):
            extract_manifest_content(path)

    def test_missing_file_raises_io_error(self, tmp_path) -> None:
        """Test that an unopenable path is an I/O failure."""
        path = tmp_path / "missing.aci"

        with pytest.raises(ManifestIOError) as exc_info:
            extract_manifest_content(path)

        assert exc_info.value.fields["file"] == str(path)
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)


class TestExtractManifest:
    """Test decoding of the extracted manifest."""

    def test_parses_manifest(self, sample_archive) -> None:
        """Test that the manifest is decoded into the data model."""
        manifest = extract_manifest(sample_archive)

        assert manifest.name == "example.com/app"
        assert manifest.app is not None
        assert manifest.app.exec == ["/bin/app", "--serve"]
        assert manifest.annotations.get("build-date") == "2024-01-02T03:04:05Z"

    def test_invalid_json_carries_content(self, make_archive) -> None:
        """Test that decode failures keep the raw content and the cause."""
        archive = make_archive({"manifest": b"{not json"})

        with pytest.raises(ManifestParseError) as exc_info:
            extract_manifest(archive)

        error = exc_info.value
        assert error.fields["content"] == "{not json"
        assert error.fields["file"] == str(archive)
        assert isinstance(error.__cause__, json.JSONDecodeError)

    def test_schema_violation_raises_parse_error(self, make_archive, sample_document) -> None:
        """Test that an invalid image name is rejected."""
        sample_document["name"] = "BAD NAME"
        archive = make_archive({"manifest": json.dumps(sample_document).encode()})

        with pytest.raises(ManifestParseError, match="name"):
            extract_manifest(archive)

    def test_duplicate_labels_raise_parse_error(self, make_archive, sample_document) -> None:
        """Test that the label uniqueness invariant is enforced on load."""
        sample_document["labels"].append({"name": "os", "value": "darwin"})
        archive = make_archive({"manifest": json.dumps(sample_document).encode()})

        with pytest.raises(ManifestParseError, match="duplicate name"):
            extract_manifest(archive)

    def test_round_trips_identity_and_app(self, sample_archive, make_archive) -> None:
        """Test that re-serializing an extracted manifest preserves it."""
        manifest = extract_manifest(sample_archive)
        archive = make_archive({"manifest": serialize_manifest(manifest)}, name="copy.aci")

        copy = extract_manifest(archive)
        assert copy.name == manifest.name
        assert copy.app == manifest.app
        assert copy.to_dict() == manifest.to_dict()


class TestExtractFullName:
    """Test name[:version] derivation."""

    def test_name_only_without_version_label(self) -> None:
        """Test that the bare name is used when no version label exists."""
        manifest = ImageManifest(name="example.com/app", labels=NameValueList([("os", "linux")]))
        assert str(extract_full_name(manifest)) == "example.com/app"

    def test_appends_version_label(self) -> None:
        """Test that the version label is appended after a colon."""
        manifest = ImageManifest(
            name="example.com/app", labels=NameValueList([("version", "1.2.3")])
        )
        assert extract_full_name(manifest) == FullName("example.com/app", "1.2.3")
        assert str(extract_full_name(manifest)) == "example.com/app:1.2.3"

    def test_is_deterministic(self, sample_document) -> None:
        """Test that the same manifest always yields the same name."""
        manifest = ImageManifest.from_dict(sample_document)
        assert extract_full_name(manifest) == extract_full_name(manifest)

    def test_empty_version_label_keeps_colon(self) -> None:
        """Test that a present but empty version label still appends the colon."""
        manifest = ImageManifest(name="example.com/app", labels=NameValueList([("version", "")]))

        assert str(extract_full_name(manifest)) == "example.com/app:"

    def test_from_archive(self, sample_archive) -> None:
        """Test the archive-to-name shortcut."""
        assert str(extract_full_name_from_archive(sample_archive)) == "example.com/app:1.2.3"
