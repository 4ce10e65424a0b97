"""Shared fixtures for building image archives in tests."""

import io
import json
import tarfile
from pathlib import Path
from typing import Any, Callable

import pytest


def add_entry(tar: tarfile.TarFile, name: str, content: bytes) -> None:
    info = tarfile.TarInfo(name=name)
    info.size = len(content)
    tar.addfile(info, io.BytesIO(content))


def add_directory(tar: tarfile.TarFile, name: str) -> None:
    info = tarfile.TarInfo(name=name)
    info.type = tarfile.DIRTYPE
    tar.addfile(info)


@pytest.fixture
def sample_document() -> dict[str, Any]:
    """A schema-valid manifest document."""
    return {
        "acKind": "ImageManifest",
        "acVersion": "0.8.11",
        "name": "example.com/app",
        "labels": [
            {"name": "version", "value": "1.2.3"},
            {"name": "os", "value": "linux"},
            {"name": "arch", "value": "amd64"},
        ],
        "app": {
            "exec": ["/bin/app", "--serve"],
            "eventHandlers": [{"name": "pre-start", "exec": ["/dgr/bin/prestart"]}],
            "user": "0",
            "group": "0",
            "workingDirectory": "/srv",
            "environment": [{"name": "PATH", "value": "/usr/bin:/bin"}],
            "mountPoints": [{"name": "data", "path": "/data", "readOnly": False}],
            "ports": [{"name": "http", "protocol": "tcp", "port": 8080}],
        },
        "annotations": [{"name": "build-date", "value": "2024-01-02T03:04:05Z"}],
        "dependencies": [
            {"imageName": "example.com/base", "labels": [{"name": "version", "value": "1.0"}]}
        ],
    }


@pytest.fixture
def make_archive(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a tar archive with the given entries.

    Entries map archive paths to bytes; a value of None adds a directory.
    """

    def _make(
        entries: dict[str, bytes | None], name: str = "image.aci", compression: str = "gz"
    ) -> Path:
        path = tmp_path / name
        mode = f"w:{compression}" if compression else "w"
        with tarfile.open(path, mode) as tar:
            for entry_name, content in entries.items():
                if content is None:
                    add_directory(tar, entry_name)
                else:
                    add_entry(tar, entry_name, content)
        return path

    return _make


@pytest.fixture
def sample_archive(make_archive, sample_document) -> Path:
    """Gzipped image archive holding the sample manifest and a rootfs."""
    return make_archive(
        {
            "rootfs": None,
            "rootfs/etc/hostname": b"app\n",
            "manifest": json.dumps(sample_document).encode("utf-8"),
        }
    )
