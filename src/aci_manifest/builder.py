"""Manifest generation from build specifications.

This module turns a BuildSpec into an image manifest: it rebuilds the
labels, applies default ownership and the ``build-date`` annotation,
converts dependencies, injects the default exec and pre-start handler,
and writes the result as pretty-printed JSON.
"""

import dataclasses
import json
import logging
import os
import re
import tempfile
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from jsonschema import ValidationError

from .build_config import BuildSpec
from .core.errors import ManifestIOError, ManifestParseError
from .core.identifier import FullName, validate_identifier
from .core.types import App, Dependency, EventHandler, ImageManifest, NameValueList
from .core.validator import format_validation_error, validate_manifest

logger = logging.getLogger(__name__)

# Directory holding the tools bundled into every image
BINARY_PATH = "/dgr/bin"
DEFAULT_EXEC = [f"{BINARY_PATH}/busybox", "sh"]
PRESTART_EXEC = [f"{BINARY_PATH}/prestart"]
PRE_START = "pre-start"

BUILD_DATE = "build-date"
DEFAULT_OWNER = "0"
MANIFEST_FILE_MODE = 0o644

# Two-member objects starting with "name", e.g. labels, as laid out by json.dumps(indent=2)
_NAME_OBJECT = re.compile(rb'\{\s*("name":[^\n]*),\n\s*([^\n]+)\n\s*\}')


def format_build_date(now: datetime | None = None) -> str:
    """Format a timestamp as RFC 3339 with second precision.

    Naive timestamps are taken as local time; UTC renders with a ``Z``.
    """
    now = now or datetime.now()
    if now.tzinfo is None:
        now = now.astimezone()
    stamp = now.isoformat(timespec="seconds")
    if stamp.endswith("+00:00"):
        stamp = stamp[: -len("+00:00")] + "Z"
    return stamp


def build_labels(version: str | None) -> NameValueList:
    labels = NameValueList()
    if version:
        labels.set("version", version)
    labels.set("os", "linux")
    labels.set("arch", "amd64")
    return labels


def to_dependencies(dependencies: Iterable[FullName]) -> list[Dependency]:
    """Convert dependency names into manifest dependencies, keeping their order.

    Raises:
        InvalidIdentifierError: If any name is invalid; no partial list is returned
    """
    converted: list[Dependency] = []
    for dependency in dependencies:
        validate_identifier(dependency.name)
        labels = NameValueList()
        if dependency.version:
            labels.set("version", dependency.version)
        converted.append(Dependency(image_name=dependency.name, labels=labels))
    return converted


def is_binary_path_excluded(exclude: Iterable[str]) -> bool:
    """Return True if any exclusion rule is a prefix of the bundled binary path."""
    return any(BINARY_PATH.startswith(rule) for rule in exclude)


def _copy_app(app: App) -> App:
    return dataclasses.replace(
        app,
        exec=list(app.exec),
        event_handlers=[EventHandler(name=h["name"], exec=list(h["exec"])) for h in app.event_handlers],
        supplementary_gids=list(app.supplementary_gids),
        environment=app.environment.copy(),
        mount_points=list(app.mount_points),
        ports=list(app.ports),
        isolators=list(app.isolators),
    )


def build_manifest(
    build_spec: BuildSpec, project_name: str, now: datetime | None = None
) -> ImageManifest:
    """Assemble the manifest for a build specification.

    The specification is not modified; defaults are applied to copies.

    Args:
        build_spec: Resolved build specification
        project_name: Image name written to the manifest
        now: Timestamp used for an injected ``build-date`` (defaults to now)

    Returns:
        The assembled manifest

    Raises:
        InvalidIdentifierError: If the project name or a dependency name is invalid
    """
    name = validate_identifier(project_name)
    labels = build_labels(build_spec.name_and_version.version)

    app = _copy_app(build_spec.app)
    if not app.user:
        app.user = DEFAULT_OWNER
    if not app.group:
        app.group = DEFAULT_OWNER

    annotations = build_spec.annotations.copy()
    if BUILD_DATE not in annotations:
        annotations.set(BUILD_DATE, format_build_date(now))

    dependencies = to_dependencies(build_spec.dependencies)

    # A single exclusion guard covers both the exec default and the pre-start handler
    binary_path_excluded = is_binary_path_excluded(build_spec.exclude)
    if not binary_path_excluded:
        if not app.exec:
            app.exec = list(DEFAULT_EXEC)
        if not app.has_event_handler(PRE_START):
            app.event_handlers.append(EventHandler(name=PRE_START, exec=list(PRESTART_EXEC)))

    return ImageManifest(
        name=name,
        labels=labels,
        annotations=annotations,
        app=app,
        dependencies=dependencies,
    )


def prettify_json(content: bytes) -> bytes:
    """Collapse two-member ``{"name": ..., ...}`` objects onto a single line."""
    return _NAME_OBJECT.sub(rb"{\1, \2}", content)


def serialize_manifest(manifest: ImageManifest) -> bytes:
    """Encode a manifest as indented UTF-8 JSON followed by the prettify pass."""
    text = json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False) + "\n"
    return prettify_json(text.encode("utf-8"))


def _atomic_write_bytes(path: Path, content: bytes, mode: int) -> None:
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            delete=False,
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(content)
        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except OSError:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise


def write_manifest(build_spec: BuildSpec, target_path: str | Path, project_name: str) -> None:
    """Build the manifest for a specification and write it to ``target_path``.

    Any existing file is replaced as a whole; on failure nothing is written.

    Raises:
        InvalidIdentifierError: If the project name or a dependency name is invalid
        ManifestParseError: If the generated document does not match the schema
        ManifestIOError: If the file cannot be written
    """
    manifest = build_manifest(build_spec, project_name)
    document = manifest.to_dict()
    fields = {"name": str(build_spec.name_and_version)}
    try:
        validate_manifest(document)
    except ValidationError as e:
        raise ManifestParseError(format_validation_error(e), fields) from e

    content = serialize_manifest(manifest)
    target = Path(target_path)
    try:
        _atomic_write_bytes(target, content, MANIFEST_FILE_MODE)
    except OSError as e:
        raise ManifestIOError("failed to write manifest file", {**fields, "file": str(target)}) from e
    logger.debug("Wrote manifest for %s to %s", manifest.name, target)
