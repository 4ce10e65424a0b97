"""Build specifications and their YAML configuration files.

A build specification describes the image to produce: its name and
version, the application settings, annotations, dependencies, and the
path prefixes excluded from the build. It is usually loaded from an
``aci-manifest.yml`` file:

    name: example.com/app:1.2.3
    aci:
      app:
        exec: [/bin/app, --serve]
      dependencies:
        - example.com/base:1.0
    build:
      exclude: [/dgr/bin]
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .core.errors import ManifestIOError, ManifestParseError
from .core.identifier import FullName
from .core.types import App, NameValueList


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML file into a dict.

    Raises:
        ManifestIOError: If the file cannot be read
        ManifestParseError: If the content is not a YAML mapping
    """
    fields = {"file": str(path)}
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except OSError as e:
        raise ManifestIOError("cannot read build configuration", fields) from e
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise ManifestParseError("cannot parse build configuration", fields) from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ManifestParseError("build configuration must be a mapping", fields)
    return document


def deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _parse_dependency(entry: Any) -> FullName:
    if isinstance(entry, str):
        return FullName.parse(entry)
    if isinstance(entry, Mapping):
        version = entry.get("version")
        return FullName(name=str(entry["name"]), version=None if version is None else str(version))
    raise TypeError(f"dependency must be a string or a mapping, got {entry!r}")


@dataclass
class BuildSpec:
    """Fully resolved description of an image build.

    Attributes:
        name_and_version: Image name and optional version
        app: Application settings; empty fields get defaults at build time
        annotations: Caller-supplied annotations, copied into the manifest
        dependencies: Dependency images, in resolution order
        exclude: Path prefixes excluded from the build
    """

    name_and_version: FullName
    app: App = field(default_factory=App)
    annotations: NameValueList = field(default_factory=NameValueList)
    dependencies: list[FullName] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, document: Mapping[str, Any]) -> "BuildSpec":
        """Build a specification from a decoded configuration document.

        Raises:
            KeyError: If ``name`` is missing
            TypeError, ValueError: If a section has the wrong shape
            InvalidIdentifierError: If an annotation name is malformed
        """
        name = document["name"]
        if not isinstance(name, str):
            raise TypeError(f"name must be a string, got {name!r}")

        aci = document.get("aci") or {}
        build = document.get("build") or {}
        return cls(
            name_and_version=FullName.parse(name),
            app=App.from_dict(aci.get("app") or {}),
            annotations=NameValueList.from_list(aci.get("annotations") or []),
            dependencies=[_parse_dependency(d) for d in aci.get("dependencies") or []],
            exclude=[str(e) for e in build.get("exclude") or []],
        )

    @classmethod
    def from_files(cls, *paths: str | Path) -> "BuildSpec":
        """Load and layer configuration files, later files overriding earlier ones.

        Raises:
            ManifestIOError: If a file cannot be read
            ManifestParseError: If the merged configuration is malformed
        """
        merged: dict[str, Any] = {}
        for path in paths:
            merged = deep_merge(merged, load_yaml(path))

        try:
            return cls.from_dict(merged)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            fields = {"file": ", ".join(str(p) for p in paths)}
            raise ManifestParseError(f"invalid build configuration: {e}", fields) from e
