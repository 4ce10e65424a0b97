"""Type definitions for App Container image manifests.

The TypedDicts mirror the JSON document structure described by
schemas/image_manifest.schema.json. The classes wrap them with the
behaviour the document needs: ordered name/value lists with unique names,
and conversion to and from the decoded JSON form.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, TypedDict

from .identifier import validate_identifier

AC_KIND = "ImageManifest"
AC_VERSION = "0.8.11"


class NameValue(TypedDict):
    """A single label, annotation or environment variable."""

    name: str
    value: str


class EventHandler(TypedDict):
    """Command run at a lifecycle point (e.g. ``pre-start``)."""

    name: str
    exec: list[str]


class MountPoint(TypedDict, total=False):
    name: str
    path: str
    readOnly: bool


class Port(TypedDict, total=False):
    name: str
    protocol: str
    port: int
    count: int
    socketActivated: bool


class Isolator(TypedDict):
    """Resource or capability isolator; ``value`` is opaque to this package."""

    name: str
    value: Any


class NameValueList:
    """Ordered list of name/value pairs where every name appears once.

    ``set`` overwrites the value of an existing name in place and appends
    new names at the end, so insertion order is stable.
    """

    def __init__(
        self,
        items: Iterable[tuple[str, str]] | None = None,
        *,
        identifier_names: bool = True,
    ):
        """Initialize the list.

        Args:
            items: Initial (name, value) pairs; duplicated names are rejected
            identifier_names: Whether names must be valid AC identifiers
                (True for labels and annotations, False for environment)

        Raises:
            ValueError: If a name is given twice
            InvalidIdentifierError: If a name is not a valid identifier
        """
        self.identifier_names = identifier_names
        self._items: list[list[str]] = []
        for name, value in items or ():
            if name in self:
                raise ValueError(f"duplicate name {name!r}")
            self.set(name, value)

    @classmethod
    def from_list(
        cls, entries: Iterable[Mapping[str, Any]], *, identifier_names: bool = True
    ) -> "NameValueList":
        """Build from decoded ``[{"name": ..., "value": ...}]`` entries."""
        return cls(
            ((str(e["name"]), str(e["value"])) for e in entries),
            identifier_names=identifier_names,
        )

    def get(self, name: str) -> str | None:
        for item_name, value in self._items:
            if item_name == name:
                return value
        return None

    def set(self, name: str, value: str) -> None:
        if self.identifier_names:
            validate_identifier(name)
        for item in self._items:
            if item[0] == name:
                item[1] = value
                return
        self._items.append([name, value])

    def names(self) -> list[str]:
        return [name for name, _ in self._items]

    def copy(self) -> "NameValueList":
        return NameValueList(self, identifier_names=self.identifier_names)

    def to_list(self) -> list[NameValue]:
        return [NameValue(name=name, value=value) for name, value in self._items]

    def __contains__(self, name: object) -> bool:
        return any(item_name == name for item_name, _ in self._items)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return ((name, value) for name, value in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NameValueList):
            return NotImplemented
        return self._items == other._items

    def __repr__(self) -> str:
        return f"NameValueList({list(self)!r})"


@dataclass
class App:
    """Runtime settings of the image's application."""

    exec: list[str] = field(default_factory=list)
    event_handlers: list[EventHandler] = field(default_factory=list)
    user: str = ""
    group: str = ""
    supplementary_gids: list[int] = field(default_factory=list)
    working_directory: str = ""
    environment: NameValueList = field(
        default_factory=lambda: NameValueList(identifier_names=False)
    )
    mount_points: list[MountPoint] = field(default_factory=list)
    ports: list[Port] = field(default_factory=list)
    isolators: list[Isolator] = field(default_factory=list)

    def has_event_handler(self, name: str) -> bool:
        return any(handler["name"] == name for handler in self.event_handlers)

    def to_dict(self) -> dict[str, Any]:
        document: dict[str, Any] = {}
        if self.exec:
            document["exec"] = list(self.exec)
        if self.event_handlers:
            document["eventHandlers"] = [
                EventHandler(name=h["name"], exec=list(h["exec"])) for h in self.event_handlers
            ]
        document["user"] = self.user
        document["group"] = self.group
        if self.supplementary_gids:
            document["supplementaryGIDs"] = list(self.supplementary_gids)
        if self.working_directory:
            document["workingDirectory"] = self.working_directory
        if self.environment:
            document["environment"] = self.environment.to_list()
        if self.mount_points:
            document["mountPoints"] = [dict(m) for m in self.mount_points]
        if self.ports:
            document["ports"] = [dict(p) for p in self.ports]
        if self.isolators:
            document["isolators"] = [dict(i) for i in self.isolators]
        return document

    @classmethod
    def from_dict(cls, document: Mapping[str, Any]) -> "App":
        handlers = document.get("eventHandlers") or []
        seen: set[str] = set()
        for handler in handlers:
            if handler["name"] in seen:
                raise ValueError(f"only one event handler named {handler['name']!r} allowed")
            seen.add(handler["name"])
        return cls(
            exec=list(document.get("exec") or []),
            event_handlers=[
                EventHandler(name=h["name"], exec=list(h.get("exec") or [])) for h in handlers
            ],
            user=str(document.get("user", "")),
            group=str(document.get("group", "")),
            supplementary_gids=list(document.get("supplementaryGIDs") or []),
            working_directory=document.get("workingDirectory", ""),
            environment=NameValueList.from_list(
                document.get("environment") or [], identifier_names=False
            ),
            mount_points=[MountPoint(**m) for m in document.get("mountPoints") or []],
            ports=[Port(**p) for p in document.get("ports") or []],
            isolators=[Isolator(name=i["name"], value=i.get("value")) for i in document.get("isolators") or []],
        )


@dataclass
class Dependency:
    """An image the manifest's image depends on."""

    image_name: str
    labels: NameValueList = field(default_factory=NameValueList)
    image_id: str = ""
    size: int = 0

    def __post_init__(self) -> None:
        validate_identifier(self.image_name)

    def to_dict(self) -> dict[str, Any]:
        document: dict[str, Any] = {"imageName": self.image_name}
        if self.image_id:
            document["imageID"] = self.image_id
        if self.labels:
            document["labels"] = self.labels.to_list()
        if self.size:
            document["size"] = self.size
        return document

    @classmethod
    def from_dict(cls, document: Mapping[str, Any]) -> "Dependency":
        return cls(
            image_name=document["imageName"],
            labels=NameValueList.from_list(document.get("labels") or []),
            image_id=document.get("imageID", ""),
            size=document.get("size", 0),
        )


@dataclass
class ImageManifest:
    """Complete image manifest.

    ``name`` must be a valid AC identifier; construction fails otherwise.
    """

    name: str
    labels: NameValueList = field(default_factory=NameValueList)
    annotations: NameValueList = field(default_factory=NameValueList)
    app: App | None = None
    dependencies: list[Dependency] = field(default_factory=list)
    ac_kind: str = AC_KIND
    ac_version: str = AC_VERSION

    def __post_init__(self) -> None:
        validate_identifier(self.name)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON document, keys in schema order, empty sections omitted."""
        document: dict[str, Any] = {
            "acKind": self.ac_kind,
            "acVersion": self.ac_version,
            "name": self.name,
        }
        if self.labels:
            document["labels"] = self.labels.to_list()
        if self.app is not None:
            document["app"] = self.app.to_dict()
        if self.annotations:
            document["annotations"] = self.annotations.to_list()
        if self.dependencies:
            document["dependencies"] = [d.to_dict() for d in self.dependencies]
        return document

    @classmethod
    def from_dict(cls, document: Mapping[str, Any]) -> "ImageManifest":
        """Build a manifest from a decoded JSON document.

        Raises:
            ValueError: If a name is duplicated or a required key is missing
            InvalidIdentifierError: If an identifier is malformed
        """
        if document.get("acKind") != AC_KIND:
            raise ValueError(f"acKind must be {AC_KIND!r}, got {document.get('acKind')!r}")
        app = document.get("app")
        return cls(
            name=document["name"],
            labels=NameValueList.from_list(document.get("labels") or []),
            annotations=NameValueList.from_list(document.get("annotations") or []),
            app=App.from_dict(app) if app is not None else None,
            dependencies=[Dependency.from_dict(d) for d in document.get("dependencies") or []],
            ac_version=document.get("acVersion", AC_VERSION),
        )
