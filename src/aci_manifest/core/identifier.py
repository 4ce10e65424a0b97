"""AC identifier validation and ``name[:version]`` full names.

Image names, dependency names, label names and annotation names all follow
the same identifier grammar: lowercase alphanumeric runs separated by one
of ``-._~/``, never starting or ending with a separator.
"""

import re
from dataclasses import dataclass

from .errors import InvalidIdentifierError

VALID_IDENTIFIER = re.compile(r"^[a-z0-9]+([-._~/][a-z0-9]+)*$")
INVALID_IDENTIFIER_CHARS = re.compile(r"[^a-z0-9\-._~/]")
INVALID_IDENTIFIER_EDGES = re.compile(r"(^[-._~/]+)|([-._~/]+$)")


def is_valid_identifier(value: str) -> bool:
    """Return True if ``value`` satisfies the identifier grammar."""
    return bool(VALID_IDENTIFIER.match(value))


def validate_identifier(value: str) -> str:
    """Validate an identifier and return it unchanged.

    Args:
        value: Candidate identifier

    Returns:
        The same string, when valid

    Raises:
        InvalidIdentifierError: If the string is empty or malformed
    """
    if not value:
        raise InvalidIdentifierError("identifier cannot be empty", {"name": value})
    if not is_valid_identifier(value):
        raise InvalidIdentifierError("not a valid AC identifier", {"name": value})
    return value


def sanitize_identifier(value: str) -> str:
    """Build a valid identifier candidate from an arbitrary string.

    Lowercases, replaces forbidden characters with ``-`` and strips
    separators from both ends. Never applied implicitly: callers decide
    whether a corrected name is acceptable.

    Example:
        "Example.COM/My App" -> "example.com/my-app"
    """
    sanitized = INVALID_IDENTIFIER_CHARS.sub("-", value.lower())
    return INVALID_IDENTIFIER_EDGES.sub("", sanitized)


@dataclass(frozen=True)
class FullName:
    """An image name with an optional version, rendered ``name[:version]``.

    ``version`` is None when absent; an empty string is a present, empty
    version and renders as ``name:``.
    """

    name: str
    version: str | None = None

    @classmethod
    def parse(cls, value: str) -> "FullName":
        """Split ``name[:version]``.

        Only a colon after the last ``/`` separates the version, so a
        registry port such as ``host:5000/app`` stays part of the name.
        """
        slash = value.rfind("/")
        colon = value.rfind(":")
        if colon > slash:
            return cls(name=value[:colon], version=value[colon + 1 :])
        return cls(name=value)

    def __str__(self) -> str:
        if self.version is not None:
            return f"{self.name}:{self.version}"
        return self.name
