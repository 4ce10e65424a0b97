"""JSON Schema validation for image manifests.

This module loads the bundled JSON Schema and validates manifest documents
after they are decoded from an archive and before they are written to disk.
"""

import json
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema import ValidationError

# Path to the schema file shipped as package data
# src/aci_manifest/core/validator.py -> src/aci_manifest/schemas/
SCHEMA_PATH = Path(__file__).parent.parent / "schemas" / "image_manifest.schema.json"


@lru_cache(maxsize=1)
def load_schema() -> dict[str, Any]:
    """Load the JSON schema from disk.

    Returns:
        Dictionary containing the JSON Schema.

    Raises:
        FileNotFoundError: If schema file doesn't exist
        json.JSONDecodeError: If schema is invalid JSON
    """
    if not SCHEMA_PATH.exists():
        raise FileNotFoundError(f"Schema file not found: {SCHEMA_PATH}")

    with SCHEMA_PATH.open("r", encoding="utf-8") as f:
        return json.load(f)  # type: ignore[no-any-return]


def validate_manifest(document: Mapping[str, Any]) -> None:
    """Validate a manifest document against the JSON Schema.

    Args:
        document: The decoded manifest document to validate

    Raises:
        ValidationError: If the document doesn't conform to the schema
        FileNotFoundError: If schema file is missing
        json.JSONDecodeError: If schema is invalid
    """
    schema = load_schema()
    jsonschema.validate(instance=document, schema=schema)


def format_validation_error(error: ValidationError) -> str:
    """Render a validation error with the path of the failing element."""
    error_path = " -> ".join(str(p) for p in error.path) if error.path else "root"
    error_msg = f"Validation error at {error_path}: {error.message}"

    # Add context if available
    if error.instance:
        error_msg += f"\nInvalid value: {error.instance}"

    return error_msg


def validate_manifest_with_error_details(document: Mapping[str, Any]) -> tuple[bool, str | None]:
    """Validate a manifest document and return detailed error information.

    This is a convenience wrapper that catches validation errors and
    returns user-friendly error messages.

    Args:
        document: The decoded manifest document to validate

    Returns:
        Tuple of (is_valid, error_message). error_message is None if valid.
    """
    try:
        validate_manifest(document)
        return True, None
    except ValidationError as e:
        return False, format_validation_error(e)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        return False, f"Schema error: {e}"
