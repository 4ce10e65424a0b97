"""Command-line interface for building and inspecting image manifests.

This module provides the ``aci-manifest`` entry point: ``build`` writes a
manifest from YAML build configuration, ``inspect`` prints the manifest
of an existing image archive and ``validate`` checks a manifest file
against the schema.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .build_config import BuildSpec
from .builder import write_manifest
from .core.errors import InvalidIdentifierError, ManifestError, ManifestIOError, ManifestParseError
from .core.identifier import is_valid_identifier, sanitize_identifier
from .core.validator import validate_manifest_with_error_details
from .extractor import extract_full_name, extract_manifest


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr, DEBUG when verbose and INFO otherwise."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))

    root = logging.getLogger("aci_manifest")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.propagate = False


def run_build(args: argparse.Namespace) -> None:
    build_spec = BuildSpec.from_files(*args.config)
    project_name = args.name or build_spec.name_and_version.name

    print(f"Building manifest for {build_spec.name_and_version}", file=sys.stderr)
    write_manifest(build_spec, args.output, project_name)
    print(f"Manifest written to {args.output}", file=sys.stderr)


def run_inspect(args: argparse.Namespace) -> None:
    manifest = extract_manifest(args.archive)

    if args.full_name:
        print(extract_full_name(manifest))
        return

    json.dump(manifest.to_dict(), sys.stdout, indent=2, ensure_ascii=False)
    print()  # Add newline at end


def run_validate(args: argparse.Namespace) -> None:
    fields = {"file": str(args.manifest)}
    try:
        document = json.loads(args.manifest.read_bytes())
    except OSError as e:
        raise ManifestIOError("cannot read manifest", fields) from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestParseError("cannot unmarshal json content", fields) from e

    # Validate against JSON schema
    print("Validating manifest against schema...", file=sys.stderr)
    is_valid, error_msg = validate_manifest_with_error_details(document)

    if not is_valid:
        print("Error: Manifest validation failed:", file=sys.stderr)
        print(error_msg, file=sys.stderr)
        sys.exit(1)

    print("Validation successful!", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aci-manifest",
        description="Build and inspect App Container image manifests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Write a manifest from build configuration
  aci-manifest build --config aci-manifest.yml --output target/manifest

  # Layer an environment-specific override
  aci-manifest build --config aci-manifest.yml --config prod.yml --output manifest

  # Print the name and version of a built image
  aci-manifest inspect target/image.aci --full-name

  # Check a hand-edited manifest
  aci-manifest validate target/manifest
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Write a manifest from build configuration")
    build.add_argument(
        "--config",
        required=True,
        action="append",
        type=Path,
        help="YAML build configuration (repeat to layer overrides)",
    )
    build.add_argument("--output", required=True, type=Path, help="Manifest file to write")
    build.add_argument(
        "--name", help="Image name for the manifest (defaults to the configured name)"
    )
    build.set_defaults(func=run_build)

    inspect = subparsers.add_parser("inspect", help="Print the manifest of an image archive")
    inspect.add_argument("archive", type=Path, help="Path to the image archive")
    inspect.add_argument(
        "--full-name", action="store_true", help="Print only name[:version]"
    )
    inspect.set_defaults(func=run_inspect)

    validate = subparsers.add_parser("validate", help="Check a manifest file against the schema")
    validate.add_argument("manifest", type=Path, help="Path to the manifest file")
    validate.set_defaults(func=run_validate)

    return parser


def identifier_hint(error: InvalidIdentifierError) -> str | None:
    """Suggest a valid identifier close to the rejected one, if there is one."""
    suggestion = sanitize_identifier(str(error.fields.get("name", "")))
    if suggestion and is_valid_identifier(suggestion):
        return suggestion
    return None


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the aci-manifest command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        args.func(args)
    except ManifestError as e:
        print(f"Error: {e}", file=sys.stderr)
        if isinstance(e, InvalidIdentifierError):
            suggestion = identifier_hint(e)
            if suggestion:
                print(f"Hint: a valid name would be '{suggestion}'", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
