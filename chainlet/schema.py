"""JSON Schema validation for chainlet input documents.

Provides:
- A registry of every schema under ``chainlet/schemas`` keyed by ``$id``
  so schemas can ``$ref`` one another
- Cached validators per schema name
- Flat, path-prefixed error messages
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, List

from jsonschema import Draft202012Validator, validators
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from chainlet.core import SCHEMAS_DIR, load_json

SCHEMA_BASE_URI = "https://schemas.chainlet.dev/"


def _is_strict_integer(checker: Any, instance: Any) -> bool:
    # Draft 2020-12 counts 100.0 as an integer; ledger amounts must be ints.
    return isinstance(instance, int) and not isinstance(instance, bool)


StrictValidator = validators.extend(
    Draft202012Validator,
    type_checker=Draft202012Validator.TYPE_CHECKER.redefine("integer", _is_strict_integer),
)


@lru_cache(maxsize=1)
def _schema_registry(schemas_dir: Path = SCHEMAS_DIR) -> Registry:
    """Build a registry of all bundled schemas for $ref resolution."""
    resources = []
    for schema_path in sorted(schemas_dir.glob("*.schema.json")):
        schema = load_json(schema_path)
        if not isinstance(schema, dict):
            continue
        schema_id = schema.get("$id") or f"{SCHEMA_BASE_URI}{schema_path.name}"
        resources.append((schema_id, Resource.from_contents(schema, default_specification=DRAFT202012)))
    return Registry().with_resources(resources)


@lru_cache(maxsize=None)
def schema_validator(name: str) -> StrictValidator:
    """Validator for the bundled schema ``<name>.schema.json``.

    Raises FileNotFoundError if no such schema is bundled.
    """
    schema_path = SCHEMAS_DIR / f"{name}.schema.json"
    if not schema_path.is_file():
        raise FileNotFoundError(f"No bundled schema named {name!r}")
    return StrictValidator(load_json(schema_path), registry=_schema_registry())


def _error_path(error: Any) -> str:
    # Like ValidationError.json_path, but tolerant of non-string mapping keys.
    return "$" + "".join(
        f"[{part}]" if isinstance(part, int) else f".{part}" for part in error.absolute_path
    )


def validate_against_schema(obj: Any, name: str) -> List[str]:
    """Validate ``obj`` against a bundled schema.

    Returns:
        List of validation error messages (empty if valid), sorted by path
    """
    paths_and_messages = sorted(
        (_error_path(error), error.message) for error in schema_validator(name).iter_errors(obj)
    )
    return [f"{path}: {message}" for path, message in paths_and_messages]


__all__ = [
    "SCHEMA_BASE_URI",
    "StrictValidator",
    "schema_validator",
    "validate_against_schema",
]
