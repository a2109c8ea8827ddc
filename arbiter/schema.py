"""JSON Schema validation for claim and session files.

Provides:
- A registry of the bundled schemas so ``$ref`` resolves across them
- Cached validators
- Loaders that turn validated JSON into ``StepClaim`` / ``Session`` objects
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Union

from jsonschema import Draft202012Validator
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from arbiter.hardening import ValidationError, ValidationErrors, Validators
from arbiter.trace import StepClaim
from arbiter.verifier import Session

SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"

STEP_CLAIM_SCHEMA = "step-claim.schema.json"
SESSION_SCHEMA = "session.schema.json"


def load_json(path: Union[str, Path]) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


@lru_cache(maxsize=1)
def _schema_registry() -> Registry:
    """Registry of every bundled schema, keyed by its ``$id``."""
    resources = []
    for schema_path in sorted(SCHEMAS_DIR.glob("*.schema.json")):
        schema = load_json(schema_path)
        schema_id = schema.get("$id") or f"https://schemas.momentum-sez.org/arbiter/{schema_path.name}"
        resources.append((schema_id, Resource.from_contents(schema, default_specification=DRAFT202012)))
    return Registry().with_resources(resources)


@lru_cache(maxsize=None)
def schema_validator(name: str) -> Draft202012Validator:
    """Create a validator for one of the bundled schemas."""
    schema = load_json(SCHEMAS_DIR / name)
    return Draft202012Validator(schema, registry=_schema_registry())


def validate_against_schema(obj: Any, name: str) -> List[str]:
    """Validate an object against a bundled schema.

    Returns:
        List of validation error messages (empty if valid)
    """
    validator = schema_validator(name)
    return [
        f"{error.json_path}: {error.message}"
        for error in sorted(validator.iter_errors(obj), key=lambda e: e.json_path)
    ]


def _raise_schema_errors(messages: List[str], field: str) -> None:
    if messages:
        raise ValidationErrors([ValidationError(field, m) for m in messages])


def parse_claim(obj: Any) -> StepClaim:
    """Validate a decoded claim document and build the claim."""
    _raise_schema_errors(validate_against_schema(obj, STEP_CLAIM_SCHEMA), "claim")
    return StepClaim.from_dict(obj)


def load_claim(path: Union[str, Path]) -> StepClaim:
    return parse_claim(load_json(path))


def parse_session(obj: Any) -> Session:
    """Validate a decoded session document and build the session."""
    _raise_schema_errors(validate_against_schema(obj, SESSION_SCHEMA), "session")
    output = Validators.validate_hex(obj["output"], "output")
    output.raise_if_invalid()
    return Session(
        output=output.sanitized_value,
        high_step=obj["high_step"],
        session_id=obj.get("session_id", ""),
    )


def load_session(path: Union[str, Path]) -> Session:
    return parse_session(load_json(path))
