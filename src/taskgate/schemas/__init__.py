"""taskgate JSON Schema definitions and validation utilities.

Schemas for the records written by the filesystem repositories.

Schemas:
    - work_item.schema.json: One work item object
    - dependency.schema.json: One dependency edge
    - role_transition.schema.json: One transition audit record

Usage:
    from taskgate.schemas import validate_work_item

    validate_work_item(data)  # Raises jsonschema.ValidationError if invalid
"""

from __future__ import annotations

import json
from functools import cache
from importlib.resources import files
from typing import Any

import jsonschema


@cache
def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema from the schemas package.

    Args:
        name: Schema filename (e.g., 'work_item.schema.json')
    """
    schema_text = files("taskgate.schemas").joinpath(name).read_text()
    result: dict[str, Any] = json.loads(schema_text)
    return result


def get_work_item_schema() -> dict[str, Any]:
    return _load_schema("work_item.schema.json")


def get_dependency_schema() -> dict[str, Any]:
    return _load_schema("dependency.schema.json")


def get_role_transition_schema() -> dict[str, Any]:
    return _load_schema("role_transition.schema.json")


def validate_work_item(data: dict[str, Any]) -> None:
    """Validate a serialized work item.

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_work_item_schema())


def validate_dependency(data: dict[str, Any]) -> None:
    """Validate a serialized dependency edge.

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_dependency_schema())


def validate_role_transition(data: dict[str, Any]) -> None:
    """Validate a serialized transition record.

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_role_transition_schema())


__all__ = [
    "get_work_item_schema",
    "get_dependency_schema",
    "get_role_transition_schema",
    "validate_work_item",
    "validate_dependency",
    "validate_role_transition",
]
