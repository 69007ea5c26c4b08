"""
Schema normalizer.

Every extractor outputs raw field dictionaries; this module turns them into
the frozen IR nodes, filling every optional attribute with its default so
that downstream code never has to distinguish "absent" from "unset".

Example raw model::

    {
        "model_name": "User",
        "fields": [
            {"name": "email", "type": "string"},
            {"name": "age", "type": "number", "required": False},
        ],
    }
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .ir_nodes import FieldType, NormalizedField, NormalizedModel


@dataclass
class ValidationResult:
    """Outcome of validate_schema. Never raised, always returned."""

    valid: bool = True
    errors: list[str] = field(default_factory=list)


def normalize_field(raw: Mapping[str, Any] | NormalizedField) -> NormalizedField:
    """Build a fully-initialized NormalizedField from a raw field dictionary."""
    if isinstance(raw, NormalizedField):
        return raw

    nested = raw.get("nested")
    array_of = raw.get("array_of")
    enum_values = tuple(raw.get("enum_values") or ())

    return NormalizedField(
        name=raw.get("name") or "",
        type=FieldType.coerce(raw.get("type") or FieldType.ANY),
        # Only an explicit False makes a field optional
        required=raw.get("required") is not False,
        is_array=bool(raw.get("is_array")),
        array_of=FieldType.coerce(array_of) if array_of is not None else None,
        is_enum=bool(raw.get("is_enum")) and len(enum_values) > 0,
        enum_values=enum_values,
        is_reference=bool(raw.get("is_reference")),
        reference_to=raw.get("reference_to"),
        is_primary=bool(raw.get("is_primary")),
        is_unique=bool(raw.get("is_unique")),
        default_value=raw.get("default_value"),
        description=raw.get("description"),
        nested=tuple(normalize_field(f) for f in nested) if nested is not None else None,
    )


def normalize_model(raw: Mapping[str, Any]) -> NormalizedModel:
    """Build a NormalizedModel, defaulting table_name and source."""
    model_name = raw.get("model_name") or ""
    return NormalizedModel(
        model_name=model_name,
        table_name=raw.get("table_name") or model_name,
        fields=tuple(normalize_field(f) for f in (raw.get("fields") or ())),
        source=raw.get("source") or "unknown",
        file_path=str(raw["file_path"]) if raw.get("file_path") else None,
        description=raw.get("description"),
    )


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def validate_schema(model: NormalizedModel | Mapping[str, Any]) -> ValidationResult:
    """Check a model is renderable.

    Accepts a NormalizedModel or a model-shaped mapping.

    Returns:
        ValidationResult with one message per problem found
    """
    errors: list[str] = []

    if not _get(model, "model_name"):
        errors.append("Model must have a name")

    fields = _get(model, "fields")
    if not isinstance(fields, Sequence) or isinstance(fields, (str, bytes)):
        errors.append("Model must have a fields sequence")
        fields = ()

    for index, f in enumerate(fields):
        name = _get(f, "name")
        if not name:
            errors.append(f"Field at index {index} must have a name")
        if not _get(f, "type"):
            errors.append(f'Field "{name}" must have a type')

    return ValidationResult(valid=not errors, errors=errors)
