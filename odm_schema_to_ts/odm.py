"""
Declarative vocabulary for writing document models in Python.

Model modules describe their documents with plain Python values, the same
shapes a Mongoose schema uses::

    from odm_schema_to_ts.odm import Schema, Types, model

    user_schema = Schema({
        "name": {"type": str, "required": True},
        "age": int,
        "tags": [str],
        "role": {"type": str, "enum": ["admin", "user"]},
        "company": {"type": Types.ObjectId, "ref": "Company"},
        "profile": {"bio": str, "avatar": str},
    })

    User = model("User", user_schema)

The extractor only relies on attributes (``Model.schema``,
``Model.model_name``, ``Schema.obj``, ``Schema.paths``), so any object with
the same shape is accepted.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


class Types:
    """Schema type markers that have no builtin Python equivalent."""

    class String:
        pass

    class Number:
        pass

    class Boolean:
        pass

    class Date:
        pass

    class Buffer:
        pass

    class ObjectId:
        pass

    class Mixed:
        pass

    class Decimal128:
        pass

    class Map:
        pass


@dataclass
class PathInfo:
    """Per-path metadata derived from a schema definition."""

    is_required: bool = False


class Schema:
    """A document schema: a field map plus derived path metadata."""

    def __init__(self, obj: Mapping[str, Any], description: str | None = None):
        self.obj = dict(obj)
        self.description = description
        self.paths: dict[str, PathInfo] = {name: PathInfo(is_required=_declares_required(d)) for name, d in self.obj.items()}

    def __repr__(self) -> str:
        return f"Schema({list(self.obj)!r})"


def _declares_required(definition: Any) -> bool:
    if isinstance(definition, Mapping):
        return definition.get("required") is True
    return False


@dataclass
class Model:
    """A named model bound to a schema."""

    model_name: str
    schema: Schema
    collection: str | None = None


def model(name: str, schema: Schema | Mapping[str, Any], collection: str | None = None) -> Model:
    """Declare a model. A plain mapping is wrapped in a Schema."""
    if not isinstance(schema, Schema):
        schema = Schema(schema)
    return Model(model_name=name, schema=schema, collection=collection)
