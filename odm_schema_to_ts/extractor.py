"""
ODM schema extractor.

Phase 1 of the pipeline: load model modules, find the schemas they export
and turn every field definition into a raw field dictionary for the
normalizer.

Example model module::

    user_schema = Schema({
        "name": {"type": str, "required": True},
        "email": str,
        "posts": [{"type": Types.ObjectId, "ref": "Post"}],
    })
    User = model("User", user_schema)
"""

from __future__ import annotations

import enum
import importlib.util
import itertools
import logging
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import ModuleType
from typing import Any

from .errors import ErrorCode, TypeGenError
from .ir_nodes import FieldType, NormalizedModel
from .normalizer import normalize_model
from .raw_shapes import (
    ArrayWrapper,
    BareEnumObject,
    NestedObject,
    PrimitiveMarker,
    RawShape,
    TypedObject,
    classify,
    schema_fields,
)
from .utils import matches_any, upper_first

logger = logging.getLogger(__name__)

SOURCE_NAME = "odm"

DEFAULT_PATTERN = "**/*.py"

DEFAULT_EXCLUDE = [
    "**/__pycache__/**",
    "**/.venv/**",
    "**/venv/**",
    "**/site-packages/**",
    "**/tests/**",
    "**/test_*.py",
    "**/*_test.py",
    "**/conftest.py",
]

# Type marker name -> IR type
DEFAULT_TYPE_MAP: dict[str, FieldType] = {
    # Schema vocabulary
    "String": FieldType.STRING,
    "Number": FieldType.NUMBER,
    "Boolean": FieldType.BOOLEAN,
    "Date": FieldType.DATE,
    "Buffer": FieldType.STRING,
    "ObjectId": FieldType.STRING,
    "Mixed": FieldType.OBJECT,
    "Decimal128": FieldType.NUMBER,
    "Map": FieldType.OBJECT,
    "Array": FieldType.ARRAY,
    "UUID": FieldType.STRING,
    # Python builtins and stdlib
    "str": FieldType.STRING,
    "int": FieldType.NUMBER,
    "float": FieldType.NUMBER,
    "bool": FieldType.BOOLEAN,
    "datetime": FieldType.DATE,
    "date": FieldType.DATE,
    "bytes": FieldType.STRING,
    "bytearray": FieldType.STRING,
    "Decimal": FieldType.NUMBER,
    "Any": FieldType.OBJECT,
    "dict": FieldType.OBJECT,
    "list": FieldType.ARRAY,
    "NoneType": FieldType.NULL,
}

# Module attributes checked for a single default export
_FALLBACK_EXPORTS = ("schema", "default", "model")

_module_counter = itertools.count()


@dataclass
class ExtractedSchema:
    """A schema found in a model module."""

    model_name: str
    schema: Any
    table_name: str | None = None


@dataclass
class FieldTypeInfo:
    """Resolved type information for one raw field definition."""

    type: FieldType = FieldType.ANY
    is_array: bool = False
    array_of: FieldType | None = None
    is_enum: bool = False
    enum_values: tuple[Any, ...] = ()
    is_reference: bool = False
    reference_to: str | None = None
    nested: list[dict[str, Any]] | None = None


@dataclass
class ExtractionFailure:
    """A model file that could not be loaded."""

    file_path: Path
    error: TypeGenError


@dataclass
class ExtractionBatch:
    """Result of extracting every model file under a directory."""

    files: list[Path] = field(default_factory=list)
    models: list[NormalizedModel] = field(default_factory=list)
    failures: list[ExtractionFailure] = field(default_factory=list)


def _enum_values(value: Any) -> tuple[Any, ...]:
    if value is None:
        return ()
    if isinstance(value, type) and issubclass(value, enum.Enum):
        return tuple(member.value for member in value)
    if isinstance(value, Mapping):
        return tuple(value.get("values") or ())
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return ()


def _reference_name(ref: Any) -> str | None:
    if ref is None or ref == "":
        return None
    if isinstance(ref, str):
        return ref
    name = getattr(ref, "model_name", None) or getattr(ref, "modelName", None) or getattr(ref, "__name__", None)
    return str(name) if name else None


def _required_flag(value: Any) -> bool | None:
    # [True, "message"] carries the flag first
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    return value is not False


def _model_name_of(value: Any) -> str | None:
    if isinstance(value, type):
        return None
    name = getattr(value, "model_name", None) or getattr(value, "modelName", None)
    if isinstance(name, str) and name and schema_fields(getattr(value, "schema", None)) is not None:
        return name
    return None


def _is_bare_schema(value: Any) -> bool:
    return not isinstance(value, type) and schema_fields(value) is not None


class OdmSchemaExtractor:
    """Extracts normalized models from ODM model modules."""

    def __init__(self, custom_type_map: Mapping[str, FieldType | str] | None = None):
        """
        Initialize the extractor.

        Args:
            custom_type_map: Marker name -> type name overrides, merged over DEFAULT_TYPE_MAP
        """
        self.type_map = dict(DEFAULT_TYPE_MAP)
        for name, type_name in (custom_type_map or {}).items():
            self.type_map[name] = FieldType(type_name)

    # Field type extraction

    def extract_field_type(self, raw: Any) -> FieldTypeInfo:
        """Resolve the type of a raw field definition."""
        return self._resolve(classify(raw))

    def _resolve(self, shape: RawShape) -> FieldTypeInfo:
        match shape:
            case ArrayWrapper(element=None):
                return FieldTypeInfo(type=FieldType.ARRAY, is_array=True, array_of=FieldType.ANY)

            case ArrayWrapper(element=element):
                inner = self._resolve(element)
                return FieldTypeInfo(
                    type=FieldType.ARRAY,
                    is_array=True,
                    array_of=inner.type,
                    is_enum=inner.is_enum,
                    enum_values=inner.enum_values,
                    is_reference=inner.is_reference,
                    reference_to=inner.reference_to,
                    nested=inner.nested,
                )

            case TypedObject(type_shape=type_shape, options=options):
                info = self._resolve(type_shape)
                values = _enum_values(options.get("enum"))
                if values:
                    info = replace(info, is_enum=True, enum_values=values)
                reference_to = _reference_name(options.get("ref"))
                if reference_to:
                    info = replace(info, is_reference=True, reference_to=reference_to)
                return info

            case BareEnumObject(options=options):
                values = _enum_values(options.get("enum"))
                return FieldTypeInfo(type=FieldType.STRING, is_enum=bool(values), enum_values=values)

            case NestedObject(fields=fields):
                return FieldTypeInfo(type=FieldType.OBJECT, nested=self.parse_schema_fields(fields))

            case PrimitiveMarker(name=name):
                return FieldTypeInfo(type=self.type_map.get(name, FieldType.ANY))

        return FieldTypeInfo()

    def parse_schema_fields(self, obj: Mapping[str, Any], paths: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """
        Parse a schema field map into raw field dictionaries.

        Args:
            obj: Field name -> raw definition, in declaration order
            paths: Optional per-path metadata (``is_required``)

        Returns:
            Raw field dictionaries, in declaration order
        """
        fields = []

        for name, definition in obj.items():
            # Internal fields
            if not isinstance(name, str) or name.startswith("_"):
                continue

            shape = classify(definition)
            info = self._resolve(shape)
            options: Mapping[str, Any] = shape.options if isinstance(shape, (TypedObject, BareEnumObject)) else {}

            required = _required_flag(options.get("required"))
            path_info = paths.get(name) if paths else None
            if getattr(path_info, "is_required", False) or getattr(path_info, "isRequired", False):
                required = True

            if info.is_enum and info.is_reference:
                logger.warning("Field '%s' sets both 'enum' and 'ref'; the enum takes precedence", name)

            fields.append(
                {
                    "name": name,
                    "type": info.type,
                    "required": required,
                    "is_array": info.is_array,
                    "array_of": info.array_of,
                    "is_enum": info.is_enum,
                    "enum_values": info.enum_values,
                    "is_reference": info.is_reference,
                    "reference_to": info.reference_to,
                    "is_unique": options.get("unique") is True,
                    "default_value": options.get("default"),
                    "description": options.get("description"),
                    "nested": info.nested,
                }
            )

        return fields

    # Module loading

    def _load_module(self, path: Path) -> ModuleType:
        """Execute a model file as a fresh module, bypassing the import cache."""
        module_name = f"_odm_schema_to_ts_model_{next(_module_counter)}_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load {path} as a Python module")

        module = importlib.util.module_from_spec(spec)
        # Registered only while executing, so dataclasses and friends can resolve it
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        finally:
            sys.modules.pop(module_name, None)
        return module

    def _exports(self, module: ModuleType) -> list[tuple[str, Any]]:
        names = getattr(module, "__all__", None)
        if names is None:
            names = [name for name in vars(module) if not name.startswith("_")]
        return [(name, getattr(module, name, None)) for name in names]

    def extract_schemas_from_file(self, path: Path | str) -> list[ExtractedSchema] | None:
        """
        Find the schemas a model file exports.

        Args:
            path: Path to the model module

        Returns:
            Extracted schemas in export order, or None if the file exports nothing recognizable

        Raises:
            TypeGenError: SCHEMA_PARSE_FAILED if the module cannot be executed
        """
        path = Path(path)
        try:
            module = self._load_module(path)
        except Exception as e:
            raise TypeGenError(
                ErrorCode.SCHEMA_PARSE_FAILED,
                {"file": str(path), "reason": f"{type(e).__name__}: {e}"},
                cause=e,
            ) from e

        exports = self._exports(module)

        results = []
        for _name, value in exports:
            model_name = _model_name_of(value)
            if model_name:
                results.append(
                    ExtractedSchema(
                        model_name=model_name,
                        schema=value.schema,
                        table_name=getattr(value, "collection", None),
                    )
                )
        if results:
            return results

        default_name = upper_first(path.stem)
        for name in _FALLBACK_EXPORTS:
            value = getattr(module, name, None)
            model_name = _model_name_of(value)
            if model_name:
                return [ExtractedSchema(model_name=model_name, schema=value.schema, table_name=getattr(value, "collection", None))]
            if _is_bare_schema(value) or (name != "model" and isinstance(value, Mapping) and value):
                return [ExtractedSchema(model_name=default_name, schema=value)]

        bare = [value for _name, value in exports if _is_bare_schema(value)]
        if len(bare) == 1:
            return [ExtractedSchema(model_name=default_name, schema=bare[0])]

        return None

    def parse_model_file(self, path: Path | str) -> list[NormalizedModel] | None:
        """Extract and normalize every model of a file. None if it has none."""
        extracted = self.extract_schemas_from_file(path)
        if not extracted:
            return None

        models = []
        for item in extracted:
            obj = schema_fields(item.schema)
            if obj is None:
                obj = item.schema
            paths = getattr(item.schema, "paths", None)
            models.append(
                normalize_model(
                    {
                        "model_name": item.model_name,
                        "table_name": item.table_name,
                        "fields": self.parse_schema_fields(obj, paths if isinstance(paths, Mapping) else None),
                        "source": SOURCE_NAME,
                        "file_path": str(path),
                        "description": getattr(item.schema, "description", None),
                    }
                )
            )
        return models

    # Directory scanning

    def find_model_files(
        self,
        directory: Path | str,
        pattern: str = DEFAULT_PATTERN,
        exclude: list[str] | None = None,
    ) -> list[Path]:
        """
        Find model files under a directory, sorted for stable model order.

        Raises:
            TypeGenError: NO_MODELS_FOUND if the directory does not exist
        """
        root = Path(directory)
        if not root.is_dir():
            raise TypeGenError(ErrorCode.NO_MODELS_FOUND, {"models_path": str(root), "reason": "directory does not exist"})

        exclude = DEFAULT_EXCLUDE if exclude is None else exclude
        return sorted(path for path in root.glob(pattern) if path.is_file() and not matches_any(path.relative_to(root).as_posix(), exclude))

    def parse_models(
        self,
        directory: Path | str,
        pattern: str = DEFAULT_PATTERN,
        exclude: list[str] | None = None,
    ) -> ExtractionBatch:
        """
        Extract models from every file under a directory.

        A file that fails to load is logged, recorded in the batch failures
        and skipped; the remaining files are still processed.
        """
        batch = ExtractionBatch(files=self.find_model_files(directory, pattern, exclude))
        seen: set[str] = set()

        for file_path in batch.files:
            try:
                models = self.parse_model_file(file_path)
            except TypeGenError as e:
                logger.warning("Failed to parse %s: %s", file_path, e.details.get("reason", e))
                batch.failures.append(ExtractionFailure(file_path=file_path, error=e))
                continue

            if models is None:
                logger.debug("No models found in %s", file_path)
                continue

            for model in models:
                # Re-exported models show up in several modules
                if model.model_name in seen:
                    logger.debug("Skipping duplicate model %s from %s", model.model_name, file_path)
                    continue
                seen.add(model.model_name)
                batch.models.append(model)

        logger.info("Extracted %d model(s) from %d file(s)", len(batch.models), len(batch.files))
        return batch
