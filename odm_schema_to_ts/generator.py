"""
TypeScript declaration generator.

Renders normalized models into TypeScript interfaces. Rendering is
deterministic: the same models always produce byte-identical text, and the
banner line is the only generated-by marker.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jinja2

from . import __version__
from .config import ExportStyle, OutputMode, TypeGenConfig
from .errors import ErrorCode, TypeGenError
from .ir_nodes import FieldType, NormalizedField, NormalizedModel
from .normalizer import validate_schema

logger = logging.getLogger(__name__)

BANNER_PREFIX = "// Auto-generated by odm_schema_to_ts"

BANNER = f"{BANNER_PREFIX} v{__version__}. Do not edit manually."

INDEX_FILE_NAME = "index.ts"

_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


@dataclass
class RenderedOutput:
    """Generated files, keyed by file name relative to the output location."""

    mode: OutputMode = OutputMode.SINGLE
    files: dict[str, str] = field(default_factory=dict)

    @property
    def single(self) -> str | None:
        """The single-file text, in single mode."""
        if self.mode is OutputMode.SINGLE:
            return next(iter(self.files.values()), None)
        return None


class TypeScriptGenerator:
    """Generates TypeScript declarations from normalized models."""

    TEMPLATE_LANG = "typescript"
    FILE_EXTENSION = "ts"

    TYPE_MAP = {
        FieldType.STRING: "string",
        FieldType.NUMBER: "number",
        FieldType.BOOLEAN: "boolean",
        FieldType.DATE: "Date",
        FieldType.ARRAY: "any[]",
        FieldType.OBJECT: "Record<string, any>",
        FieldType.ANY: "any",
        FieldType.NULL: "null",
        FieldType.UNDEFINED: "undefined",
    }

    # Placeholder type for reference fields (the referenced document's id)
    REFERENCE_TYPE = "string"

    INDENT = "  "

    def __init__(self, config: TypeGenConfig | None = None):
        """
        Initialize the generator.

        Args:
            config: Generation configuration (defaults apply when omitted)
        """
        self.config = config or TypeGenConfig()
        self._setup_templates()

    def _setup_templates(self) -> None:
        """Set up Jinja2 templates."""
        template_dir = Path(__file__).parent / "templates" / self.TEMPLATE_LANG
        self.jinja_env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            lstrip_blocks=True,
            trim_blocks=True,
        )
        self.prefix_template = self.jinja_env.get_template(f"prefix.{self.FILE_EXTENSION}.jinja2")
        self.interface_template = self.jinja_env.get_template(f"interface.{self.FILE_EXTENSION}.jinja2")
        self.index_template = self.jinja_env.get_template(f"index.{self.FILE_EXTENSION}.jinja2")

    # Public API

    def render(self, models: list[NormalizedModel]) -> RenderedOutput:
        """
        Render models according to the configured output mode.

        Raises:
            TypeGenError: SCHEMA_VALIDATION_FAILED if any model is invalid
        """
        if self.config.output_mode is OutputMode.SEPARATE:
            files = {f"{model.model_name}.{self.FILE_EXTENSION}": self.generate_model(model) for model in models}
            if self.config.generate_index and models:
                if INDEX_FILE_NAME in files:
                    logger.warning("A model is named 'index'; skipping the %s barrel so it is not overwritten", INDEX_FILE_NAME)
                else:
                    files[INDEX_FILE_NAME] = self.generate_index(models)
            return RenderedOutput(mode=OutputMode.SEPARATE, files=files)

        return RenderedOutput(mode=OutputMode.SINGLE, files={INDEX_FILE_NAME: self.generate(models)})

    def generate(self, models: list[NormalizedModel]) -> str:
        """Render all models into one file."""
        # A module has at most one default export
        parts = [self._render_interface(model, ExportStyle.EXPORT) for model in models]
        return self._assemble(parts)

    def generate_model(self, model: NormalizedModel) -> str:
        """Render one model into its own file."""
        return self._assemble([self._render_interface(model, self.config.export_style)])

    def generate_index(self, models: list[NormalizedModel]) -> str:
        """Render the barrel file re-exporting every model file."""
        text = self.index_template.render(
            banner=BANNER,
            model_names=[model.model_name for model in models],
            default_export=self.config.export_style is ExportStyle.EXPORT_DEFAULT,
        )
        return text.rstrip("\n") + "\n"

    def translate_field(self, field: NormalizedField, depth: int = 1) -> str:
        """Translate a field's type, falling back to ``any`` when it cannot be rendered."""
        try:
            return self.translate_type(field, depth)
        except (TypeError, ValueError, KeyError) as e:
            logger.warning("Cannot render type of field '%s' (%s); using 'any'", field.name, e)
            return self.TYPE_MAP[FieldType.ANY]

    def translate_type(self, field: NormalizedField, depth: int = 1) -> str:
        """
        Translate a field to a TypeScript type string.

        Args:
            field: The field
            depth: Nesting depth of the member, used to indent inline object types

        Raises:
            TypeError, ValueError: if an enum literal cannot be rendered
        """
        if field.is_array:
            element, is_union = self._element_type(field, depth)
            return f"({element})[]" if is_union else f"{element}[]"

        if field.is_enum:
            return self._enum_union(field.enum_values)

        if field.is_reference:
            return self._reference_type(field.reference_to)

        if field.nested is not None:
            return self._inline_object(field.nested, depth)

        return self.TYPE_MAP[field.type]

    def format_literal(self, value: Any) -> str:
        """Format an enum value as a TypeScript literal type."""
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, str):
            return json.dumps(value)
        if isinstance(value, (int, float)):
            if isinstance(value, float) and not math.isfinite(value):
                raise ValueError(f"non-finite enum value {value!r}")
            return repr(value)
        raise TypeError(f"unsupported enum value {value!r}")

    # Type rendering

    def _element_type(self, field: NormalizedField, depth: int) -> tuple[str, bool]:
        """Render an array's element type; the flag tells whether it is a union."""
        if field.is_enum:
            return self._enum_union(field.enum_values), len(field.enum_values) > 1
        if field.nested is not None:
            return self._inline_object(field.nested, depth), False
        if field.is_reference:
            return self._reference_type(field.reference_to), self.config.resolve_references and bool(field.reference_to)
        return self.TYPE_MAP[field.array_of or FieldType.ANY], False

    def _enum_union(self, values: tuple[Any, ...]) -> str:
        return " | ".join(self.format_literal(value) for value in values)

    def _reference_type(self, reference_to: str | None) -> str:
        if self.config.resolve_references and reference_to:
            # Forward reference: the target may be rendered later or in another file
            return f"{self.REFERENCE_TYPE} | {reference_to}"
        return self.REFERENCE_TYPE

    def _inline_object(self, nested: tuple[NormalizedField, ...], depth: int) -> str:
        if not nested:
            return "{}"
        lines = self._member_lines(nested, depth + 1)
        return "{\n" + "\n".join(lines) + "\n" + self.INDENT * depth + "}"

    # Member and interface rendering

    def _member_name(self, name: str) -> str:
        return name if _IDENTIFIER.match(name) else json.dumps(name)

    def _comment_lines(self, field: NormalizedField) -> list[str]:
        if not self.config.include_comments:
            return []

        notes = []
        if field.description:
            notes.append(str(field.description))
        if field.is_unique:
            notes.append("@unique")
        if field.default_value is not None and not callable(field.default_value):
            try:
                notes.append(f"@default {json.dumps(field.default_value, sort_keys=True)}")
            except (TypeError, ValueError):
                logger.debug("Default of field '%s' is not serializable, skipped in comments", field.name)

        return self._doc_comment(notes)

    def _doc_comment(self, notes: list[str]) -> list[str]:
        """Wrap notes in a JSDoc block, one line per note line."""
        # "*/" inside a note would close the comment early
        lines = [line.replace("*/", "*\\/") for note in notes for line in note.splitlines() or [""]]
        if not lines:
            return []
        if len(lines) == 1:
            return [f"/** {lines[0]} */"]
        return ["/**", *(f" * {line}".rstrip() for line in lines), " */"]

    def _member_lines(self, fields: tuple[NormalizedField, ...], depth: int) -> list[str]:
        indent = self.INDENT * depth
        readonly = "readonly " if self.config.readonly else ""
        lines = []
        for field in fields:
            lines.extend(indent + line for line in self._comment_lines(field))
            optional = "" if field.required else "?"
            lines.append(f"{indent}{readonly}{self._member_name(field.name)}{optional}: {self.translate_field(field, depth)};")
        return lines

    def _render_interface(self, model: NormalizedModel, export_style: ExportStyle) -> str:
        result = validate_schema(model)
        if not result.valid:
            raise TypeGenError(
                ErrorCode.SCHEMA_VALIDATION_FAILED,
                {"model": model.model_name or "<unnamed>", "errors": "; ".join(result.errors)},
            )

        doc_lines = []
        if self.config.include_comments:
            if model.description:
                doc_lines = self._doc_comment([str(model.description)])
            elif model.table_name != model.model_name:
                doc_lines = self._doc_comment([f"Collection: {model.table_name}"])

        return self.interface_template.render(
            doc_lines=doc_lines,
            export_keyword=export_style.value,
            name=model.model_name,
            member_lines=self._member_lines(model.fields, 1),
        )

    def _assemble(self, parts: list[str]) -> str:
        prefix = self.prefix_template.render(banner=BANNER)
        return "\n\n".join([prefix.rstrip("\n"), *(part.rstrip("\n") for part in parts)]) + "\n"
