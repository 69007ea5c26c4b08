"""
Configuration for the type generator.

Merge order: built-in defaults < config file < explicit overrides. Config
files use camelCase keys (``modelsPath``, ``outputMode``...), attributes are
snake_case.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import ErrorCode, TypeGenError
from .extractor import DEFAULT_EXCLUDE, DEFAULT_PATTERN
from .ir_nodes import FieldType

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "odm_schema_to_ts.config.json"

SUPPORTED_SOURCES = ("odm",)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class OutputMode(str, Enum):
    """Whether all models go to one file or one file per model."""

    SINGLE = "single"
    SEPARATE = "separate"


class ExportStyle(str, Enum):
    """How generated declarations are exported."""

    EXPORT = "export"
    EXPORT_DEFAULT = "export default"


def _to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _to_camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass
class TypeGenConfig:
    """Configuration options for type generation."""

    # Schema source kind
    source: str = "odm"

    # Root directory scanned for model modules
    models_path: Path = Path("./models")

    # Output file (single mode) or directory
    output_path: Path = Path("./types")

    output_mode: OutputMode = OutputMode.SINGLE

    # Debounce delay for watch mode, in milliseconds
    watch_debounce: int = 300

    export_style: ExportStyle = ExportStyle.EXPORT

    # Emit `string | Target` for reference fields instead of `string`
    resolve_references: bool = False

    # Glob for model files, relative to models_path
    pattern: str = DEFAULT_PATTERN

    # Globs excluded from the scan
    exclude: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE))

    # Marker name -> IR type name, merged over the default type map
    custom_type_map: dict[str, str] = field(default_factory=dict)

    # Add JSDoc comments (description, unique, default) above members
    include_comments: bool = True

    # Emit members as readonly
    readonly: bool = False

    # Write an index.ts barrel in separate mode
    generate_index: bool = True

    # Fail the whole run when any model is invalid, instead of skipping it
    strict_validation: bool = False

    # Where the config was loaded from
    config_path: Path | None = None
    project_root: Path | None = None

    @staticmethod
    def from_dict(d: dict) -> TypeGenConfig:
        """Create a config from a dictionary (camelCase or snake_case keys)."""
        config = TypeGenConfig()
        for k, v in d.items():
            attr = _to_snake(k)
            if v is None or not hasattr(config, attr):
                continue
            if attr in ("models_path", "output_path", "config_path", "project_root"):
                v = Path(v)
            elif attr == "output_mode":
                v = OutputMode(v)
            elif attr == "export_style":
                v = ExportStyle(v)
            setattr(config, attr, v)
        return config

    def to_dict(self) -> dict:
        """Convert config to a dictionary with camelCase keys, as stored on disk."""
        d = {}
        for f in fields(self):
            if f.name in ("config_path", "project_root"):
                continue
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, Path):
                value = str(value)
            d[_to_camel(f.name)] = value
        return d

    def validate(self) -> list[str]:
        """Return a list of configuration problems (empty when valid)."""
        errors = []

        if self.source and self.source not in SUPPORTED_SOURCES:
            errors.append(f"source must be one of: {', '.join(SUPPORTED_SOURCES)}")

        if not isinstance(self.watch_debounce, int) or isinstance(self.watch_debounce, bool) or self.watch_debounce < 0:
            errors.append("watchDebounce must be a non-negative integer (milliseconds)")

        if not isinstance(self.exclude, list) or not all(isinstance(p, str) for p in self.exclude):
            errors.append("exclude must be a list of glob patterns")

        if not isinstance(self.custom_type_map, dict):
            errors.append("customTypeMap must be an object")
        else:
            allowed = {t.value for t in FieldType}
            for marker, type_name in self.custom_type_map.items():
                if type_name not in allowed:
                    errors.append(f"customTypeMap['{marker}'] must be one of: {', '.join(sorted(allowed))}")

        return errors

    def resolve_paths(self, project_root: Path) -> None:
        """Make models_path and output_path absolute, relative to project_root."""
        self.project_root = project_root
        if not self.models_path.is_absolute():
            self.models_path = (project_root / self.models_path).resolve()
        if not self.output_path.is_absolute():
            self.output_path = (project_root / self.output_path).resolve()


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Look for the config file in start_dir and its parents."""
    current = (start_dir or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def load_config_file(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, encoding="utf-8") as f:
            content = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise TypeGenError(ErrorCode.CONFIG_INVALID, {"config": str(config_path), "reason": str(e)}, cause=e) from e

    if not isinstance(content, dict):
        raise TypeGenError(ErrorCode.CONFIG_INVALID, {"config": str(config_path), "reason": "top level must be an object"})
    return content


def load_config(
    config_path: Path | str | None = None,
    project_root: Path | str | None = None,
    overrides: dict[str, Any] | None = None,
) -> TypeGenConfig:
    """
    Load the complete configuration.

    Args:
        config_path: Explicit config file; searched upwards from project_root when omitted
        project_root: Base for relative paths (defaults to the current directory)
        overrides: Values taking precedence over the file; None values are ignored

    Returns:
        A validated configuration with absolute paths

    Raises:
        TypeGenError: CONFIG_INVALID on any problem
    """
    root = Path(project_root or Path.cwd()).resolve()
    found = Path(config_path) if config_path else find_config_file(root)

    merged: dict[str, Any] = {}
    if found is not None:
        logger.debug("Loading config from %s", found)
        merged.update(load_config_file(found))
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        config = TypeGenConfig.from_dict(merged)
    except (ValueError, TypeError) as e:
        raise TypeGenError(ErrorCode.CONFIG_INVALID, {"reason": str(e)}, cause=e) from e

    errors = config.validate()
    if errors:
        raise TypeGenError(ErrorCode.CONFIG_INVALID, {"reason": "; ".join(errors)})

    config.config_path = found
    config.resolve_paths(root)
    return config


def create_config_file(project_root: Path | str, custom: dict[str, Any] | None = None) -> Path:
    """
    Write a default config file into project_root.

    Raises:
        TypeGenError: CONFIG_INVALID if a config file already exists
    """
    config_path = Path(project_root) / CONFIG_FILE_NAME
    if config_path.exists():
        raise TypeGenError(ErrorCode.CONFIG_INVALID, {"config": str(config_path), "reason": "config file already exists"})

    config = TypeGenConfig.from_dict(custom or {})
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
        f.write("\n")
    return config_path
