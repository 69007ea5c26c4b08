"""
Error taxonomy for the type generator.

Every fatal condition carries a stable code, a short cause description
and a list of actionable suggestions, so the CLI never has to show a bare
traceback to explain what went wrong.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Stable error codes, rendered as ``E<value>``."""

    NO_SOURCE_DETECTED = 1001
    NO_MODELS_FOUND = 1002
    CONFIG_INVALID = 1003
    WRITE_PERMISSION_DENIED = 1004
    SCHEMA_PARSE_FAILED = 1005
    SCHEMA_VALIDATION_FAILED = 1006
    FILE_WRITE_FAILED = 1007
    UNSUPPORTED_SOURCE = 1008

    @property
    def is_no_input(self) -> bool:
        """Whether the error means "nothing to generate" rather than a crash."""
        return self in (ErrorCode.NO_SOURCE_DETECTED, ErrorCode.NO_MODELS_FOUND, ErrorCode.UNSUPPORTED_SOURCE)


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.NO_SOURCE_DETECTED: "No supported schema source detected",
    ErrorCode.NO_MODELS_FOUND: "No models found",
    ErrorCode.CONFIG_INVALID: "Invalid configuration",
    ErrorCode.WRITE_PERMISSION_DENIED: "No write permission",
    ErrorCode.SCHEMA_PARSE_FAILED: "Schema parsing failed",
    ErrorCode.SCHEMA_VALIDATION_FAILED: "Schema validation failed",
    ErrorCode.FILE_WRITE_FAILED: "File write failed",
    ErrorCode.UNSUPPORTED_SOURCE: "Unsupported schema source",
}


SUGGESTIONS: dict[ErrorCode, list[str]] = {
    ErrorCode.NO_SOURCE_DETECTED: [
        "Set 'source' in odm_schema_to_ts.config.json (currently supported: odm)",
        "Check that models_path points at your model modules",
    ],
    ErrorCode.NO_MODELS_FOUND: [
        "Check that modelsPath points to the correct directory",
        "Verify the models directory contains .py files declaring models",
        "Check the exclude patterns in your config",
    ],
    ErrorCode.CONFIG_INVALID: [
        "Check odm_schema_to_ts.config.json syntax",
        "Verify option values (outputMode, exportStyle, customTypeMap)",
        "Run 'odm_schema_to_ts init' to create a valid config",
    ],
    ErrorCode.WRITE_PERMISSION_DENIED: [
        "Check output directory permissions",
        "Ensure the output directory exists or can be created",
    ],
    ErrorCode.SCHEMA_PARSE_FAILED: [
        "Check for syntax errors in schema files",
        "Check the file can be imported without errors",
        "Verify the schema uses supported field shapes",
    ],
    ErrorCode.SCHEMA_VALIDATION_FAILED: [
        "Check the model has a name",
        "Verify all fields have names and types",
        "Review the validation errors for details",
    ],
    ErrorCode.FILE_WRITE_FAILED: [
        "Check disk space",
        "Verify the output path is writable",
        "Ensure no other process is holding the file",
    ],
    ErrorCode.UNSUPPORTED_SOURCE: [
        "Currently supported sources: odm",
        "Set 'source' to a supported value in your config",
    ],
}


class TypeGenError(Exception):
    """Base error type for the generator.

    Example:
        >>> err = TypeGenError(ErrorCode.NO_MODELS_FOUND, {"models_path": "./models"})
        >>> str(err)
        '[E1002] No models found'
    """

    def __init__(
        self,
        code: ErrorCode,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.details = details or {}
        self.cause = cause
        super().__init__(str(self))

    @property
    def message(self) -> str:
        return ERROR_MESSAGES.get(self.code, "Unknown error")

    @property
    def suggestions(self) -> list[str]:
        return list(SUGGESTIONS.get(self.code, []))

    @property
    def error_id(self) -> str:
        return f"E{self.code.value}"

    @property
    def is_no_input(self) -> bool:
        return self.code.is_no_input

    def __str__(self) -> str:
        return f"[{self.error_id}] {self.message}"

    def __repr__(self) -> str:
        return f"TypeGenError(code={self.code!r}, details={self.details!r})"

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging and result reporting."""
        return {
            "error_id": self.error_id,
            "code": self.code.value,
            "message": self.message,
            "suggestions": self.suggestions,
            "details": {k: str(v) for k, v in self.details.items()},
        }


def format_error(error: BaseException, verbose: bool = False) -> str:
    """Format an error for console display.

    Args:
        error: The error to format
        verbose: Whether to append the cause's traceback

    Returns:
        Multi-line human-readable description
    """
    lines = [""]

    if isinstance(error, TypeGenError):
        lines.append(f"Error ({error.error_id}): {error.message}")
        lines.append("")

        if error.suggestions:
            lines.append("Suggestions:")
            lines.extend(f"  {suggestion}" for suggestion in error.suggestions)
            lines.append("")

        if error.details:
            lines.append("Details:")
            lines.extend(f"  {key}: {value}" for key, value in error.details.items())
            lines.append("")

        if verbose and error.cause is not None:
            import traceback

            lines.append("Caused by:")
            lines.extend(traceback.format_exception(error.cause))
    else:
        lines.append(f"Error: {error}")
        lines.append("")

    return "\n".join(lines)
