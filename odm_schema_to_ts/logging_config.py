"""Logging configuration for the CLI.

Defaults:
- WARNING level (quiet operation)
- --debug flag: DEBUG level with module names and timestamps
- ODM_SCHEMA_TO_TS_LOG_LEVEL env var: overrides both, for CI/scripting

Library code only ever calls ``logging.getLogger(__name__)``; handlers are
installed here, once, by the CLI entrypoint.
"""

import logging
import os
import sys

LOGGER_NAME = "odm_schema_to_ts"

ENV_LOG_LEVEL = "ODM_SCHEMA_TO_TS_LOG_LEVEL"

_DEBUG_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"
_DEFAULT_FORMAT = "%(levelname)s: %(message)s"

# The file watcher logs every raw filesystem event at INFO
_NOISY_LOGGERS = ("watchfiles",)

logger = logging.getLogger(__name__)


def _parse_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    parsed = logging.getLevelName(level.strip().upper())
    if not isinstance(parsed, int):
        raise ValueError(f"Unknown log level: {level}")
    return parsed


def resolve_level(debug: bool = False, level: int | str | None = None, default: int = logging.WARNING) -> int:
    """Resolve the effective level.

    Priority: explicit ``level`` > env var > ``debug`` > ``default``. An
    unknown env var level is ignored with a warning; an unknown explicit
    ``level`` raises ValueError.
    """
    if level is not None:
        return _parse_level(level)
    if env_level := os.environ.get(ENV_LOG_LEVEL):
        try:
            return _parse_level(env_level)
        except ValueError:
            logger.warning("Ignoring %s=%r: unknown log level", ENV_LOG_LEVEL, env_level)
    if debug:
        return logging.DEBUG
    return default


def configure_logging(
    *,
    debug: bool = False,
    level: int | str | None = None,
    default: int = logging.WARNING,
    stream=None,
) -> None:
    """Install a single stderr handler on the package logger.

    Calling it again replaces the previous handler, so it is safe to call
    from every command.
    """
    resolved_level = resolve_level(debug, level, default)
    log_format = _DEBUG_FORMAT if resolved_level <= logging.DEBUG else _DEFAULT_FORMAT

    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(resolved_level)
    package_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved_level)
    handler.setFormatter(logging.Formatter(log_format))
    package_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    package_logger.debug("Logging configured: level=%s", logging.getLevelName(resolved_level))
