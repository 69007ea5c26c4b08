"""
Safe file writer for generated declarations.

Writes are atomic (temp file + rename) and backed up: after a write the
target holds either the new content or, on any failure, exactly what it
held before.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ErrorCode, TypeGenError
from .generator import BANNER_PREFIX

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".backup"


@dataclass
class WriteResult:
    """Outcome of writing one file."""

    path: Path
    success: bool = True
    backup_created: bool = False
    error: TypeGenError | None = None


@dataclass
class BatchWriteResult:
    """Aggregate outcome of writing several files."""

    results: list[WriteResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    @property
    def success(self) -> bool:
        return self.failed == 0


@dataclass
class CleanResult:
    """Outcome of removing generated files."""

    files: list[Path] = field(default_factory=list)
    dry_run: bool = False


def count_braces(content: str) -> tuple[int, int]:
    """Count structural braces, skipping string literals and comments.

    Returns:
        (open, close) counts; an unterminated comment ends the scan
    """
    opened = closed = 0
    i = 0
    n = len(content)
    while i < n:
        ch = content[i]
        if ch in "\"'`":
            i += 1
            while i < n and content[i] != ch:
                i += 2 if content[i] == "\\" else 1
        elif content.startswith("//", i):
            i = content.find("\n", i)
            if i == -1:
                break
        elif content.startswith("/*", i):
            i = content.find("*/", i + 2)
            if i == -1:
                break
            i += 1
        elif ch == "{":
            opened += 1
        elif ch == "}":
            closed += 1
        i += 1
    return opened, closed


def validate_typescript(content: str) -> None:
    """Basic structural checks on generated TypeScript.

    Raises:
        TypeGenError: FILE_WRITE_FAILED if the content looks truncated or malformed
    """
    if not content.startswith(BANNER_PREFIX):
        raise TypeGenError(ErrorCode.FILE_WRITE_FAILED, {"reason": "generated content is missing the banner line"})

    # Braces inside enum literals, quoted names and doc comments are text
    open_braces, close_braces = count_braces(content)
    if open_braces != close_braces:
        raise TypeGenError(
            ErrorCode.FILE_WRITE_FAILED,
            {"reason": f"unbalanced braces: {open_braces} open, {close_braces} close"},
        )


class SafeWriter:
    """Handles backed-up atomic file writes.

    Steps:
    1. Ensure the parent directory exists and is writable
    2. Back up the existing file, if any
    3. Write to a temporary file in the same directory and validate it
    4. Atomically replace the target file
    5. Remove the backup, or restore it if anything failed
    """

    def __init__(
        self,
        validate: Callable[[str], None] | None = validate_typescript,
        create_backup: bool = True,
        encoding: str = "utf-8",
    ):
        """Initialize the writer.

        Args:
            validate: Content check run before the replace; raising aborts the write
            create_backup: Whether to back up existing files before replacing them
            encoding: Text encoding of written files
        """
        self._validate = validate
        self._create_backup = create_backup
        self._encoding = encoding

    @staticmethod
    def backup_path(path: Path) -> Path:
        return path.with_name(path.name + BACKUP_SUFFIX)

    @staticmethod
    def check_write_permission(path: Path) -> bool:
        """Whether the parent directory of path is writable."""
        return os.access(path.parent, os.W_OK)

    def write(self, path: Path | str, content: str) -> WriteResult:
        """Write content to path. Never raises; failures are returned.

        Args:
            path: Target file path
            content: Content to write

        Returns:
            WriteResult describing the outcome
        """
        path = Path(path)
        backup: Path | None = None
        temp_path: Path | None = None

        try:
            path.parent.mkdir(parents=True, exist_ok=True)

            if not self.check_write_permission(path):
                raise TypeGenError(ErrorCode.WRITE_PERMISSION_DENIED, {"path": str(path.parent)})

            if self._create_backup and path.exists():
                shutil.copy2(path, self.backup_path(path))
                backup = self.backup_path(path)

            # Same directory ensures atomic rename on the same filesystem
            temp_fd, temp_path_str = tempfile.mkstemp(
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                text=True,
            )
            temp_path = Path(temp_path_str)
            with open(temp_fd, "w", encoding=self._encoding, newline="\n") as f:
                f.write(content)

            if self._validate is not None:
                self._validate(content)

            temp_path.replace(path)
            temp_path = None

        except Exception as e:
            error = e if isinstance(e, TypeGenError) else TypeGenError(ErrorCode.FILE_WRITE_FAILED, {"path": str(path), "reason": str(e)}, cause=e)
            error.details.setdefault("path", str(path))
            logger.error("Failed to write %s: %s", path, error.details.get("reason", error.message))

            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            if backup is not None:
                self._restore_backup(backup, path)

            return WriteResult(path=path, success=False, backup_created=backup is not None, error=error)

        if backup is not None:
            try:
                backup.unlink()
            except OSError as e:
                logger.warning("Could not remove backup %s: %s", backup, e)

        logger.debug("Wrote %s", path)
        return WriteResult(path=path, success=True, backup_created=backup is not None)

    def _restore_backup(self, backup: Path, path: Path) -> None:
        try:
            backup.replace(path)
        except OSError as e:
            logger.error("Failed to restore backup %s: %s", backup, e)

    def write_multiple(self, files: dict[Path, str] | list[tuple[Path, str]]) -> BatchWriteResult:
        """Write several files independently; one failure does not stop the others."""
        items = files.items() if isinstance(files, dict) else files
        batch = BatchWriteResult()
        for path, content in items:
            batch.results.append(self.write(path, content))
        return batch

    def clean(self, output_dir: Path | str, dry_run: bool = False) -> CleanResult:
        """Remove generated .ts files (those starting with the banner) from output_dir."""
        output_dir = Path(output_dir)
        result = CleanResult(dry_run=dry_run)
        if not output_dir.is_dir():
            return result

        for candidate in sorted(output_dir.glob("*.ts")):
            # A file that does not decode cannot start with the banner
            with open(candidate, encoding=self._encoding, errors="replace") as f:
                if not f.readline().startswith(BANNER_PREFIX):
                    continue
            result.files.append(candidate)
            if not dry_run:
                candidate.unlink()

        return result
