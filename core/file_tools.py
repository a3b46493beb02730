"""Commit file operations to a real project directory.

The orchestrator only ever simulates operations; this module is the
caller-side collaborator that writes them to disk (``codevibe ... --apply``).

Key functions:

* :func:`resolve_in_root`  — map an operation path to a file under the root.
* :func:`apply_operations` — apply a list of operations atomically.

Custom exceptions:

* :exc:`FileToolsError`  — base class for all module errors.
* :exc:`PathEscapeError` — an operation path resolves outside the root.
"""
from pathlib import Path
from typing import List, Optional, Sequence

from core.exceptions import CodeVibeError
from core.logging_utils import log_json
from core.types import Action, FileEntry, Operation


class FileToolsError(CodeVibeError):
    """Base exception for FileTools operations."""
    pass


class PathEscapeError(FileToolsError):
    """Exception raised when an operation targets a path outside the project root."""
    pass


def resolve_in_root(project_root: Path, file_path: str) -> Path:
    root = Path(project_root).resolve()
    target = (root / file_path).resolve()
    if target != root and root not in target.parents:
        raise PathEscapeError(f"'{file_path}' resolves outside '{root}'")
    return target


class AtomicChangeSet:
    """Apply a list of operations atomically with in-memory rollback.

    If any operation fails, every file touched so far is restored to its
    pre-apply content (or removed, if it did not exist).  Backups are kept
    in memory.

    Args:
        operations: :class:`~core.types.Operation` list, applied in order.
        project_root: Root directory used to resolve relative paths.
    """

    def __init__(self, operations: Sequence[Operation], project_root: Path):
        self.operations = list(operations)
        self.project_root = Path(project_root)

    def _apply_one(self, op: Operation, path_obj: Path) -> None:
        if op.action == Action.DELETE:
            if path_obj.exists():
                path_obj.unlink()
            return
        path_obj.parent.mkdir(parents=True, exist_ok=True)
        path_obj.write_text(op.content or "", encoding="utf-8")

    def apply(self) -> List[str]:
        """Apply all operations atomically.

        Returns:
            List of operation paths that were applied.

        Raises:
            Exception: Re-raises the first failure after restoring all
                previously modified files to their original content.
        """
        backups: dict = {}  # resolved path -> original bytes (or None if new)
        applied: List[str] = []

        for op in self.operations:
            try:
                path_obj = resolve_in_root(self.project_root, op.path)
                if path_obj not in backups:
                    backups[path_obj] = path_obj.read_bytes() if path_obj.exists() else None
                self._apply_one(op, path_obj)
                applied.append(op.path)
            except Exception as exc:
                log_json("ERROR", "atomic_change_set_failure", details={
                    "file": op.path, "action": str(op.action), "error": str(exc),
                })
                self._restore(backups)
                raise
        log_json("INFO", "operations_applied", details={
            "root": str(self.project_root), "count": len(applied),
        })
        return applied

    @staticmethod
    def _restore(backups: dict) -> None:
        for restore_path, original in backups.items():
            try:
                if original is None:
                    if restore_path.exists():
                        restore_path.unlink()
                else:
                    restore_path.parent.mkdir(parents=True, exist_ok=True)
                    restore_path.write_bytes(original)
            except OSError as restore_exc:  # pragma: no cover
                log_json("ERROR", "atomic_change_set_restore_failed", details={
                    "file": str(restore_path), "error": str(restore_exc),
                })


def apply_operations(operations: Sequence[Operation], project_root: Path) -> List[str]:
    """Apply *operations* under *project_root* as one transaction."""
    return AtomicChangeSet(operations, project_root).apply()


def read_project_files(paths: Sequence[str], project_root: Optional[Path] = None) -> List[FileEntry]:
    """Load *paths* as ``FileEntry`` objects keyed by their path relative to *project_root*."""
    root = Path(project_root or Path.cwd()).resolve()
    entries = []
    for raw in paths:
        path_obj = Path(raw)
        if not path_obj.is_absolute():
            path_obj = root / path_obj
        path_obj = path_obj.resolve()
        try:
            rel = path_obj.relative_to(root).as_posix()
        except ValueError:
            rel = path_obj.as_posix()
        try:
            content = path_obj.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FileToolsError(f"Cannot read {raw}: {e}") from e
        entries.append(FileEntry(path=rel, content=content))
    return entries
