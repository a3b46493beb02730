"""Speculative application of file operations.

:func:`simulate` predicts what a project would look like after a list of
:class:`~core.types.Operation` values is applied, without touching disk. The
orchestrator reviews this *speculative snapshot*; committing the operations
to real storage is the caller's job.
"""
from typing import Dict, Iterable, List

from core.exceptions import SchemaViolation
from core.types import Action, FileEntry, Operation


def simulate(base_files: Iterable[FileEntry], operations: Iterable[Operation]) -> List[FileEntry]:
    """Apply *operations* in order to a copy of *base_files*.

    * create on an existing path replaces its content (last write wins);
    * update on a missing path creates it;
    * delete on a missing path is a no-op.

    New paths are appended in the order they are first written; existing
    paths keep their position. *base_files* is never mutated and the result
    never contains the same path twice.
    """
    snapshot: Dict[str, FileEntry] = {}
    for entry in base_files:
        # a malformed input snapshot collapses to its last entry per path
        snapshot[entry.path] = entry

    for op in operations:
        if op.action in (Action.CREATE, Action.UPDATE):
            snapshot[op.path] = FileEntry(path=op.path, content=op.content or "")
        elif op.action == Action.DELETE:
            snapshot.pop(op.path, None)
        else:
            raise SchemaViolation(f"Unknown operation action: {op.action!r}", missing=["action"])

    return list(snapshot.values())


def as_mapping(files: Iterable[FileEntry]) -> Dict[str, str]:
    return {f.path: f.content for f in files}
