"""JSON shapes shared by the CLI ``--json`` output and the HTTP API."""
import dataclasses
from enum import Enum
from typing import Any, Dict

from core.exceptions import WorkflowFailure


def to_jsonable(value: Any) -> Any:
    """Flatten workflow results (dataclasses, enums, nested containers) to plain JSON values."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def failure_payload(exc: WorkflowFailure) -> Dict[str, Any]:
    return {
        "status": "error",
        "code": "workflow_failed",
        "phase": exc.phase,
        "iteration": exc.iteration,
        "error": str(exc.cause) if exc.cause is not None else str(exc),
        "error_type": type(exc.cause).__name__ if exc.cause is not None else type(exc).__name__,
    }
