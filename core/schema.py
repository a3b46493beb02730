"""Required-field contracts for agent payloads and the shared decoders for
their nested records (tasks, operations, issues).

Payloads arrive in the remote service's camelCase wire form; decoders turn
them into the dataclasses of :mod:`core.types`.
"""
from numbers import Number
from typing import Any, Dict, List

from core.exceptions import SchemaViolation
from core.types import Action, Issue, Operation, Task

RESULT_SCHEMA = {
    "plan": {"required": {"tasks": list}},
    "code": {"required": {"operations": list}},
    "review": {"required": {"overallScore": Number, "approved": bool}},
    "seo": {"required": {"optimizedHtml": str, "seoScore": Number}},
    "seo_analysis": {"required": {"seoScore": Number}},
    "security_audit": {"required": {"securityScore": Number}},
    "performance": {"required": {"performanceScore": Number}},
    "accessibility": {"required": {"accessibilityScore": Number}},
    "refactoring": {"required": {"refactoringPlan": list}},
    "task_completion": {"required": {"isComplete": bool}},
    "keywords": {"required": {"keywords": list}},
}

SCORE_FIELDS = ("overallScore", "seoScore", "securityScore", "performanceScore", "accessibilityScore")


def _type_ok(value: Any, expected: type) -> bool:
    # bool is an int subclass; never accept it where a number is required
    if expected is Number and isinstance(value, bool):
        return False
    return isinstance(value, expected)


def validate_result(name: str, payload: Any) -> List[str]:
    """Return a list of human-readable problems; empty when *payload* conforms."""
    schema = RESULT_SCHEMA.get(name)
    if not schema:
        return [f"Unknown result schema '{name}'"]
    if not isinstance(payload, dict):
        return [f"Expected a JSON object, got {type(payload).__name__}"]
    problems = []
    for key, expected in schema["required"].items():
        if key not in payload or payload[key] is None:
            problems.append(f"Missing key: {key}")
        elif not _type_ok(payload[key], expected):
            problems.append(f"Wrong type for {key}: {type(payload[key]).__name__}")
        elif key in SCORE_FIELDS and not 0 <= payload[key] <= 100:
            problems.append(f"{key} out of range 0-100: {payload[key]}")
    return problems


def require_result(name: str, payload: Any, context: str) -> Dict[str, Any]:
    problems = validate_result(name, payload)
    if problems:
        missing = [p.split(": ", 1)[1] for p in problems if p.startswith("Missing key")]
        raise SchemaViolation(f"{context}: {'; '.join(problems)}", missing=missing)
    return payload


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def str_list(value: Any) -> List[str]:
    return [str(v) for v in _list(value) if v is not None]


def decode_tasks(raw_tasks: List[Any], context: str) -> List[Task]:
    tasks = []
    for index, raw in enumerate(raw_tasks):
        if not isinstance(raw, dict):
            raise SchemaViolation(f"{context}: task #{index} is not an object")
        task_id = raw.get("id")
        if not _is_task_id(task_id):
            task_id = index + 1
        tasks.append(Task(
            id=task_id,
            title=str(raw.get("title") or ""),
            description=str(raw.get("description") or ""),
            type=str(raw.get("type") or ""),
            files=str_list(raw.get("files")),
            priority=str(raw.get("priority") or "medium"),
            estimated_complexity=str(raw.get("estimatedComplexity") or ""),
            dependencies=[d for d in _list(raw.get("dependencies")) if _is_task_id(d)],
        ))
    return tasks


def _is_task_id(value: Any) -> bool:
    return isinstance(value, (int, str)) and not isinstance(value, bool)


def decode_operation(raw: Any, context: str) -> Operation:
    if not isinstance(raw, dict):
        raise SchemaViolation(f"{context}: operation is not an object")
    try:
        action = Action(raw.get("action"))
    except ValueError:
        raise SchemaViolation(f"{context}: unknown operation action {raw.get('action')!r}",
                              missing=["action"]) from None
    path = raw.get("path")
    if not isinstance(path, str) or not path.strip():
        raise SchemaViolation(f"{context}: operation without a path", missing=["path"])
    content = raw.get("content")
    if action is Action.DELETE:
        content = None
    elif not isinstance(content, str):
        raise SchemaViolation(f"{context}: {action.value} on {path} requires string content",
                              missing=["content"])
    reasoning = raw.get("reasoning")
    return Operation(action=action, path=path.strip(), content=content,
                     reasoning=str(reasoning) if reasoning is not None else None)


def decode_operations(raw_ops: List[Any], context: str) -> List[Operation]:
    return [decode_operation(raw, context) for raw in raw_ops]


def decode_issues(raw_issues: Any) -> List[Issue]:
    issues = []
    for raw in raw_issues if isinstance(raw_issues, list) else []:
        if not isinstance(raw, dict):
            continue
        line = raw.get("line")
        issues.append(Issue(
            severity=str(raw.get("severity") or "low").lower(),
            issue=str(raw.get("issue") or raw.get("description") or ""),
            category=str(raw.get("category") or ""),
            file=raw.get("file"),
            line=line if isinstance(line, int) and not isinstance(line, bool) else None,
            recommendation=str(raw.get("recommendation") or ""),
            example=raw.get("example"),
        ))
    return issues
