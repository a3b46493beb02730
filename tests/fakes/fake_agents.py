import json

from core.types import (
    Action,
    CodeResult,
    Issue,
    Operation,
    PerformanceResult,
    PlanResult,
    ReviewResult,
    SecurityAuditResult,
    SEOResult,
    Task,
)


class FakeModel:
    """Model adapter double: returns queued responses and records every prompt."""

    model_name = "fake-model"

    def __init__(self, responses=None, configured=True):
        self.responses = list(responses or [])
        self.calls = []
        self.configured = configured

    def is_configured(self):
        return self.configured

    def generate(self, prompt, system_instruction, **generation_options):
        self.calls.append({"prompt": prompt, "system_instruction": system_instruction,
                           **generation_options})
        if not self.responses:
            raise AssertionError("FakeModel has no response queued")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item if isinstance(item, str) else json.dumps(item)


class ScriptedAgent:
    """Stands in for a role agent.

    Each method returns (or raises) the next queued item; the last item of a
    queue repeats once the others are used up.
    """

    def __init__(self, name, **scripts):
        self.name = name
        self.model = FakeModel()
        self.run_log = None
        self.scripts = {method: list(items) for method, items in scripts.items()}
        self.calls = []

    def _next(self, method, args, kwargs):
        self.calls.append((method, args, kwargs))
        queue = self.scripts.get(method)
        if not queue:
            raise AssertionError(f"{self.name}.{method} was not scripted")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def calls_to(self, method):
        return [c for c in self.calls if c[0] == method]

    def process(self, *args, **kwargs):
        return self._next("process", args, kwargs)

    def security_audit(self, *args, **kwargs):
        return self._next("security_audit", args, kwargs)

    def performance_analysis(self, *args, **kwargs):
        return self._next("performance_analysis", args, kwargs)

    def get_info(self):
        return {"name": self.name, "model": self.model.model_name, "capabilities": []}


def make_plan(n_tasks=2):
    return PlanResult(
        understanding="demo",
        approach="small steps",
        tasks=[Task(id=i + 1, title=f"task {i + 1}") for i in range(n_tasks)],
    )


def make_code(*operations, summary="done"):
    return CodeResult(operations=list(operations), summary=summary)


def create_op(path, content):
    return Operation(action=Action.CREATE, path=path, content=content)


def update_op(path, content):
    return Operation(action=Action.UPDATE, path=path, content=content)


def delete_op(path):
    return Operation(action=Action.DELETE, path=path)


def make_review(approved, score=None, required_changes=(), issues=()):
    if score is None:
        score = 90 if approved else 60
    return ReviewResult(
        overall_score=score,
        approved=approved,
        summary="looks good" if approved else "needs work",
        issues=list(issues),
        required_changes=list(required_changes),
    )


def make_issue(severity="high", text="XSS in render()"):
    return Issue(severity=severity, issue=text, file="app.js")


def make_fake_agents(planner=None, coder=None, reviewer=None, seo=None):
    return {
        "planning": ScriptedAgent("Planning Agent", process=planner or [make_plan()]),
        "coding": ScriptedAgent("Coding Agent",
                                process=coder or [make_code(create_op("index.html", "<h1>hi</h1>"))]),
        "reviewer": ScriptedAgent(
            "Architect Agent",
            process=reviewer or [make_review(True)],
            security_audit=[SecurityAuditResult(security_score=95, passed=True)],
            performance_analysis=[PerformanceResult(performance_score=88,
                                                    optimizations=["cache assets"])],
        ),
        "seo": ScriptedAgent("SEO Agent",
                             process=seo or [SEOResult(optimized_html="<html></html>", seo_score=91)]),
    }
