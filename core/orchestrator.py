"""Workflow engine for the CodeVibe agent pipeline.

This module implements :class:`LoopOrchestrator`, the coordinator that
sequences the role agents through a *plan → code → simulate → review →
iterate* loop.  The orchestrator never touches real file storage: every
proposed edit is applied to a speculative snapshot by
:func:`core.file_simulator.simulate`, and the resulting operations are
returned to the caller, who decides whether to commit them.

Typical usage::

    from agents.registry import default_agents
    from core.orchestrator import LoopOrchestrator
    from core.run_log import RunLog

    run_log = RunLog()
    orchestrator = LoopOrchestrator(default_agents(model, run_log), run_log=run_log)
    result = orchestrator.run_full_workflow("Add a dark mode toggle", files)
    print(result["review"].approved, len(result["operations"]))
"""
import copy
from typing import Any, Dict, List, Optional, Sequence

from agents.base import Agent
from agents.registry import AGENT_ALIASES
from agents.seo import SEOOptions
from core.exceptions import WorkflowFailure
from core.file_simulator import simulate
from core.logging_utils import log_json
from core.run_log import RunLog
from core.types import FileEntry, Operation, ReviewResult, Workflow, WorkflowPhase

DEFAULT_MAX_ITERATIONS = 2
FIX_TASK = "Fix code review issues"


def fix_directive(review: ReviewResult) -> str:
    """Turn a rejected review into the requirements text for the next Coder pass.

    Falls back to the blocking issues when the reviewer listed no required
    changes, so the Coder is never asked to fix an empty list.
    """
    changes = list(review.required_changes)
    if not changes:
        changes = [i.issue for i in review.blocking_issues() if i.issue]
    return "Fix these issues:\n" + "\n".join(changes)


class LoopOrchestrator:
    """Coordinates the role agents for one user-facing session.

    The full workflow runs the following phases:

    1. **Planning** — the Planner turns the request into tasks.
    2. **Coding** — the Coder proposes file operations for the plan.
    3. **Simulate** — operations are applied to a speculative snapshot.
    4. **Reviewing** — the Reviewer scores the snapshot and approves or not.
    5. **Iterating** — while the review is not approved and the iteration
       budget remains, the Coder fixes the required changes against the
       previous snapshot and the result is re-reviewed.

    Any agent failure moves the workflow to ``failed``, writes exactly one
    error entry on the run log naming the phase and iteration, and is raised
    as :class:`~core.exceptions.WorkflowFailure` chained to the cause.

    Attributes:
        agents: Mapping of role name (``planning``, ``coding``, ``reviewer``,
            ``seo``) to agent instance. These are shallow copies of the agents
            passed in, bound to this orchestrator's run log; the caller's
            agent objects are left untouched.
        run_log: The activity log shared by this orchestrator and its agents.
        max_iterations: Default fix-iteration budget for the full workflow.
        model: Optional :class:`~core.model_adapter.ModelAdapter`, used only by
            :meth:`is_ready`.
        current_workflow: Kind of the most recent workflow, or ``None``.
    """

    def __init__(self, agents: Dict[str, Agent], run_log: Optional[RunLog] = None,
                 max_iterations: int = DEFAULT_MAX_ITERATIONS, model=None):
        if max_iterations < 0:
            raise ValueError("max_iterations must be >= 0")
        self.agents = {role: copy.copy(agent) for role, agent in agents.items()}
        self.run_log = run_log if run_log is not None else RunLog()
        self.max_iterations = max_iterations
        self.model = model
        self.current_workflow: Optional[str] = None
        # One log per orchestrator, even when the same agents are reused.
        for agent in self.agents.values():
            agent.run_log = self.run_log

    # ── Agent lookup ─────────────────────────────────────────────────────────

    def get_agent(self, name: str) -> Agent:
        key = AGENT_ALIASES.get(name, name)
        if key not in self.agents:
            raise KeyError(f"Unknown agent: {name!r}")
        return self.agents[key]

    @property
    def planner(self) -> Agent:
        return self.get_agent("planning")

    @property
    def coder(self) -> Agent:
        return self.get_agent("coding")

    @property
    def reviewer(self) -> Agent:
        return self.get_agent("reviewer")

    @property
    def seo(self) -> Agent:
        return self.get_agent("seo")

    # ── Run log helpers ──────────────────────────────────────────────────────

    def log(self, message: str, type: str = "info") -> None:
        self.run_log.append(message, type=type, agent="Orchestrator")

    def get_logs_as_string(self) -> str:
        return self.run_log.as_string()

    def clear_logs(self) -> None:
        self.run_log.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total_logs": len(self.run_log),
            "current_workflow": self.current_workflow,
            "agents": {key: agent.get_info() for key, agent in self.agents.items()},
        }

    def is_ready(self) -> bool:
        """True when a model with an API key is attached."""
        return bool(self.model is not None and self.model.is_configured())

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def _start(self, kind: str, user_request: str = "", max_iterations: int = 0) -> Workflow:
        self.current_workflow = kind
        log_json("INFO", "workflow_started", goal=user_request or None,
                 details={"kind": kind, "max_iterations": max_iterations})
        return Workflow(kind=kind, user_request=user_request, max_iterations=max_iterations)

    def _fail(self, workflow: Workflow, exc: Exception) -> WorkflowFailure:
        """Record a failed phase once and build the error to raise."""
        phase = workflow.phase
        workflow.finish(WorkflowPhase.FAILED)
        message = (f"Workflow failed during {phase.value} "
                   f"(iteration {workflow.iterations}): {exc}")
        self.log(message, "error")
        log_json("ERROR", "workflow_failed", goal=workflow.user_request or None,
                 details={"kind": workflow.kind, "phase": phase.value,
                          "iteration": workflow.iterations,
                          "error_type": type(exc).__name__})
        return WorkflowFailure(message, phase=phase.value,
                               iteration=workflow.iterations, cause=exc)

    def _finish(self, workflow: Workflow, phase: WorkflowPhase) -> None:
        workflow.finish(phase)
        log_json("INFO", "workflow_finished", goal=workflow.user_request or None,
                 details={"kind": workflow.kind, "phase": phase.value,
                          "iterations": workflow.iterations,
                          "duration_s": round(workflow.duration, 3)})

    def _review_outcome(self, review: ReviewResult) -> WorkflowPhase:
        return WorkflowPhase.APPROVED if review.approved else WorkflowPhase.DONE

    # ── Workflows ────────────────────────────────────────────────────────────

    def run_full_workflow(self, user_request: str, files: Sequence[FileEntry] = (),
                          active_file: Optional[FileEntry] = None, *,
                          max_iterations: Optional[int] = None, project_type: str = "web",
                          strict_mode: bool = False) -> Dict[str, Any]:
        """Plan, code, review and iterate on *user_request*.

        Args:
            user_request: Natural-language description of the change.
            files: Current project snapshot. Never mutated.
            active_file: File open in the editor, if any.
            max_iterations: Fix-iteration budget; defaults to
                :attr:`max_iterations`.
            project_type: Passed to the Planner (``web``, ``api``, ...).
            strict_mode: Ask the Reviewer for a stricter review.

        Returns:
            A dict with:

            * ``"success"`` (bool) — always ``True``; failures raise.
            * ``"workflow"`` (:class:`~core.types.Workflow`) — final run state.
            * ``"operations"`` (list[Operation]) — every operation proposed
              during the run, in order. Applying them to ``files`` yields
              ``"snapshot"``.
            * ``"snapshot"`` (list[FileEntry]) — the final reviewed files.
            * ``"plan"`` / ``"review"`` — the plan and the last review.
            * ``"logs"`` (list[LogEntry]) — the run log.

        Raises:
            WorkflowFailure: when any phase fails.
        """
        budget = self.max_iterations if max_iterations is None else max_iterations
        if budget < 0:
            raise ValueError("max_iterations must be >= 0")
        files = list(files)
        workflow = self._start("full", user_request, budget)
        operations: List[Operation] = []

        try:
            self.log("Starting full multi-agent workflow...")

            self.log("PHASE 1: Planning")
            workflow.phase = WorkflowPhase.PLANNING
            workflow.plan = self.planner.process(user_request, files=files,
                                                 active_file=active_file,
                                                 project_type=project_type)

            self.log("PHASE 2: Coding")
            workflow.phase = WorkflowPhase.CODING
            workflow.code = self.coder.process(user_request, files=files,
                                               active_file=active_file, plan=workflow.plan)
            operations.extend(workflow.code.operations)
            snapshot = simulate(files, workflow.code.operations)

            self.log("PHASE 3: Code Review")
            workflow.phase = WorkflowPhase.REVIEWING
            workflow.review = self.reviewer.process(snapshot, strict_mode=strict_mode)

            while not workflow.review.approved and workflow.iterations < workflow.max_iterations:
                workflow.iterations += 1
                workflow.phase = WorkflowPhase.ITERATING
                self.log(f"ITERATION {workflow.iterations}: Addressing review feedback", "warning")

                workflow.phase = WorkflowPhase.CODING
                improved = self.coder.process(fix_directive(workflow.review), files=snapshot,
                                              specific_task=FIX_TASK)
                operations.extend(improved.operations)
                snapshot = simulate(snapshot, improved.operations)

                workflow.phase = WorkflowPhase.REVIEWING
                workflow.review = self.reviewer.process(snapshot, strict_mode=strict_mode)
                if workflow.review.approved:
                    workflow.code = improved
                    self.log("Code approved after improvements!", "success")
        except Exception as e:
            raise self._fail(workflow, e) from e

        self._finish(workflow, self._review_outcome(workflow.review))
        if workflow.review.approved:
            self.log("Workflow completed: code approved", "success")
        else:
            self.log(f"Workflow completed without approval after "
                     f"{workflow.iterations} iteration(s)", "warning")
        return {
            "success": True,
            "workflow": workflow,
            "operations": operations,
            "snapshot": snapshot,
            "plan": workflow.plan,
            "review": workflow.review,
            "logs": self.run_log.entries(),
        }

    def run_quick_workflow(self, user_request: str, files: Sequence[FileEntry] = (),
                           active_file: Optional[FileEntry] = None,
                           strict_mode: bool = False) -> Dict[str, Any]:
        """Code then review once, skipping planning and iteration."""
        files = list(files)
        workflow = self._start("quick", user_request)
        try:
            self.log("Starting quick workflow (code + review)...")
            workflow.phase = WorkflowPhase.CODING
            workflow.code = self.coder.process(user_request, files=files, active_file=active_file)
            snapshot = simulate(files, workflow.code.operations)

            workflow.phase = WorkflowPhase.REVIEWING
            workflow.review = self.reviewer.process(snapshot, strict_mode=strict_mode)
        except Exception as e:
            raise self._fail(workflow, e) from e

        self._finish(workflow, self._review_outcome(workflow.review))
        self.log("Quick workflow completed", "success")
        return {
            "success": True,
            "workflow": workflow,
            "operations": list(workflow.code.operations),
            "snapshot": snapshot,
            "review": workflow.review,
            "logs": self.run_log.entries(),
        }

    def run_planning_workflow(self, user_request: str, files: Sequence[FileEntry] = (),
                              active_file: Optional[FileEntry] = None,
                              project_type: str = "web") -> Dict[str, Any]:
        workflow = self._start("planning", user_request)
        try:
            self.log("Creating implementation plan...")
            workflow.phase = WorkflowPhase.PLANNING
            workflow.plan = self.planner.process(user_request, files=list(files),
                                                 active_file=active_file,
                                                 project_type=project_type)
        except Exception as e:
            raise self._fail(workflow, e) from e

        self._finish(workflow, WorkflowPhase.DONE)
        return {"success": True, "plan": workflow.plan, "logs": self.run_log.entries()}

    def run_review_workflow(self, files: Sequence[FileEntry], focus_areas: Sequence[str] = (),
                            strict_mode: bool = False) -> Dict[str, Any]:
        workflow = self._start("review")
        try:
            self.log("Starting code review...")
            workflow.phase = WorkflowPhase.REVIEWING
            workflow.review = self.reviewer.process(list(files), focus_areas=focus_areas,
                                                    strict_mode=strict_mode)
        except Exception as e:
            raise self._fail(workflow, e) from e

        self._finish(workflow, self._review_outcome(workflow.review))
        return {"success": True, "review": workflow.review, "logs": self.run_log.entries()}

    def run_security_audit(self, files: Sequence[FileEntry]) -> Dict[str, Any]:
        workflow = self._start("security")
        try:
            self.log("Starting security audit...")
            workflow.phase = WorkflowPhase.REVIEWING
            audit = self.reviewer.security_audit(list(files))
        except Exception as e:
            raise self._fail(workflow, e) from e

        self._finish(workflow, WorkflowPhase.DONE)
        return {"success": True, "audit": audit, "logs": self.run_log.entries()}

    def run_performance_analysis(self, files: Sequence[FileEntry]) -> Dict[str, Any]:
        workflow = self._start("performance")
        try:
            self.log("Starting performance analysis...")
            workflow.phase = WorkflowPhase.REVIEWING
            analysis = self.reviewer.performance_analysis(list(files))
        except Exception as e:
            raise self._fail(workflow, e) from e

        self._finish(workflow, WorkflowPhase.DONE)
        return {"success": True, "analysis": analysis, "logs": self.run_log.entries()}

    def run_seo_workflow(self, html: str, seo_options: Any = None) -> Dict[str, Any]:
        """Optimize one HTML document. *seo_options* may be a dict or :class:`SEOOptions`."""
        if not isinstance(seo_options, SEOOptions):
            seo_options = SEOOptions.from_dict(seo_options)
        workflow = self._start("seo")
        try:
            self.log("Starting SEO optimization...")
            workflow.phase = WorkflowPhase.CODING
            optimized = self.seo.process(html, seo_options)
        except Exception as e:
            raise self._fail(workflow, e) from e

        self._finish(workflow, WorkflowPhase.DONE)
        return {"success": True, "optimized": optimized, "logs": self.run_log.entries()}
