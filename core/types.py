import datetime
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


def utc_timestamp() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class Action(str, Enum):
    CREATE = "create_file"
    UPDATE = "update_file"
    DELETE = "delete_file"


class WorkflowPhase(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    CODING = "coding"
    REVIEWING = "reviewing"
    ITERATING = "iterating"
    APPROVED = "approved"  # terminal
    DONE = "done"          # terminal, finished without approval
    FAILED = "failed"      # terminal


TERMINAL_PHASES = (WorkflowPhase.APPROVED, WorkflowPhase.DONE, WorkflowPhase.FAILED)


@dataclass(frozen=True)
class FileEntry:
    path: str
    content: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileEntry":
        return cls(path=str(data["path"]), content=str(data.get("content") or ""))


@dataclass(frozen=True)
class Operation:
    action: Action
    path: str
    content: Optional[str] = None  # required for create/update, absent for delete
    reasoning: Optional[str] = None


@dataclass
class Task:
    id: Any
    title: str = ""
    description: str = ""
    type: str = ""  # "create_file" | "update_file" | "delete_file" | "refactor" | "test"
    files: List[str] = field(default_factory=list)
    priority: str = "medium"  # "high" | "medium" | "low"
    estimated_complexity: str = ""
    dependencies: List[Any] = field(default_factory=list)


@dataclass
class Issue:
    severity: str  # "critical" | "high" | "medium" | "low"
    issue: str = ""
    category: str = ""
    file: Optional[str] = None
    line: Optional[int] = None
    recommendation: str = ""
    example: Optional[str] = None


# ---------------------------------------------------------------------------
# Agent results: one variant per role, sharing the success/timestamp envelope
# ---------------------------------------------------------------------------

@dataclass
class AgentResult:
    success: bool = True
    timestamp: str = field(default_factory=utc_timestamp)


@dataclass
class PlanResult(AgentResult):
    understanding: str = ""
    approach: str = ""
    tasks: List[Task] = field(default_factory=list)
    file_structure: Dict[str, List[str]] = field(
        default_factory=lambda: {"new": [], "modify": [], "delete": []}
    )
    tech_stack: List[str] = field(default_factory=list)
    considerations: List[str] = field(default_factory=list)
    risks: List[str] = field(default_factory=list)
    testing_strategy: str = ""

    @property
    def total_tasks(self) -> int:
        return len(self.tasks)


@dataclass
class CodeResult(AgentResult):
    thought: str = ""
    operations: List[Operation] = field(default_factory=list)
    summary: str = ""
    testing_suggestions: List[str] = field(default_factory=list)
    next_steps: List[str] = field(default_factory=list)


@dataclass
class ReviewResult(AgentResult):
    overall_score: float = 0
    approved: bool = False
    summary: str = ""
    strengths: List[str] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)
    required_changes: List[str] = field(default_factory=list)
    refactoring_priorities: List[str] = field(default_factory=list)
    # architecture / security / performance / ... sub-assessments, verbatim
    category_scores: Dict[str, Any] = field(default_factory=dict)

    def blocking_issues(self) -> List[Issue]:
        return [i for i in self.issues if i.severity in ("critical", "high")]


@dataclass
class SEOResult(AgentResult):
    optimized_html: str = ""
    seo_score: float = 0
    analysis: str = ""
    changes: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class SecurityAuditResult(AgentResult):
    security_score: float = 0
    vulnerabilities: List[Dict[str, Any]] = field(default_factory=list)
    passed: bool = False


@dataclass
class PerformanceResult(AgentResult):
    performance_score: float = 0
    bottlenecks: List[Dict[str, Any]] = field(default_factory=list)
    optimizations: List[str] = field(default_factory=list)


@dataclass
class AccessibilityResult(AgentResult):
    accessibility_score: float = 0
    issues: List[Dict[str, Any]] = field(default_factory=list)
    passed: bool = False
    message: str = ""


@dataclass
class RefactoringResult(AgentResult):
    current_issues: List[str] = field(default_factory=list)
    refactoring_plan: List[Dict[str, Any]] = field(default_factory=list)
    refactored_code: str = ""


@dataclass
class TaskCompletionResult(AgentResult):
    is_complete: bool = False
    completion_percentage: float = 0
    issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


@dataclass
class SEOAnalysisResult(AgentResult):
    seo_score: float = 0
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class KeywordsResult(AgentResult):
    keywords: List[str] = field(default_factory=list)
    key_phrases: List[str] = field(default_factory=list)


AnyAgentResult = Union[PlanResult, CodeResult, ReviewResult, SEOResult,
                       SecurityAuditResult, PerformanceResult, AccessibilityResult,
                       RefactoringResult, TaskCompletionResult, SEOAnalysisResult,
                       KeywordsResult]


@dataclass
class LogEntry:
    timestamp: str
    agent: str
    type: str  # "info" | "success" | "warning" | "error"
    message: str


@dataclass
class Workflow:
    kind: str
    user_request: str = ""
    phase: WorkflowPhase = WorkflowPhase.IDLE
    plan: Optional[PlanResult] = None
    code: Optional[CodeResult] = None
    review: Optional[ReviewResult] = None
    iterations: int = 0
    max_iterations: int = 0
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    @property
    def duration(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    @property
    def finished(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def finish(self, phase: WorkflowPhase) -> None:
        self.phase = phase
        self.end_time = time.time()
