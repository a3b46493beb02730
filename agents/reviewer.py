from typing import Any, Dict, Sequence

from agents.base import JSON_ONLY, Agent, format_files
from core.logging_utils import log_json
from core.schema import decode_issues, str_list
from core.types import (
    AccessibilityResult,
    FileEntry,
    PerformanceResult,
    RefactoringResult,
    ReviewResult,
    SecurityAuditResult,
)

APPROVAL_SCORE = 80
CATEGORY_KEYS = ("architecture", "security", "performance", "maintainability",
                 "accessibility", "bestPractices")

REVIEWER_INSTRUCTIONS = f"""
You are an expert software architect and code reviewer. Review code for quality,
best practices, security, performance and architecture.

{JSON_ONLY}

Your response MUST have this exact structure:
{{
  "overallScore": 85,
  "summary": "Overall assessment of the code quality",
  "strengths": ["list of strengths"],
  "issues": [
    {{
      "severity": "critical|high|medium|low",
      "category": "security|performance|maintainability|accessibility|bestPractices",
      "file": "file path",
      "line": 42,
      "issue": "Description of the issue",
      "recommendation": "How to fix it",
      "example": "Code example of the fix (optional)"
    }}
  ],
  "architecture": {{"score": 80, "assessment": "", "suggestions": []}},
  "security": {{"score": 90, "vulnerabilities": [], "recommendations": []}},
  "performance": {{"score": 85, "bottlenecks": [], "optimizations": []}},
  "maintainability": {{"score": 88, "concerns": [], "improvements": []}},
  "accessibility": {{"score": 75, "issues": [], "fixes": []}},
  "bestPractices": {{"score": 90, "violations": [], "recommendations": []}},
  "refactoringPriorities": ["Priority 1: ...", "Priority 2: ..."],
  "approved": true,
  "requiredChanges": ["must fix before deployment"]
}}

Review criteria and weights:
1. Security (25%): XSS, injection, CSRF, input validation, data exposure, OWASP Top 10.
2. Performance (20%): algorithmic cost, memory, network requests, caching, rendering.
3. Code quality (20%): readability, naming, duplication, function length, error handling.
4. Architecture (15%): separation of concerns, module structure, extensibility.
5. Maintainability (10%): organisation, documentation, testability.
6. Accessibility (5%): WCAG 2.1, semantic HTML, ARIA, keyboard navigation, contrast.
7. Best practices (5%): language and framework conventions, consistent style.

Scoring: 90-100 excellent, 80-89 good, 70-79 fair, 60-69 poor, below 60 critical.

Approval:
- Set "approved": true only if overallScore >= {APPROVAL_SCORE} and there is no critical or high severity issue.
- Otherwise set "approved": false and list every required change in "requiredChanges".
"""

SECURITY_AUDIT_SHAPE = """
Return JSON with:
{
  "securityScore": 0,
  "vulnerabilities": [
    {"severity": "critical|high|medium|low", "type": "XSS|SQL|CSRF|etc",
     "file": "path", "description": "issue description", "fix": "how to fix it"}
  ],
  "passed": true
}
"""

PERFORMANCE_SHAPE = """
Return JSON with:
{
  "performanceScore": 0,
  "bottlenecks": [
    {"file": "path", "issue": "description", "impact": "high|medium|low", "optimization": "suggested fix"}
  ],
  "optimizations": ["list of general optimizations"]
}
"""

ACCESSIBILITY_SHAPE = """
Return JSON with:
{
  "accessibilityScore": 0,
  "issues": [
    {"severity": "critical|high|medium|low", "wcagLevel": "A|AA|AAA", "criterion": "WCAG criterion",
     "file": "path", "issue": "description", "fix": "how to fix it"}
  ],
  "passed": true
}
"""

REFACTORING_SHAPE = """
Return JSON with:
{
  "currentIssues": ["issues with current code"],
  "refactoringPlan": [
    {"title": "refactoring title", "description": "what to refactor",
     "benefit": "why refactor this", "difficulty": "easy|medium|hard"}
  ],
  "refactoredCode": "the refactored version (if applicable)"
}
"""


def _dict_list(value: Any) -> list:
    return [v for v in value if isinstance(v, dict)] if isinstance(value, list) else []


class ReviewerAgent(Agent):
    """
    Scores a file snapshot and decides whether it is approved.

    The approval flag and score come from the remote service and are only
    validated here. A flag that contradicts the approval rule is logged as a
    warning and returned unchanged.
    """

    name = "Architect Agent"
    instructions = REVIEWER_INSTRUCTIONS
    capabilities = [
        "Code review",
        "Architecture assessment",
        "Security audit",
        "Performance analysis",
        "Accessibility review",
        "Quality scoring",
        "Refactoring recommendations",
    ]

    def decode(self, payload: Dict[str, Any]) -> ReviewResult:
        return ReviewResult(
            overall_score=payload["overallScore"],
            approved=payload["approved"],
            summary=str(payload.get("summary") or ""),
            strengths=str_list(payload.get("strengths")),
            issues=decode_issues(payload.get("issues")),
            required_changes=str_list(payload.get("requiredChanges")),
            refactoring_priorities=str_list(payload.get("refactoringPriorities")),
            category_scores={k: payload[k] for k in CATEGORY_KEYS if isinstance(payload.get(k), dict)},
        )

    def _check_approval(self, review: ReviewResult) -> None:
        expected = review.overall_score >= APPROVAL_SCORE and not review.blocking_issues()
        if expected != review.approved:
            log_json("WARN", "reviewer_approval_inconsistent",
                     details={"approved": review.approved, "score": review.overall_score,
                              "blocking_issues": len(review.blocking_issues())})

    def process(self, files: Sequence[FileEntry], focus_areas: Sequence[str] = (),
                strict_mode: bool = False) -> ReviewResult:
        self.log("Starting code review...")
        prompt = "Review the following code for quality, security, performance, and best practices.\n\n"
        if focus_areas:
            prompt += "**Focus Areas:**\n" + "\n".join(focus_areas) + "\n\n"
        if strict_mode:
            prompt += "**Mode:** STRICT - Be very thorough and critical.\n\n"
        else:
            prompt += "**Mode:** BALANCED - Be constructive but practical.\n\n"
        prompt += (
            f"**Code to Review:**\n{format_files(files)}\n\n"
            "Provide a comprehensive code review with scores, issues, and actionable recommendations."
        )

        review = self.decode(self.ask(prompt, "review", "ArchitectAgent.process"))
        self._check_approval(review)
        self.log(f"Code review completed. Overall score: {review.overall_score}/100", "success")
        self.log(f"Found {len(review.issues)} issues")
        self.log(f"Approved for deployment: {'YES' if review.approved else 'NO'}",
                 "success" if review.approved else "warning")
        return review

    def security_audit(self, files: Sequence[FileEntry]) -> SecurityAuditResult:
        self.log("Performing security audit...")
        prompt = (
            "Perform a security audit on this code. Focus on XSS, SQL injection, CSRF, "
            "input validation, authentication issues, sensitive data exposure and "
            "insecure dependencies.\n\n"
            f"**Code:**\n{format_files(files)}\n{SECURITY_AUDIT_SHAPE}"
        )
        payload = self.ask(prompt, "security_audit", "ArchitectAgent.security_audit")
        audit = SecurityAuditResult(
            security_score=payload["securityScore"],
            vulnerabilities=_dict_list(payload.get("vulnerabilities")),
            passed=payload.get("passed") is True,
        )
        self.log(f"Security audit completed. Score: {audit.security_score}/100", "success")
        return audit

    def performance_analysis(self, files: Sequence[FileEntry]) -> PerformanceResult:
        self.log("Analyzing performance...")
        prompt = (
            "Analyze this code for performance issues and optimization opportunities.\n\n"
            f"**Code:**\n{format_files(files)}\n{PERFORMANCE_SHAPE}"
        )
        payload = self.ask(prompt, "performance", "ArchitectAgent.performance_analysis")
        analysis = PerformanceResult(
            performance_score=payload["performanceScore"],
            bottlenecks=_dict_list(payload.get("bottlenecks")),
            optimizations=str_list(payload.get("optimizations")),
        )
        self.log(f"Performance analysis completed. Score: {analysis.performance_score}/100", "success")
        return analysis

    def accessibility_review(self, files: Sequence[FileEntry]) -> AccessibilityResult:
        """WCAG review of the HTML files only; no remote call when there are none."""
        self.log("Reviewing accessibility...")
        html_files = [f for f in files if f.path.lower().endswith(".html")]
        if not html_files:
            return AccessibilityResult(accessibility_score=100, passed=True,
                                       message="No HTML files to review for accessibility")
        prompt = (
            "Review this HTML for WCAG 2.1 accessibility compliance.\n\n"
            f"**HTML Files:**\n{format_files(html_files)}\n{ACCESSIBILITY_SHAPE}"
        )
        payload = self.ask(prompt, "accessibility", "ArchitectAgent.accessibility_review")
        result = AccessibilityResult(
            accessibility_score=payload["accessibilityScore"],
            issues=_dict_list(payload.get("issues")),
            passed=payload.get("passed") is True,
        )
        self.log(f"Accessibility review completed. Score: {result.accessibility_score}/100", "success")
        return result

    def suggest_refactoring(self, file: FileEntry) -> RefactoringResult:
        self.log(f"Generating refactoring suggestions for {file.path}...")
        prompt = (
            "Analyze this code and suggest refactoring improvements.\n\n"
            f"{format_files([file])}\n{REFACTORING_SHAPE}"
        )
        payload = self.ask(prompt, "refactoring", "ArchitectAgent.suggest_refactoring")
        result = RefactoringResult(
            current_issues=str_list(payload.get("currentIssues")),
            refactoring_plan=_dict_list(payload["refactoringPlan"]),
            refactored_code=str(payload.get("refactoredCode") or ""),
        )
        self.log("Refactoring suggestions generated", "success")
        return result
