from typing import Any, Dict, List, Optional, Union

from agents.base import JSON_ONLY, Agent, as_json, file_list
from core.logging_utils import log_json
from core.schema import decode_tasks, str_list
from core.types import FileEntry, PlanResult, Task, TaskCompletionResult

ACTIVE_FILE_PREVIEW_CHARS = 1000

PLANNER_INSTRUCTIONS = f"""
You are an expert software planning agent. Analyze the user's request and break it
down into a clear, actionable implementation plan.

{JSON_ONLY}

Your response MUST have this exact structure:
{{
  "understanding": "Your understanding of the user's request",
  "approach": "High-level approach to solve the problem",
  "tasks": [
    {{
      "id": 1,
      "title": "Task title",
      "description": "Detailed description",
      "type": "create_file|update_file|delete_file|refactor|test",
      "files": ["list of files involved"],
      "priority": "high|medium|low",
      "estimatedComplexity": "simple|moderate|complex",
      "dependencies": [2, 3]
    }}
  ],
  "fileStructure": {{"new": [], "modify": [], "delete": []}},
  "techStack": ["technologies/libraries to use"],
  "considerations": ["important considerations"],
  "risks": ["potential risks or challenges"],
  "testingStrategy": "How to test the implementation"
}}

Planning rules:
1. Decompose large tasks into small subtasks ordered by their dependencies.
2. Suggest a sensible folder structure with clear separation of concerns.
3. Name required technologies; consider performance, security and accessibility.
4. Map dependencies explicitly and flag work that can proceed in parallel.
5. Recommend a testing strategy and call out risks and breaking changes.
"""

TASK_COMPLETION_SHAPE = """
Is this task completed successfully? Return JSON:
{
  "isComplete": true,
  "completionPercentage": 0,
  "issues": ["any issues found"],
  "suggestions": ["suggestions for improvement"]
}
"""


def find_dependency_cycles(tasks: List[Task]) -> List[List[Any]]:
    """Return every dependency cycle found among *tasks* (as lists of ids).

    Uses DFS colouring. Dependencies on ids outside the plan are ignored.
    """
    by_id = {t.id: t for t in tasks}
    WHITE, GRAY, BLACK = 0, 1, 2
    color = {t.id: WHITE for t in tasks}
    cycles = []

    def dfs(task_id, path):
        color[task_id] = GRAY
        path.append(task_id)
        for dep in by_id[task_id].dependencies:
            if dep not in by_id:
                continue
            if color[dep] == GRAY:
                cycles.append(path[path.index(dep):] + [dep])
            elif color[dep] == WHITE:
                dfs(dep, path)
        path.pop()
        color[task_id] = BLACK

    for task in tasks:
        if color[task.id] == WHITE:
            dfs(task.id, [])
    return cycles


class PlannerAgent(Agent):
    """
    Turns a natural-language request into a :class:`~core.types.PlanResult`:
    ordered tasks, the files to create/modify/delete, risks and a testing
    strategy.

    Task dependencies are advisory. Cycles are reported with a warning but
    the plan is still returned.
    """

    name = "Planning Agent"
    instructions = PLANNER_INSTRUCTIONS
    capabilities = [
        "Task decomposition",
        "Dependency analysis",
        "Architecture planning",
        "Risk assessment",
        "Testing strategy",
    ]

    def decode(self, payload: Dict[str, Any], context: str) -> PlanResult:
        structure = payload.get("fileStructure") if isinstance(payload.get("fileStructure"), dict) else {}
        plan = PlanResult(
            understanding=str(payload.get("understanding") or ""),
            approach=str(payload.get("approach") or ""),
            tasks=decode_tasks(payload["tasks"], context),
            file_structure={k: str_list(structure.get(k)) for k in ("new", "modify", "delete")},
            tech_stack=str_list(payload.get("techStack")),
            considerations=str_list(payload.get("considerations")),
            risks=str_list(payload.get("risks")),
            testing_strategy=str(payload.get("testingStrategy") or ""),
        )
        cycles = find_dependency_cycles(plan.tasks)
        if cycles:
            log_json("WARN", "planner_dependency_cycles", details={"cycles": cycles})
            self.log(f"Plan has {len(cycles)} circular task dependencies (treated as advisory)", "warning")
        return plan

    def process(self, user_request: str, files: List[FileEntry] = (),
                active_file: Optional[FileEntry] = None, project_type: str = "web") -> PlanResult:
        self.log("Creating implementation plan...")
        prompt = (
            f"**User Request:**\n{user_request}\n\n"
            f"**Current Project Context:**\n"
            f"- Project Type: {project_type}\n"
            f"- Existing Files: {file_list(files)}\n"
            f"- Active File: {active_file.path if active_file else 'None'}\n"
        )
        if active_file:
            content = active_file.content
            preview = content[:ACTIVE_FILE_PREVIEW_CHARS]
            if len(content) > ACTIVE_FILE_PREVIEW_CHARS:
                preview += "..."
            prompt += f"\n**Active File Content:**\n```\n{preview}\n```\n"
        prompt += (
            "\nPlease create a detailed implementation plan that breaks this request into "
            "actionable tasks, taking the existing project structure into account."
        )

        context = "PlanningAgent.process"
        plan = self.decode(self.ask(prompt, "plan", context), context)
        self.log(f"Plan created with {plan.total_tasks} tasks", "success")
        self.log(f"Files to modify: {len(plan.file_structure['modify'])}, "
                 f"create: {len(plan.file_structure['new'])}")
        return plan

    def refine_plan(self, original_plan: Union[PlanResult, Dict[str, Any]], feedback: str) -> PlanResult:
        """Revise *original_plan* according to *feedback*."""
        self.log("Refining implementation plan...")
        prompt = (
            f"**Original Plan:**\n{as_json(original_plan)}\n\n"
            f"**Feedback/Changes Requested:**\n{feedback}\n\n"
            "Please refine the plan based on this feedback. Keep the same JSON structure "
            "but update tasks, priorities or approach as needed."
        )
        context = "PlanningAgent.refine_plan"
        plan = self.decode(self.ask(prompt, "plan", context), context)
        self.log("Plan refined successfully", "success")
        return plan

    def validate_task_completion(self, task: Union[Task, Dict[str, Any]],
                                 implementation: str) -> TaskCompletionResult:
        prompt = (
            f"**Task:**\n{as_json(task)}\n\n"
            f"**Implementation:**\n{implementation}\n"
            f"{TASK_COMPLETION_SHAPE}"
        )
        payload = self.ask(prompt, "task_completion", "PlanningAgent.validate_task_completion")
        percentage = payload.get("completionPercentage")
        return TaskCompletionResult(
            is_complete=payload["isComplete"],
            completion_percentage=percentage if isinstance(percentage, (int, float)) else 0,
            issues=str_list(payload.get("issues")),
            suggestions=str_list(payload.get("suggestions")),
        )
