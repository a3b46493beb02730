from typing import Any, Dict, List, Optional, Sequence

from agents.base import JSON_ONLY, Agent, as_json, file_list
from core.schema import decode_operations, str_list
from core.types import CodeResult, FileEntry

FEATURE_FILE_PREVIEW_CHARS = 500

CODER_INSTRUCTIONS = f"""
You are an expert coding agent. Write clean, efficient and well-documented code
based on implementation plans and requirements.

{JSON_ONLY}

Your response MUST have this exact structure:
{{
  "thought": "Brief explanation of your implementation approach",
  "operations": [
    {{
      "action": "create_file|update_file|delete_file",
      "path": "file/path.ext",
      "content": "full file content (omit for delete_file)",
      "reasoning": "why this change is needed"
    }}
  ],
  "summary": "Summary of what was implemented",
  "testingSuggestions": ["how to test this code"],
  "nextSteps": ["what should be done next"]
}}

Coding rules:
1. Always write the FULL content of every created or updated file.
2. Readable, DRY code with meaningful names and comments for complex logic.
3. Modern JavaScript (ES6+), async/await and proper error handling.
4. HTML files: full <!DOCTYPE html>, meta tags, semantic elements, the Tailwind
   CDN (<script src="https://cdn.tailwindcss.com"></script>), responsive and accessible.
5. Sanitize user input and avoid XSS; validate data before processing.
6. Keep files focused; separate components, utilities and styles.
"""


def _extension(path: str) -> str:
    return path.rsplit(".", 1)[-1] if "." in path else ""


class CoderAgent(Agent):
    """
    Produces the file operations that implement a request.

    The Coder never applies its own output: operations are returned as data
    in a :class:`~core.types.CodeResult` and only interpreted by
    :func:`core.file_simulator.simulate` or by the caller.
    """

    name = "Coding Agent"
    instructions = CODER_INSTRUCTIONS
    capabilities = [
        "Code generation",
        "File creation and modification",
        "Refactoring",
        "Bug fixing",
        "Feature implementation",
    ]

    def decode(self, payload: Dict[str, Any], context: str) -> CodeResult:
        return CodeResult(
            thought=str(payload.get("thought") or ""),
            operations=decode_operations(payload["operations"], context),
            summary=str(payload.get("summary") or ""),
            testing_suggestions=str_list(payload.get("testingSuggestions")),
            next_steps=str_list(payload.get("nextSteps")),
        )

    def _generate(self, prompt: str, context: str) -> CodeResult:
        code = self.decode(self.ask(prompt, "code", context), context)
        self.log(f"Code generated: {len(code.operations)} file operations", "success")
        if code.summary:
            self.log(f"Summary: {code.summary}")
        return code

    def process(self, requirements: str, files: Sequence[FileEntry] = (),
                active_file: Optional[FileEntry] = None, plan: Any = None,
                specific_task: Any = None) -> CodeResult:
        """Generate operations for *requirements*.

        Args:
            requirements: The user request, or review feedback on later passes.
            files: Current (possibly speculative) project snapshot.
            active_file: File open in the editor, sent in full.
            plan: Optional :class:`~core.types.PlanResult` (or text) to follow.
            specific_task: Optional narrower instruction for this pass.
        """
        self.log("Generating code...")
        prompt = (
            f"**Requirements:**\n{requirements}\n\n"
            f"**Current Project Context:**\n"
            f"- Existing Files: {file_list(files)}\n"
            f"- Active File: {active_file.path if active_file else 'None'}\n"
        )
        if plan:
            plan_text = plan if isinstance(plan, str) else as_json(plan)
            prompt += f"\n**Implementation Plan:**\n{plan_text}\n"
        if specific_task:
            task_text = specific_task if isinstance(specific_task, str) else as_json(specific_task)
            prompt += f"\n**Current Task:**\n{task_text}\n"
        if active_file:
            prompt += (f"\n**Active File Content:**\n```{_extension(active_file.path)}\n"
                       f"{active_file.content}\n```\n")
        prompt += (
            "\nPlease generate the code needed to fulfil these requirements, creating or "
            "modifying files as needed, with proper error handling and comments."
        )
        return self._generate(prompt, "CodingAgent.process")

    def fix_bug(self, bug_description: str, code: str, file_path: str) -> CodeResult:
        self.log(f"Fixing bug in {file_path}...")
        prompt = (
            f"**Bug Description:**\n{bug_description}\n\n"
            f"**File:** {file_path}\n\n"
            f"**Current Code:**\n```\n{code}\n```\n\n"
            "Identify the bug and return the corrected file in the standard JSON format."
        )
        return self._generate(prompt, "CodingAgent.fix_bug")

    def refactor(self, code: str, file_path: str, goals: List[str] = ()) -> CodeResult:
        self.log(f"Refactoring {file_path}...")
        goals_text = "\n".join(goals) if goals else "Improve code quality, readability, and maintainability"
        prompt = (
            f"**File:** {file_path}\n\n"
            f"**Current Code:**\n```\n{code}\n```\n\n"
            f"**Refactoring Goals:**\n{goals_text}\n\n"
            "Refactor this code and return the improved file in the standard JSON format."
        )
        return self._generate(prompt, "CodingAgent.refactor")

    def add_feature(self, feature_description: str, files: Sequence[FileEntry] = ()) -> CodeResult:
        self.log("Adding new feature...")
        excerpts = []
        for f in files:
            body = f.content[:FEATURE_FILE_PREVIEW_CHARS]
            if len(f.content) > FEATURE_FILE_PREVIEW_CHARS:
                body += "..."
            excerpts.append(f"File: {f.path}\n```\n{body}\n```")
        prompt = (
            f"**Feature Request:**\n{feature_description}\n\n"
            f"**Existing Files:**\n{chr(10).join(excerpts) or 'None'}\n\n"
            "Implement this feature, creating or modifying files as needed. "
            "Return the standard JSON format."
        )
        return self._generate(prompt, "CodingAgent.add_feature")
