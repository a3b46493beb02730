import dataclasses
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from core.json_extract import extract_structured
from core.logging_utils import log_json
from core.model_adapter import ModelAdapter
from core.run_log import RunLog
from core.schema import require_result
from core.types import FileEntry

# Prefix shared by every role's instructions
JSON_ONLY = (
    "IMPORTANT: You MUST respond with a single JSON object. "
    "Do not include markdown or any text outside the JSON."
)


def format_files(files: List[FileEntry]) -> str:
    return "\n\n".join(f"**File: {f.path}**\n```\n{f.content}\n```" for f in files)


def file_list(files: List[FileEntry]) -> str:
    return ", ".join(f.path for f in files) or "None"


def as_json(value: Any) -> str:
    """Pretty JSON for prompts; dataclass results are flattened first."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    return json.dumps(value, indent=2, default=str)


class Agent(ABC):
    """A role-bound caller of the text-generation service.

    Subclasses supply ``name``, ``instructions`` and ``capabilities`` and
    implement :meth:`process`. :meth:`ask` does the shared work: one model
    call, JSON recovery, and the required-field check for a result schema.
    """

    name: str
    instructions: str
    capabilities: List[str] = []

    def __init__(self, model: ModelAdapter, run_log: Optional[RunLog] = None):
        self.model = model
        self.run_log = run_log

    def log(self, message: str, type: str = "info") -> None:
        if self.run_log is not None:
            self.run_log.append(message, type=type, agent=self.name)
        else:
            level = {"warning": "WARN", "error": "ERROR"}.get(type, "INFO")
            log_json(level, "agent_activity", details={"agent": self.name, "message": message})

    def ask(self, prompt: str, schema: str, context: str, **generation_options) -> Dict[str, Any]:
        """Call the model and return the payload once it satisfies *schema*.

        Failures are recorded on the structured process log only; the
        orchestrator owns the run-log entry for a failed phase.
        """
        try:
            text = self.model.generate(prompt, self.instructions, **generation_options)
            payload = extract_structured(text, context)
            return require_result(schema, payload, context)
        except Exception as e:
            log_json("ERROR", "agent_call_failed",
                     details={"agent": self.name, "context": context,
                              "error_type": type(e).__name__, "error": str(e)})
            raise

    @abstractmethod
    def process(self, input_data: Any, **context):
        """Turn *input_data* plus role-specific context into a typed result."""
        raise NotImplementedError

    def get_info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "model": self.model.model_name,
            "capabilities": list(self.capabilities),
        }
