from typing import Any, Dict, Optional

from agents.registry import default_agents
from core.config_manager import ConfigManager
from core.logging_utils import log_json
from core.model_adapter import ModelAdapter
from core.orchestrator import LoopOrchestrator
from core.run_log import RunLog
from core.transport import Transport


def create_runtime(overrides: Optional[Dict[str, Any]] = None,
                   config_manager: Optional[ConfigManager] = None,
                   transport: Optional[Transport] = None) -> Dict[str, Any]:
    """
    Library-friendly initializer for one orchestrator and its collaborators.

    Used by the CLI (once per invocation) and by the HTTP server (once per
    request), so runs never share a run log or a workflow.
    """
    runtime_overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    if config_manager is None:
        config_manager = ConfigManager(overrides=runtime_overrides)
    else:
        for k, v in runtime_overrides.items():
            config_manager.set_runtime_override(k, v)

    settings = config_manager.model_settings()
    if not settings.api_key:
        log_json("WARN", "codevibe_api_key_missing",
                 details={"hint": "set GEMINI_API_KEY or api_key in codevibe.config.json"})

    model_adapter = ModelAdapter(settings, transport=transport)
    run_log = RunLog(max_entries=config_manager.get("log_max_entries"))
    orchestrator = LoopOrchestrator(
        agents=default_agents(model_adapter, run_log),
        run_log=run_log,
        max_iterations=config_manager.get("max_iterations"),
        model=model_adapter,
    )
    return {
        "config": config_manager,
        "model_adapter": model_adapter,
        "run_log": run_log,
        "orchestrator": orchestrator,
        "strict_mode": config_manager.get("strict_mode"),
        "project_type": config_manager.get("project_type"),
    }


def close_runtime(runtime: Optional[Dict[str, Any]]) -> None:
    """Release network resources held by a runtime built by :func:`create_runtime`."""
    model_adapter = (runtime or {}).get("model_adapter")
    if model_adapter is not None:
        model_adapter.close()
