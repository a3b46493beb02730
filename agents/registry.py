from typing import Dict, Optional

from agents.base import Agent
from agents.coder import CoderAgent
from agents.planner import PlannerAgent
from agents.reviewer import ReviewerAgent
from agents.seo import SEOOptimizerAgent
from core.model_adapter import ModelAdapter
from core.run_log import RunLog

# Lookup aliases accepted by LoopOrchestrator.get_agent
AGENT_ALIASES = {
    "planner": "planning",
    "coder": "coding",
    "architect": "reviewer",
    "review": "reviewer",
    "seo_optimizer": "seo",
}


def default_agents(model: ModelAdapter, run_log: Optional[RunLog] = None) -> Dict[str, Agent]:
    """Build one agent per role, all sharing *model* and writing to *run_log*."""
    return {
        "planning": PlannerAgent(model, run_log),
        "coding": CoderAgent(model, run_log),
        "reviewer": ReviewerAgent(model, run_log),
        "seo": SEOOptimizerAgent(model, run_log),
    }
