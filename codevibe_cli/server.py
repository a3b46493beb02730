"""FastAPI server exposing the CodeVibe workflows over HTTP.

Every request gets a fresh runtime (orchestrator, run log, agents), so
concurrent requests never share a log or a workflow.
"""
from __future__ import annotations

import asyncio
import os
from typing import Any, Dict, Iterator, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from codevibe_cli.payloads import failure_payload, to_jsonable
from codevibe_cli.runtime import close_runtime, create_runtime
from core.exceptions import ConfigurationError, WorkflowFailure
from core.logging_utils import log_json
from core.types import FileEntry


def require_auth(authorization: Optional[str] = Header(default=None)):
    """Simple bearer-token auth; disabled if CODEVIBE_API_TOKEN is unset."""
    token = os.getenv("CODEVIBE_API_TOKEN")
    if not token:
        return
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    if authorization != f"Bearer {token}":
        raise HTTPException(status_code=403, detail="Invalid token")


def get_runtime() -> Iterator[Dict[str, Any]]:
    runtime = create_runtime()
    try:
        yield runtime
    finally:
        close_runtime(runtime)


app = FastAPI(title="CodeVibe Agent API", version="0.1.0")


class FileModel(BaseModel):
    path: str = Field(..., min_length=1)
    content: str = ""

    def to_entry(self) -> FileEntry:
        return FileEntry(path=self.path, content=self.content)


class FilesRequest(BaseModel):
    files: List[FileModel] = Field(default_factory=list)

    def entries(self) -> List[FileEntry]:
        return [f.to_entry() for f in self.files]


class QuickWorkflowRequest(FilesRequest):
    request: str = Field(..., min_length=1, description="Natural-language description of the change")
    active_file: Optional[FileModel] = None
    strict_mode: Optional[bool] = None

    def active_entry(self) -> Optional[FileEntry]:
        return self.active_file.to_entry() if self.active_file else None


class PlanRequest(FilesRequest):
    request: str = Field(..., min_length=1)
    active_file: Optional[FileModel] = None
    project_type: Optional[str] = None

    def active_entry(self) -> Optional[FileEntry]:
        return self.active_file.to_entry() if self.active_file else None


class FullWorkflowRequest(QuickWorkflowRequest):
    max_iterations: Optional[int] = Field(default=None, ge=0)
    project_type: Optional[str] = None


class ReviewRequest(FilesRequest):
    focus_areas: List[str] = Field(default_factory=list)
    strict_mode: Optional[bool] = None


class SEORequest(BaseModel):
    html: str = Field(..., min_length=1)
    options: Dict[str, Any] = Field(default_factory=dict)


@app.exception_handler(WorkflowFailure)
async def workflow_failure_handler(_request: Request, exc: WorkflowFailure):
    status = 503 if isinstance(exc.cause, ConfigurationError) else 502
    log_json("ERROR", "api_workflow_failed",
             details={"phase": exc.phase, "iteration": exc.iteration, "status": status})
    return JSONResponse(status_code=status, content=failure_payload(exc))


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(_request: Request, exc: ConfigurationError):
    log_json("ERROR", "api_configuration_error", details={"error": str(exc)})
    return JSONResponse(status_code=503, content={"status": "error", "code": "configuration_error",
                                                  "error": str(exc)})


@app.get("/health")
async def health(auth=Depends(require_auth), runtime=Depends(get_runtime)):
    orchestrator = runtime["orchestrator"]
    return {
        "status": "ok",
        "ready": orchestrator.is_ready(),
        "model": runtime["model_adapter"].model_name,
        "agents": to_jsonable(orchestrator.get_stats()["agents"]),
    }


def _strict(runtime: Dict[str, Any], requested: Optional[bool]) -> bool:
    return runtime["strict_mode"] if requested is None else requested


@app.post("/workflows/full")
async def full_workflow(req: FullWorkflowRequest, auth=Depends(require_auth),
                        runtime=Depends(get_runtime)):
    result = await asyncio.to_thread(
        runtime["orchestrator"].run_full_workflow,
        req.request, req.entries(), req.active_entry(),
        max_iterations=req.max_iterations,
        project_type=req.project_type or runtime["project_type"],
        strict_mode=_strict(runtime, req.strict_mode),
    )
    return to_jsonable(result)


@app.post("/workflows/quick")
async def quick_workflow(req: QuickWorkflowRequest, auth=Depends(require_auth),
                         runtime=Depends(get_runtime)):
    result = await asyncio.to_thread(
        runtime["orchestrator"].run_quick_workflow,
        req.request, req.entries(), req.active_entry(),
        strict_mode=_strict(runtime, req.strict_mode),
    )
    return to_jsonable(result)


@app.post("/workflows/plan")
async def planning_workflow(req: PlanRequest, auth=Depends(require_auth),
                            runtime=Depends(get_runtime)):
    result = await asyncio.to_thread(
        runtime["orchestrator"].run_planning_workflow,
        req.request, req.entries(), req.active_entry(),
        project_type=req.project_type or runtime["project_type"],
    )
    return to_jsonable(result)


@app.post("/workflows/review")
async def review_workflow(req: ReviewRequest, auth=Depends(require_auth),
                          runtime=Depends(get_runtime)):
    result = await asyncio.to_thread(
        runtime["orchestrator"].run_review_workflow,
        req.entries(), focus_areas=req.focus_areas,
        strict_mode=_strict(runtime, req.strict_mode),
    )
    return to_jsonable(result)


@app.post("/workflows/security")
async def security_audit(req: FilesRequest, auth=Depends(require_auth),
                         runtime=Depends(get_runtime)):
    result = await asyncio.to_thread(runtime["orchestrator"].run_security_audit, req.entries())
    return to_jsonable(result)


@app.post("/workflows/performance")
async def performance_analysis(req: FilesRequest, auth=Depends(require_auth),
                               runtime=Depends(get_runtime)):
    result = await asyncio.to_thread(runtime["orchestrator"].run_performance_analysis, req.entries())
    return to_jsonable(result)


@app.post("/workflows/seo")
async def seo_workflow(req: SEORequest, auth=Depends(require_auth),
                       runtime=Depends(get_runtime)):
    result = await asyncio.to_thread(runtime["orchestrator"].run_seo_workflow, req.html, req.options)
    return to_jsonable(result)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=os.environ.get("CODEVIBE_API_HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", 8080)),
    )
