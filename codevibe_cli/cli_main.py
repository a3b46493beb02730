import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from agents.seo import SEOOptions
from codevibe_cli.cli_options import CLIParseError, ParsedCLIArgs, parse_cli_args
from codevibe_cli.payloads import failure_payload, to_jsonable
from codevibe_cli.runtime import close_runtime, create_runtime
from core.config_manager import ConfigManager
from core.exceptions import CodeVibeError, WorkflowFailure
from core.file_tools import apply_operations, read_project_files
from core.logging_utils import log_json

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

_SEVERITY_STYLE = {"critical": "bold red", "high": "red", "medium": "yellow", "low": "cyan"}


@dataclass
class DispatchContext:
    parsed: ParsedCLIArgs
    runtime_factory: Callable[..., Dict[str, Any]]
    console: Console
    runtime: Optional[Dict[str, Any]] = None

    @property
    def args(self):
        return self.parsed.namespace

    @property
    def root(self) -> Path:
        return Path(self.args.root)

    @property
    def orchestrator(self):
        return self.runtime["orchestrator"]

    def files(self, paths: Optional[List[str]] = None):
        return read_project_files(self.args.files if paths is None else paths, self.root)

    def active_file(self):
        active = getattr(self.args, "active", None)
        return read_project_files([active], self.root)[0] if active else None


def _print_json_payload(payload: dict) -> None:
    print(json.dumps(to_jsonable(payload), indent=2, default=str))


def _score_style(score) -> str:
    if not isinstance(score, (int, float)):
        return "white"
    if score >= 80:
        return "green"
    return "yellow" if score >= 60 else "red"


# ── Renderers ────────────────────────────────────────────────────────────────

def _render_operations(console: Console, operations) -> None:
    table = Table(title="Proposed file operations", box=box.ROUNDED)
    table.add_column("Action", style="bold", width=12)
    table.add_column("Path")
    table.add_column("Reasoning")
    for op in operations:
        table.add_row(getattr(op.action, "value", str(op.action)), op.path, op.reasoning or "")
    console.print(table)


def _render_review(console: Console, review) -> None:
    verdict = "[green]APPROVED[/green]" if review.approved else "[red]NOT APPROVED[/red]"
    console.print(f"Review score: [{_score_style(review.overall_score)}]"
                  f"{review.overall_score}/100[/] {verdict}")
    if review.summary:
        console.print(review.summary)
    if review.issues:
        table = Table(title="Issues", box=box.ROUNDED)
        table.add_column("Severity", width=9)
        table.add_column("File")
        table.add_column("Issue")
        table.add_column("Recommendation")
        for issue in review.issues:
            style = _SEVERITY_STYLE.get(issue.severity, "white")
            table.add_row(f"[{style}]{issue.severity}[/]", issue.file or "", issue.issue,
                          issue.recommendation or "")
        console.print(table)
    for change in review.required_changes:
        console.print(f"  [yellow]•[/yellow] {change}")


def _render_plan(console: Console, plan) -> None:
    if plan.understanding:
        console.print(f"[bold]Understanding:[/bold] {plan.understanding}")
    if plan.approach:
        console.print(f"[bold]Approach:[/bold] {plan.approach}")
    table = Table(title=f"Plan ({plan.total_tasks} tasks)", box=box.ROUNDED)
    table.add_column("#", width=4)
    table.add_column("Task", style="bold")
    table.add_column("Type", width=12)
    table.add_column("Priority", width=8)
    table.add_column("Depends on")
    for task in plan.tasks:
        table.add_row(str(task.id), task.title, task.type, task.priority,
                      ", ".join(str(d) for d in task.dependencies))
    console.print(table)
    for risk in plan.risks:
        console.print(f"  [yellow]![/yellow] {risk}")


def _render_findings(console: Console, title: str, score, rows, columns) -> None:
    console.print(f"{title}: [{_score_style(score)}]{score}/100[/]")
    if not rows:
        return
    table = Table(box=box.ROUNDED)
    for col in columns:
        table.add_column(col.capitalize())
    for row in rows:
        table.add_row(*(str(row.get(col, "")) for col in columns))
    console.print(table)


# ── Handlers ─────────────────────────────────────────────────────────────────

def _commit(ctx: DispatchContext, result: dict) -> None:
    if not getattr(ctx.args, "apply", False):
        return
    written = apply_operations(result["operations"], ctx.root)
    result["applied"] = written
    if not ctx.parsed.json:
        ctx.console.print(f"[green]Applied {len(written)} operation(s) under {ctx.root}[/green]")


def _handle_full(ctx: DispatchContext) -> int:
    args = ctx.args
    result = ctx.orchestrator.run_full_workflow(
        args.request, ctx.files(), ctx.active_file(),
        max_iterations=args.max_iterations,
        project_type=args.project_type or ctx.runtime["project_type"],
        strict_mode=ctx.runtime["strict_mode"] if args.strict is None else args.strict,
    )
    if ctx.parsed.json:
        _commit(ctx, result)
        _print_json_payload(result)
        return EXIT_OK
    workflow = result["workflow"]
    _render_plan(ctx.console, result["plan"])
    _render_operations(ctx.console, result["operations"])
    _render_review(ctx.console, result["review"])
    ctx.console.print(f"Iterations: {workflow.iterations}/{workflow.max_iterations}  "
                      f"Duration: {workflow.duration:.1f}s")
    _commit(ctx, result)
    return EXIT_OK


def _handle_quick(ctx: DispatchContext) -> int:
    args = ctx.args
    result = ctx.orchestrator.run_quick_workflow(
        args.request, ctx.files(), ctx.active_file(),
        strict_mode=ctx.runtime["strict_mode"] if args.strict is None else args.strict,
    )
    if ctx.parsed.json:
        _commit(ctx, result)
        _print_json_payload(result)
        return EXIT_OK
    _render_operations(ctx.console, result["operations"])
    _render_review(ctx.console, result["review"])
    _commit(ctx, result)
    return EXIT_OK


def _handle_plan(ctx: DispatchContext) -> int:
    args = ctx.args
    result = ctx.orchestrator.run_planning_workflow(
        args.request, ctx.files(), ctx.active_file(),
        project_type=args.project_type or ctx.runtime["project_type"],
    )
    if ctx.parsed.json:
        _print_json_payload(result)
    else:
        _render_plan(ctx.console, result["plan"])
    return EXIT_OK


def _handle_review(ctx: DispatchContext) -> int:
    args = ctx.args
    result = ctx.orchestrator.run_review_workflow(
        ctx.files(), focus_areas=args.focus_areas,
        strict_mode=ctx.runtime["strict_mode"] if args.strict is None else args.strict,
    )
    if ctx.parsed.json:
        _print_json_payload(result)
    else:
        _render_review(ctx.console, result["review"])
    return EXIT_OK


def _handle_security(ctx: DispatchContext) -> int:
    result = ctx.orchestrator.run_security_audit(ctx.files())
    if ctx.parsed.json:
        _print_json_payload(result)
    else:
        audit = result["audit"]
        _render_findings(ctx.console, "Security score", audit.security_score,
                         audit.vulnerabilities, ("severity", "type", "file", "description", "fix"))
        ctx.console.print("[green]PASSED[/green]" if audit.passed else "[red]FAILED[/red]")
    return EXIT_OK


def _handle_performance(ctx: DispatchContext) -> int:
    result = ctx.orchestrator.run_performance_analysis(ctx.files())
    if ctx.parsed.json:
        _print_json_payload(result)
    else:
        analysis = result["analysis"]
        _render_findings(ctx.console, "Performance score", analysis.performance_score,
                         analysis.bottlenecks, ("file", "issue", "impact", "optimization"))
        for item in analysis.optimizations:
            ctx.console.print(f"  • {item}")
    return EXIT_OK


def _handle_seo(ctx: DispatchContext) -> int:
    args = ctx.args
    page = read_project_files([args.html], ctx.root)[0]
    options = SEOOptions(
        keywords=[k.strip() for k in args.keywords.split(",") if k.strip()],
        key_phrase=args.key_phrase,
        title=args.title,
        description=args.description,
        author=args.author,
        site_name=args.site_name,
        image_url=args.image_url,
        url=args.url,
        twitter_handle=args.twitter_handle,
    )
    result = ctx.orchestrator.run_seo_workflow(page.content, options)
    optimized = result["optimized"]
    if args.output:
        Path(args.output).write_text(optimized.optimized_html, encoding="utf-8")
    if ctx.parsed.json:
        _print_json_payload(result)
        return EXIT_OK
    ctx.console.print(f"SEO score: [{_score_style(optimized.seo_score)}]{optimized.seo_score}/100[/]")
    if optimized.analysis:
        ctx.console.print(optimized.analysis)
    for change in optimized.changes:
        ctx.console.print(f"  [green]+[/green] {change}")
    for rec in optimized.recommendations:
        ctx.console.print(f"  [cyan]→[/cyan] {rec}")
    if args.output:
        ctx.console.print(f"Optimized HTML written to {args.output}")
    else:
        ctx.console.print(optimized.optimized_html, markup=False, highlight=False)
    return EXIT_OK


def _handle_config(ctx: DispatchContext) -> int:
    manager = ConfigManager(config_file=ctx.args.config_file,
                            overrides=_overrides(ctx.parsed))
    effective = manager.show_config()
    if effective.get("api_key"):
        effective["api_key"] = "***"
    if ctx.parsed.json:
        _print_json_payload(effective)
        return EXIT_OK
    table = Table(title="CodeVibe configuration", box=box.ROUNDED)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in effective.items():
        table.add_row(key, str(value))
    ctx.console.print(table)
    return EXIT_OK


COMMAND_DISPATCH_REGISTRY = {
    "full": _handle_full,
    "quick": _handle_quick,
    "plan": _handle_plan,
    "review": _handle_review,
    "security": _handle_security,
    "performance": _handle_performance,
    "seo": _handle_seo,
    "config": _handle_config,
}

_NO_RUNTIME = {"config"}


def _overrides(parsed: ParsedCLIArgs) -> Dict[str, Any]:
    model_name = getattr(parsed.namespace, "model_name", None)
    return {"model_name": model_name} if model_name else {}


def _report_error(ctx: DispatchContext, payload: dict, message: str) -> None:
    if ctx.parsed.json:
        _print_json_payload(payload)
    else:
        ctx.console.print(f"[red]Error:[/red] {message}")


def dispatch_command(parsed: ParsedCLIArgs, *, runtime_factory=create_runtime,
                     console: Optional[Console] = None) -> int:
    ctx = DispatchContext(parsed=parsed, runtime_factory=runtime_factory,
                          console=console or Console())
    handler = COMMAND_DISPATCH_REGISTRY.get(parsed.command)
    if handler is None:
        print(f"Error: No dispatch rule registered for command '{parsed.command}'", file=sys.stderr)
        return EXIT_USAGE

    try:
        if parsed.command not in _NO_RUNTIME:
            ctx.runtime = runtime_factory(
                overrides=_overrides(parsed),
                config_manager=ConfigManager(config_file=parsed.namespace.config_file),
            )
        return handler(ctx)
    except WorkflowFailure as exc:
        _report_error(ctx, failure_payload(exc), str(exc))
        return EXIT_FAILURE
    except (CodeVibeError, OSError) as exc:
        log_json("ERROR", "cli_command_failed",
                 details={"command": parsed.command, "error_type": type(exc).__name__, "error": str(exc)})
        _report_error(ctx, {"status": "error", "code": type(exc).__name__, "error": str(exc)}, str(exc))
        return EXIT_FAILURE
    finally:
        close_runtime(ctx.runtime)


def main(argv=None) -> int:
    raw_argv = list(sys.argv[1:] if argv is None else argv)
    try:
        parsed = parse_cli_args(raw_argv)
    except CLIParseError as exc:
        if "--json" in raw_argv:
            print(json.dumps({"status": "error", "code": "cli_parse_error",
                              "message": str(exc), "usage": exc.usage}))
        else:
            print(f"Error: {exc}", file=sys.stderr)
            if exc.usage:
                print(exc.usage, file=sys.stderr)
        return exc.code
    return dispatch_command(parsed)


if __name__ == "__main__":
    raise SystemExit(main())
