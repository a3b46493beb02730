import io
import json

import pytest
from rich.console import Console

from codevibe_cli.cli_main import dispatch_command, main
from codevibe_cli.cli_options import CLIParseError, parse_cli_args
from core.exceptions import TransportError
from core.orchestrator import LoopOrchestrator
from core.run_log import RunLog
from tests.fakes.fake_agents import FakeModel, make_fake_agents, make_review


@pytest.fixture
def project(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in ("GEMINI_API_KEY", "CODEVIBE_API_KEY", "CODEVIBE_MODEL"):
        monkeypatch.delenv(key, raising=False)
    (tmp_path / "index.html").write_text("<html></html>")
    return tmp_path


class FakeRuntimeFactory:
    def __init__(self, **scripts):
        self.scripts = scripts
        self.calls = []
        self.orchestrator = None

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        self.orchestrator = LoopOrchestrator(make_fake_agents(**self.scripts), run_log=RunLog(),
                                             model=FakeModel())
        return {"orchestrator": self.orchestrator, "strict_mode": False, "project_type": "web"}


def _run(argv, factory, console=None):
    return dispatch_command(parse_cli_args(argv), runtime_factory=factory, console=console)


def test_full_json_output(project, capsys):
    factory = FakeRuntimeFactory()

    code = _run(["full", "build a page", "-f", "index.html", "--json", "--model", "gemini-x"], factory)

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["success"] is True
    assert payload["operations"][0]["path"] == "index.html"
    assert payload["workflow"]["phase"] == "approved"
    assert factory.calls[0]["overrides"] == {"model_name": "gemini-x"}


def test_files_are_read_relative_to_root(project, capsys):
    factory = FakeRuntimeFactory()

    _run(["quick", "tweak", "-f", "index.html", "--active", "index.html", "--json"], factory)

    kwargs = factory.orchestrator.agents["coding"].calls_to("process")[0][2]
    assert kwargs["files"][0].path == "index.html"
    assert kwargs["files"][0].content == "<html></html>"
    assert kwargs["active_file"].path == "index.html"


def test_apply_writes_operations_under_root(project, capsys):
    factory = FakeRuntimeFactory()

    code = _run(["quick", "tweak", "-f", "index.html", "--apply", "--json"], factory)

    assert code == 0
    assert (project / "index.html").read_text() == "<h1>hi</h1>"
    assert json.loads(capsys.readouterr().out)["applied"] == ["index.html"]


def test_without_apply_files_are_untouched(project, capsys):
    _run(["full", "tweak", "-f", "index.html", "--json"], FakeRuntimeFactory())
    assert (project / "index.html").read_text() == "<html></html>"


def test_workflow_failure_exits_1_with_context(project, capsys):
    factory = FakeRuntimeFactory(planner=[TransportError("HTTP error! status: 500", status_code=500)])

    code = _run(["full", "x", "--json"], factory)

    assert code == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["code"] == "workflow_failed"
    assert payload["phase"] == "planning"
    assert payload["error_type"] == "TransportError"


def test_missing_input_file_exits_1(project, capsys):
    code = _run(["review", "-f", "missing.js"], FakeRuntimeFactory(), console=Console(file=io.StringIO()))
    assert code == 1


def test_binary_input_file_exits_1_with_json_error(project, capsys):
    (project / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n")

    code = _run(["security", "--file", "logo.png", "--root", str(project), "--json"],
                FakeRuntimeFactory())

    assert code == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["code"] == "FileToolsError"
    assert "logo.png" in payload["error"]


def test_review_renders_table(project):
    buffer = io.StringIO()
    factory = FakeRuntimeFactory(reviewer=[make_review(False, score=55,
                                                       required_changes=["escape user input"])])

    code = _run(["review", "-f", "index.html", "--focus", "security", "--strict"], factory,
                console=Console(file=buffer, width=120))

    assert code == 0
    output = buffer.getvalue()
    assert "Review score: 55/100" in output
    assert "NOT APPROVED" in output
    assert "escape user input" in output
    kwargs = factory.orchestrator.agents["reviewer"].calls_to("process")[0][2]
    assert kwargs["strict_mode"] is True
    assert kwargs["focus_areas"] == ["security"]


def test_seo_writes_output_file(project, capsys):
    factory = FakeRuntimeFactory()

    code = _run(["seo", "index.html", "--keywords", "a, b", "--title", "Home",
                 "--output", "out.html", "--json"], factory)

    assert code == 0
    assert (project / "out.html").read_text() == "<html></html>"
    options = factory.orchestrator.agents["seo"].calls_to("process")[0][1][1]
    assert options.keywords == ["a", "b"]
    assert options.title == "Home"


def test_config_command_masks_api_key(project, capsys):
    (project / "codevibe.config.json").write_text(json.dumps({"api_key": "AIza-secret",
                                                              "max_iterations": 3}))

    code = main(["config", "--json"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["api_key"] == "***"
    assert payload["max_iterations"] == 3


@pytest.mark.parametrize("argv", [[], ["full"], ["bogus"], ["full", "x", "--max-iterations", "-1"],
                                  ["security"]])
def test_usage_errors_exit_2(project, argv, capsys):
    assert main(argv) == 2


def test_parse_error_as_json(project, capsys):
    assert main(["full", "--json"]) == 2
    payload = json.loads(capsys.readouterr().out)
    assert payload["code"] == "cli_parse_error"


def test_parse_cli_args_defaults():
    parsed = parse_cli_args(["full", "x"])
    assert parsed.command == "full"
    assert parsed.json is False
    assert parsed.namespace.strict is None
    assert parsed.namespace.max_iterations is None
    with pytest.raises(CLIParseError):
        parse_cli_args(["plan"])
