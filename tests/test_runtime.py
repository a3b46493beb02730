import json
from unittest.mock import MagicMock, patch

from codevibe_cli import server
from codevibe_cli.runtime import close_runtime, create_runtime
from core.config_manager import ConfigManager
from core.transport import Transport


def _manager(tmp_path, monkeypatch, **values):
    for key in ("GEMINI_API_KEY", "CODEVIBE_API_KEY", "CODEVIBE_MODEL"):
        monkeypatch.delenv(key, raising=False)
    path = tmp_path / "codevibe.config.json"
    path.write_text(json.dumps(values))
    return ConfigManager(config_file=path)


def _http(status, payload=None):
    response = MagicMock(status_code=status)
    if payload is not None:
        response.json.return_value = {
            "candidates": [{"content": {"parts": [{"text": json.dumps(payload)}]}}]
        }
    return response


def test_runtime_wires_config_into_orchestrator(tmp_path, monkeypatch):
    manager = _manager(tmp_path, monkeypatch, max_iterations=4, log_max_entries=50,
                       model_name="gemini-custom", strict_mode=True)

    runtime = create_runtime(config_manager=manager)

    orchestrator = runtime["orchestrator"]
    assert orchestrator.max_iterations == 4
    assert orchestrator.run_log.max_entries == 50
    assert orchestrator.is_ready() is False
    assert runtime["strict_mode"] is True
    assert orchestrator.get_agent("coder").model.model_name == "gemini-custom"


def test_runtime_overrides_skip_none_values(tmp_path, monkeypatch):
    manager = _manager(tmp_path, monkeypatch, api_key="k")
    runtime = create_runtime(overrides={"model_name": None, "max_iterations": 1},
                             config_manager=manager)
    assert runtime["model_adapter"].model_name == "gemini-2.0-flash-exp"
    assert runtime["orchestrator"].max_iterations == 1
    assert runtime["orchestrator"].is_ready() is True


def test_full_workflow_over_http_with_rate_limit(tmp_path, monkeypatch):
    manager = _manager(tmp_path, monkeypatch, api_key="AIza-test", max_iterations=1)
    session = MagicMock()
    session.post.side_effect = [
        _http(200, {"tasks": [{"id": 1, "title": "page"}]}),
        _http(429),
        _http(200, {"operations": [{"action": "create_file", "path": "index.html",
                                    "content": "<h1>v1</h1>"}]}),
        _http(200, {"overallScore": 62, "approved": False, "requiredChanges": ["add a title"]}),
        _http(200, {"operations": [{"action": "update_file", "path": "index.html",
                                    "content": "<title>t</title><h1>v1</h1>"}]}),
        _http(200, {"overallScore": 91, "approved": True}),
    ]
    transport = Transport(retry=manager.retry_settings(), headers={"x-goog-api-key": "AIza-test"},
                          session=session)
    runtime = create_runtime(config_manager=manager, transport=transport)

    with patch("core.transport.time.sleep") as mock_sleep:
        result = runtime["orchestrator"].run_full_workflow("landing page", [])

    mock_sleep.assert_called_once_with(1.0)
    assert session.post.call_count == 6
    assert result["review"].approved is True
    assert result["workflow"].iterations == 1
    assert [op.path for op in result["operations"]] == ["index.html", "index.html"]
    assert result["snapshot"][0].content == "<title>t</title><h1>v1</h1>"
    fix_prompt = session.post.call_args_list[4].kwargs["json"]["contents"][0]["parts"][0]["text"]
    assert "Fix these issues:\nadd a title" in fix_prompt


def test_close_runtime_closes_the_session_it_created(tmp_path, monkeypatch):
    runtime = create_runtime(config_manager=_manager(tmp_path, monkeypatch, api_key="k"))

    with patch.object(runtime["model_adapter"].transport.session, "close") as mock_close:
        close_runtime(runtime)

    mock_close.assert_called_once_with()


def test_close_runtime_leaves_injected_transport_open(tmp_path, monkeypatch):
    session = MagicMock()
    transport = Transport(session=session)
    runtime = create_runtime(config_manager=_manager(tmp_path, monkeypatch), transport=transport)

    close_runtime(runtime)
    close_runtime(None)

    session.close.assert_not_called()


def test_server_runtime_dependency_closes_after_request(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in ("GEMINI_API_KEY", "CODEVIBE_API_KEY", "CODEVIBE_MODEL"):
        monkeypatch.delenv(key, raising=False)
    dependency = server.get_runtime()
    runtime = next(dependency)

    with patch.object(runtime["model_adapter"].transport.session, "close") as mock_close:
        dependency.close()

    mock_close.assert_called_once_with()
