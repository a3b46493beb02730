from unittest.mock import MagicMock, call, patch

import pytest
import requests

from core.config_manager import RetrySettings
from core.exceptions import TransportError
from core.transport import Transport

ENDPOINT = "https://example.test/models/m:generateContent"


def _response(status, body=None):
    response = MagicMock(status_code=status)
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


def _transport(*responses, max_retries=3, initial_delay=1.0):
    session = MagicMock()
    session.post.side_effect = list(responses)
    transport = Transport(retry=RetrySettings(max_retries=max_retries, initial_delay=initial_delay),
                          timeout=12, headers={"x-goog-api-key": "k"}, session=session)
    return transport, session


def test_rate_limited_then_success_backs_off_exponentially():
    transport, session = _transport(_response(429), _response(429), _response(429),
                                    _response(200, {"ok": True}))

    with patch("core.transport.time.sleep") as mock_sleep:
        body = transport.call(ENDPOINT, {"a": 1})

    assert body == {"ok": True}
    assert session.post.call_count == 4
    assert mock_sleep.call_args_list == [call(1.0), call(2.0), call(4.0)]


def test_rate_limited_on_every_attempt_gives_up_after_max_retries():
    transport, session = _transport(*[_response(429)] * 10, initial_delay=0.5)

    with patch("core.transport.time.sleep") as mock_sleep:
        with pytest.raises(TransportError) as excinfo:
            transport.call(ENDPOINT, {})

    assert excinfo.value.status_code == 429
    assert excinfo.value.rate_limited is True
    assert session.post.call_count == 4
    assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0, 2.0]


def test_per_call_retry_budget_overrides_default():
    transport, session = _transport(*[_response(429)] * 10)

    with patch("core.transport.time.sleep") as mock_sleep:
        with pytest.raises(TransportError):
            transport.call(ENDPOINT, {}, max_retries=1, initial_delay=3)

    assert session.post.call_count == 2
    mock_sleep.assert_called_once_with(3)


def test_zero_retries_makes_a_single_attempt():
    transport, session = _transport(_response(429), max_retries=0)

    with patch("core.transport.time.sleep") as mock_sleep:
        with pytest.raises(TransportError):
            transport.call(ENDPOINT, {})

    assert session.post.call_count == 1
    mock_sleep.assert_not_called()


@pytest.mark.parametrize("status", [400, 401, 403, 404, 500, 503])
def test_other_http_errors_fail_without_retry(status):
    transport, session = _transport(_response(status), _response(200, {}))

    with patch("core.transport.time.sleep") as mock_sleep:
        with pytest.raises(TransportError) as excinfo:
            transport.call(ENDPOINT, {})

    assert str(excinfo.value) == f"HTTP error! status: {status}"
    assert excinfo.value.status_code == status
    assert session.post.call_count == 1
    mock_sleep.assert_not_called()


def test_network_error_becomes_transport_error():
    transport, session = _transport(requests.exceptions.ConnectionError("refused"))

    with pytest.raises(TransportError) as excinfo:
        transport.call(ENDPOINT, {})

    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.__cause__, requests.exceptions.ConnectionError)
    assert session.post.call_count == 1


def test_non_json_success_body_is_transport_error():
    transport, _ = _transport(_response(200))
    with pytest.raises(TransportError, match="not JSON"):
        transport.call(ENDPOINT, {})


def test_request_carries_headers_payload_and_timeout():
    transport, session = _transport(_response(200, {}))

    transport.call(ENDPOINT, {"contents": []})

    session.post.assert_called_once_with(
        ENDPOINT,
        json={"contents": []},
        headers={"Content-Type": "application/json", "x-goog-api-key": "k"},
        timeout=12,
    )


def test_retry_is_logged_as_warning():
    transport, _ = _transport(_response(429), _response(200, {}))

    with patch("core.transport.time.sleep"), patch("core.transport.log_json") as mock_log:
        transport.call(ENDPOINT, {})

    assert mock_log.call_args_list[0].args[:2] == ("WARN", "transport_rate_limited_retrying")


def test_close_releases_only_an_owned_session():
    transport, session = _transport()
    transport.close()
    session.close.assert_not_called()

    with patch("core.transport.requests.Session") as session_cls:
        owned = Transport()
        owned.close()
    session_cls.return_value.close.assert_called_once_with()
