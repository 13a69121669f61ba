from __future__ import annotations

import json

import httpx
import pytest

from helpdesk.mail.transport import HttpMailTransport, MailMessage, MailTransportError

API_URL = "https://mail.example.com/emails"


def _message(**overrides) -> MailMessage:
    values = {
        "to": "sergio@example.com",
        "subject": "Nuevo ticket #1 - Faltante de caja",
        "html": "<p>hola</p>",
        "text": "hola",
        "idempotency_key": "notification/4",
    }
    values.update(overrides)
    return MailMessage(**values)


def _transport(handler, *, api_key: str | None = "re_test") -> HttpMailTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpMailTransport(
        api_url=API_URL,
        api_key=api_key,
        from_email="tickets@example.com",
        from_name="Mesa de ayuda",
        client=client,
    )


@pytest.mark.asyncio
async def test_send_posts_json_with_auth_and_idempotency_headers():
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"id": "msg_1"})

    await _transport(handler).send(_message())

    request = captured[0]
    assert str(request.url) == API_URL
    assert request.headers["Authorization"] == "Bearer re_test"
    assert request.headers["Idempotency-Key"] == "notification/4"
    payload = json.loads(request.content)
    assert payload == {
        "from": "Mesa de ayuda <tickets@example.com>",
        "to": ["sergio@example.com"],
        "subject": "Nuevo ticket #1 - Faltante de caja",
        "html": "<p>hola</p>",
        "text": "hola",
    }


@pytest.mark.asyncio
async def test_idempotency_header_is_optional():
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(202)

    await _transport(handler).send(_message(idempotency_key=None))

    assert "Idempotency-Key" not in captured[0].headers


@pytest.mark.asyncio
async def test_rejected_message_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"message": "invalid to"})

    with pytest.raises(MailTransportError, match="422"):
        await _transport(handler).send(_message())


@pytest.mark.asyncio
async def test_timeouts_and_connection_errors_raise_transport_error():
    def timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(MailTransportError, match="timed out"):
        await _transport(timeout).send(_message())
    with pytest.raises(MailTransportError, match="ConnectError"):
        await _transport(refused).send(_message())


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_any_request():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
        raise AssertionError("request should not be sent")

    with pytest.raises(MailTransportError, match="not configured"):
        await _transport(handler, api_key=None).send(_message())
