"""Tests for the per-gateway request formats."""

import base64
import json

import httpx
import pytest

from billing_cron.notify import Provider, ProviderError, send_via_provider


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _provider(type: str, api_url: str = "https://gw.example", api_key: str = "secret", **kwargs) -> Provider:
    return Provider.create(name=f"{type}-gw", type=type, api_url=api_url, api_key=api_key, **kwargs)


class TestWaha:
    def test_checks_session_then_sends(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path == "/api/sessions":
                return httpx.Response(200, json=[{"name": "default", "status": "WORKING"}])
            return httpx.Response(201, json={"id": "true_628123@c.us_ABC"})

        with _client(handler) as client:
            body = send_via_provider(client, _provider("waha"), "628123", "Halo")

        assert body == {"id": "true_628123@c.us_ABC"}
        assert [r.url.path for r in seen] == ["/api/sessions", "/api/sendText"]
        assert seen[1].headers["X-Api-Key"] == "secret"
        assert json.loads(seen[1].content) == {
            "session": "default",
            "chatId": "628123@c.us",
            "text": "Halo",
        }

    def test_session_not_ready(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"name": "default", "status": "SCAN_QR_CODE"}])

        with _client(handler) as client:
            with pytest.raises(ProviderError) as exc_info:
                send_via_provider(client, _provider("waha"), "628123", "Halo")

        assert "WAHA session not ready. Status: SCAN_QR_CODE" in exc_info.value.message

    def test_send_error_includes_detail(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/sessions":
                return httpx.Response(200, json=[{"name": "default", "status": "WORKING"}])
            return httpx.Response(422, json={"message": "invalid chatId"})

        with _client(handler) as client:
            with pytest.raises(ProviderError) as exc_info:
                send_via_provider(client, _provider("waha"), "628123", "Halo")

        assert exc_info.value.message == "WAHA API error: 422 - invalid chatId"


class TestMpwa:
    def test_query_parameters(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": True})

        provider = _provider("mpwa", sender_number="628999")
        with _client(handler) as client:
            send_via_provider(client, provider, "628123", "Halo")

        params = seen[0].url.params
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/send-message"
        assert params["api_key"] == "secret"
        assert params["sender"] == "628999"
        assert params["number"] == "628123"
        assert params["message"] == "Halo"


class TestWablas:
    def test_authorization_header(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": True})

        with _client(handler) as client:
            send_via_provider(client, _provider("wablas"), "628123", "Halo")

        assert seen[0].url.path == "/api/send-message"
        assert seen[0].headers["Authorization"] == "secret"
        assert json.loads(seen[0].content) == {"phone": "628123", "message": "Halo"}

    def test_http_error(self):
        with _client(lambda request: httpx.Response(503)) as client:
            with pytest.raises(ProviderError, match="Wablas API error: 503"):
                send_via_provider(client, _provider("wablas"), "628123", "Halo")


class TestGowa:
    def test_basic_auth_and_bare_phone(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"code": "SUCCESS", "results": {"message_id": "1"}})

        provider = _provider("gowa", api_key="admin:pass")
        with _client(handler) as client:
            body = send_via_provider(client, provider, "628123@s.whatsapp.net", "Halo")

        assert body["code"] == "SUCCESS"
        expected = "Basic " + base64.b64encode(b"admin:pass").decode()
        assert seen[0].headers["Authorization"] == expected
        assert json.loads(seen[0].content) == {"phone": "628123", "message": "Halo"}

    def test_non_success_code(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"code": "ERROR", "message": "not logged in"})

        with _client(handler) as client:
            with pytest.raises(ProviderError) as exc_info:
                send_via_provider(client, _provider("gowa"), "628123", "Halo")

        assert exc_info.value.message == "GOWA error: not logged in"


class TestFonnte:
    def test_posts_to_api_url(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": True})

        provider = _provider("fonnte", api_url="https://api.fonnte.example/send/")
        with _client(handler) as client:
            send_via_provider(client, provider, "628123", "Halo")

        assert str(seen[0].url) == "https://api.fonnte.example/send"
