"""Tests for HttpClient: auth headers, classification, retry and token lifecycle."""

import asyncio
import json

import httpx
import pytest

from smartsentry.api import ContactsAPI, EvidenceAPI, SOSAPI
from smartsentry.errors import (
    AccessDenied, AuthExpired, NetworkError, NoCredential, RequestFailed, RequestTimeout,
)


def run(coro):
    return asyncio.run(coro)


def flaky_handler(failures: int, calls: list):
    """Fails with a connection error for the first ``failures`` calls, then succeeds."""
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) <= failures:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"ok": True})
    return handler


class TestRetryBound:
    @pytest.mark.parametrize("failures,max_attempts", [(0, 2), (1, 2), (2, 3), (3, 4)])
    def test_succeeds_when_failures_below_budget(self, make_client, token_store, sleeps, failures, max_attempts):
        run(token_store.save("tok"))
        calls = []
        client = make_client(flaky_handler(failures, calls))

        result = run(client.request("/profile", max_attempts=max_attempts))

        assert result == {"ok": True}
        assert len(calls) == failures + 1
        assert sleeps.delays == [1.0 * 2 ** i for i in range(failures)]

    @pytest.mark.parametrize("max_attempts", [1, 2, 3])
    def test_network_error_after_exhausting_attempts(self, make_client, token_store, sleeps, max_attempts):
        run(token_store.save("tok"))
        calls = []
        client = make_client(flaky_handler(max_attempts, calls))

        with pytest.raises(NetworkError) as exc_info:
            run(client.request("/profile", max_attempts=max_attempts))

        assert len(calls) == max_attempts
        assert sleeps.delays == [1.0 * 2 ** i for i in range(max_attempts - 1)]
        assert "connection refused" in exc_info.value.message

    def test_timeout_is_retried_then_surfaced(self, make_client, token_store, sleeps):
        run(token_store.save("tok"))
        calls = []

        async def slow(request):
            calls.append(request)
            await asyncio.sleep(1)
            return httpx.Response(200, json={})

        client = make_client(slow)
        with pytest.raises(RequestTimeout) as exc_info:
            run(client.request("/sos/start", "POST", {}, timeout=0.05))

        assert isinstance(exc_info.value, NetworkError)
        assert len(calls) == 2
        assert sleeps.delays == [1.0]

    def test_transport_timeout_maps_to_request_timeout(self, make_client, token_store):
        run(token_store.save("tok"))

        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(RequestTimeout):
            run(make_client(handler).request("/profile", max_attempts=1))


class TestTerminalErrors:
    def test_401_clears_token_and_is_not_retried(self, make_client, token_store, sleeps):
        run(token_store.save("tok"))
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, json={"message": "Token is not valid"})

        with pytest.raises(AuthExpired):
            run(make_client(handler).request("/profile", max_attempts=5))

        assert len(calls) == 1
        assert sleeps.delays == []
        assert run(token_store.load()) is None

    def test_403_is_access_denied(self, make_client, token_store):
        run(token_store.save("tok"))
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403, json={"message": "Forbidden"})

        with pytest.raises(AccessDenied):
            run(make_client(handler).request("/profile", max_attempts=3))
        assert len(calls) == 1
        assert run(token_store.load()) == "tok"

    def test_no_token_makes_no_network_call(self, make_client):
        calls = []
        client = make_client(lambda request: calls.append(request) or httpx.Response(200, json={}))

        with pytest.raises(NoCredential) as exc_info:
            run(client.request("/contacts"))

        assert calls == []
        assert exc_info.value.message

    def test_delete_missing_contact_reports_server_message(self, make_client, token_store):
        run(token_store.save("tok"))

        def handler(request):
            assert request.method == "DELETE"
            assert request.url.path == "/api/contacts/x"
            return httpx.Response(404, json={"message": "Contact not found"})

        with pytest.raises(RequestFailed) as exc_info:
            run(ContactsAPI(make_client(handler)).delete("x"))

        assert exc_info.value.message == "Contact not found"
        assert exc_info.value.status == 404

    def test_non_json_error_uses_body_text(self, make_client, token_store):
        run(token_store.save("tok"))
        handler = lambda request: httpx.Response(502, text="Bad gateway from proxy")

        with pytest.raises(RequestFailed) as exc_info:
            run(make_client(handler).request("/profile"))
        assert exc_info.value.message == "Bad gateway from proxy"

    def test_empty_error_body_uses_reason_phrase(self, make_client, token_store):
        run(token_store.save("tok"))
        with pytest.raises(RequestFailed) as exc_info:
            run(make_client(lambda request: httpx.Response(500)).request("/profile"))
        assert exc_info.value.message == "Internal Server Error"

    def test_server_error_is_not_retried(self, make_client, token_store, sleeps):
        run(token_store.save("tok"))
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"message": "Server error"})

        with pytest.raises(RequestFailed):
            run(make_client(handler).request("/profile", max_attempts=3))
        assert len(calls) == 1


class TestRequestShape:
    def test_auth_and_json_headers(self, make_client, token_store):
        run(token_store.save("abc.def.ghi"))
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": "SOS logged"})

        res = run(SOSAPI(make_client(handler)).log_emergency({"type": "panic", "location": "Current location"}))

        assert res == {"message": "SOS logged"}
        assert seen["url"] == "http://sentry.test/api/sos/start"
        assert seen["headers"]["authorization"] == "Bearer abc.def.ghi"
        assert seen["headers"]["accept"] == "application/json"
        assert seen["headers"]["content-type"] == "application/json"
        assert seen["body"] == {"type": "panic", "location": "Current location"}

    def test_unauthenticated_call_has_no_auth_header(self, make_client):
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            return httpx.Response(200, json={"status": "ok"})

        run(make_client(handler).request("/health", requires_auth=False))
        assert "authorization" not in seen["headers"]

    def test_history_query_parameters(self, make_client, token_store):
        run(token_store.save("tok"))
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"success": True, "data": []})

        run(SOSAPI(make_client(handler)).get_history(50, 2))
        assert seen["params"] == {"limit": "50", "page": "2"}

    def test_multipart_upload_lets_transport_set_content_type(self, make_client, token_store):
        run(token_store.save("tok"))
        seen = {}

        def handler(request):
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = request.content
            return httpx.Response(201, json={"id": "ev1"})

        api = EvidenceAPI(make_client(handler))
        res = run(api.upload("sos1", "audio", {"latitude": 12.9, "longitude": 77.5},
                             [("files", ("clip.m4a", b"\x00\x01", "audio/mp4"))]))

        assert res == {"id": "ev1"}
        assert seen["content_type"].startswith("multipart/form-data; boundary=")
        assert b'name="sosId"' in seen["body"]
        assert b"clip.m4a" in seen["body"]

    def test_text_response_returned_raw(self, make_client, token_store):
        run(token_store.save("tok"))
        handler = lambda request: httpx.Response(200, text="pong", headers={"content-type": "text/plain"})
        assert run(make_client(handler).request("/ping")) == "pong"


class TestEventHook:
    def test_retries_and_failures_are_reported(self, make_client, token_store):
        run(token_store.save("tok"))
        events = []
        client = make_client(flaky_handler(5, []), on_event=lambda name, info: events.append((name, info)))

        with pytest.raises(NetworkError):
            run(client.request("/profile", max_attempts=2))

        names = [name for name, _ in events]
        assert names == ["retry", "network_error"]
        assert events[0][1]["delay"] == 1.0

    def test_broken_hook_does_not_break_request(self, make_client, token_store):
        run(token_store.save("tok"))

        def hook(name, info):
            raise RuntimeError("boom")

        client = make_client(lambda request: httpx.Response(404, json={"message": "nope"}), on_event=hook)
        with pytest.raises(RequestFailed):
            run(client.request("/missing"))


class TestMalformedResponses:
    def test_unreadable_json_body_is_request_failed(self, make_client, token_store, sleeps):
        run(token_store.save("tok"))
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, content=b"<html>captive portal</html>",
                                  headers={"content-type": "application/json"})

        with pytest.raises(RequestFailed) as exc_info:
            run(make_client(handler).request("/profile", max_attempts=3))

        assert exc_info.value.message == "Invalid JSON response from server"
        assert exc_info.value.status == 200
        assert len(calls) == 1
        assert sleeps.delays == []

    @pytest.mark.parametrize("error", [httpx.DecodingError, httpx.TooManyRedirects])
    def test_other_request_errors_are_network_errors(self, make_client, token_store, error):
        run(token_store.save("tok"))

        def handler(request):
            raise error("broken response", request=request)

        with pytest.raises(NetworkError) as exc_info:
            run(make_client(handler).request("/profile", max_attempts=1))
        assert "broken response" in exc_info.value.message
