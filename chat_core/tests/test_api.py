import pytest
from fastapi.testclient import TestClient

from chat_core.api.app import create_app, iter_and_close
from chat_core.gateway.dispatcher import GatewayDispatcher
from chat_core.domain.exceptions import ApiError
from chat_core.domain.models import StreamEnvelope, WholeEnvelope


class StubAdapter:
    def __init__(self, name, make_envelope=None, error=None):
        self.name = name
        self.calls = []
        self._make = make_envelope
        self._error = error

    def invoke(self, req):
        self.calls.append(req)
        if self._error is not None:
            raise self._error
        return self._make(req)


def make_client(**overrides):
    adapters = {
        "openai": StubAdapter("openai", lambda req: StreamEnvelope(chunks=iter([b"Hel", b"lo", " wörld".encode("utf-8")]))),
        "anthropic": StubAdapter("anthropic", lambda req: WholeEnvelope(response=f"{len(req.messages)} messages")),
        "google": StubAdapter("google", lambda req: StreamEnvelope(chunks=iter([b"gem", b"ini"]))),
    }
    adapters.update(overrides)
    return TestClient(create_app(GatewayDispatcher(**adapters))), adapters


def test_openai_streams_raw_text():
    client, adapters = make_client()
    resp = client.post(
        "/api/chat",
        json={"messages": [{"role": "user", "content": "hi"}], "provider": "openai", "model": "gpt-4o-mini"},
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert resp.text == "Hello wörld"
    assert adapters["openai"].calls[0].model == "gpt-4o-mini"


def test_anthropic_returns_json():
    client, _ = make_client()
    resp = client.post(
        "/api/chat",
        json={
            "messages": [{"role": "user", "content": "hi"}, {"role": "user", "content": "again"}],
            "provider": "anthropic",
        },
    )
    assert resp.status_code == 200
    assert resp.json() == {"response": "2 messages"}


def test_google_streams_raw_text():
    client, _ = make_client()
    resp = client.post("/api/chat", json={"messages": [], "provider": "google"})
    assert resp.status_code == 200
    assert resp.text == "gemini"


def test_invalid_provider_is_400():
    client, adapters = make_client()
    resp = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}], "provider": "foo"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid provider"}
    assert all(not a.calls for a in adapters.values())


def test_upstream_failure_is_500_with_provider_prefix():
    failing = StubAdapter("openai", error=ApiError(code="API_ERROR", message="quota exceeded", http_status=429))
    client, _ = make_client(openai=failing)
    resp = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}], "provider": "openai"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "OpenAI error: quota exceeded"}


def test_malformed_body_is_500():
    client, _ = make_client()
    resp = client.post("/api/chat", json={"provider": "openai"})
    assert resp.status_code == 500
    assert resp.json()["error"].startswith("Server error:")


def test_provider_table_and_health():
    client, _ = make_client()
    table = client.get("/api/providers").json()
    assert [p["id"] for p in table] == ["openai", "anthropic", "google"]
    assert table[2]["models"] == ["gemini-pro"]
    assert client.get("/api/health").json() == {"status": "ok"}


@pytest.mark.parametrize(
    "body",
    [
        {"messages": [{"role": "user", "content": "hi"}]},
        {"messages": [{"role": "user", "content": "hi"}], "provider": None},
        {"messages": [{"role": "user", "content": "hi"}], "provider": 42},
    ],
)
def test_missing_or_non_string_provider_is_400(body):
    client, adapters = make_client()
    resp = client.post("/api/chat", json=body)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid provider"}
    assert all(not a.calls for a in adapters.values())


def test_stream_closes_upstream_when_consumer_stops_early():
    closed = []
    envelope = StreamEnvelope(chunks=iter([b"a", b"b", b"c"]), on_close=lambda: closed.append(1))
    chunks = iter_and_close(envelope)
    assert next(chunks) == b"a"
    chunks.close()
    assert closed == [1]


def test_stream_closes_upstream_after_full_response():
    closed = []

    def make(req):
        return StreamEnvelope(chunks=iter([b"done"]), on_close=lambda: closed.append(1))

    client, _ = make_client(openai=StubAdapter("openai", make))
    resp = client.post("/api/chat", json={"messages": [], "provider": "openai"})
    assert resp.text == "done"
    assert closed == [1]
