from chat_core.providers.google_client import GoogleClient
from chat_core.domain.models import Message, ProviderRequest, StreamEnvelope


class SettingsStub:
    google_api_key = "AIza-0123456789"
    google_base_url = "https://generativelanguage.googleapis.com/v1beta"
    http_timeout = None


class FakeResponse:
    status_code = 200
    text = ""

    def __init__(self, lines):
        self._lines = list(lines)

    def iter_lines(self):
        for line in self._lines:
            yield line

    def read(self):
        return b""


def install_client(monkeypatch, lines):
    captured = {}

    class StreamContext:
        def __enter__(self):
            return FakeResponse(lines)

        def __exit__(self, *args):
            captured["closed"] = True
            return False

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def stream(self, method, url, json=None, headers=None):
            captured["url"] = url
            captured["payload"] = json
            captured["headers"] = headers
            return StreamContext()

    monkeypatch.setattr("httpx.Client", Client)
    return captured


def test_google_reshapes_turns(monkeypatch):
    captured = install_client(monkeypatch, [])
    messages = (
        Message(role="user", content="hi"),
        Message(role="assistant", content="hello"),
        Message(role="user", content="again"),
        Message(role="user", content="and again"),
    )
    envelope = GoogleClient(SettingsStub()).invoke(ProviderRequest(messages=messages, provider="google"))
    list(envelope)

    assert captured["url"].endswith("/models/gemini-pro:streamGenerateContent?alt=sse")
    assert captured["headers"]["x-goog-api-key"] == "AIza-0123456789"
    assert captured["payload"]["contents"] == [
        {"role": "user", "parts": [{"text": "hi"}]},
        {"role": "model", "parts": [{"text": "hello"}]},
        {"role": "user", "parts": [{"text": "again"}]},
        {"role": "user", "parts": [{"text": "and again"}]},
    ]
    assert messages[1].role == "assistant"


def test_google_stream_extracts_text_per_chunk(monkeypatch):
    lines = [
        'data: {"candidates": [{"content": {"role": "model", "parts": [{"text": "Bon"}]}}]}',
        'data: {"candidates": [{"content": {"parts": [{"text": "jour"}, {"text": "!"}]}}]}',
        'data: {"candidates": [{"finishReason": "STOP"}]}',
    ]
    captured = install_client(monkeypatch, lines)
    envelope = GoogleClient(SettingsStub()).invoke(
        ProviderRequest(messages=(Message(role="user", content="salut"),), provider="google", model="gemini-pro")
    )
    assert isinstance(envelope, StreamEnvelope)
    assert list(envelope) == [b"Bon", b"jour!", b""]
    assert captured["closed"] is True


def test_chunk_text_missing_candidates():
    assert GoogleClient.chunk_text({}) == ""
    assert GoogleClient.chunk_text({"candidates": [{}]}) == ""
    assert GoogleClient.chunk_text({"candidates": [{"content": {"parts": [{"inlineData": {}}]}}]}) == ""
