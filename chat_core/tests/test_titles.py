import pytest

from chat_core.conversation.titles import TitleGenerator, clean_title
from chat_core.domain.models import StreamEnvelope, WholeEnvelope


class OneShotGateway:
    def __init__(self, envelope):
        self.envelope = envelope
        self.requests = []

    def send(self, request):
        self.requests.append(request)
        return self.envelope


@pytest.mark.parametrize(
    "raw,expected",
    [
        ('"Planning A Trip"', "Planning A Trip"),
        ("  Weekend   recipe ideas for kids  ", "Weekend recipe ideas for"),
        ("'Python Help.'", "Python Help"),
        ("", ""),
        (None, ""),
    ],
)
def test_clean_title(raw, expected):
    assert clean_title(raw) == expected


def test_stream_envelope_title_is_joined():
    closed = []
    gateway = OneShotGateway(StreamEnvelope(chunks=iter([b"Rust ", b"Borrow Checker"]), on_close=lambda: closed.append(1)))
    title = TitleGenerator(gateway, provider="openai", model="gpt-3.5-turbo").generate("how does borrowing work")
    assert title == "Rust Borrow Checker"
    assert closed == [1]


def test_blank_title_falls_back():
    gateway = OneShotGateway(WholeEnvelope(response='  ""  '))
    assert TitleGenerator(gateway, provider="anthropic", model="claude-3-haiku-20240307").generate("hi") == "New Chat"
