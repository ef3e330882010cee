"""Unit tests for the stream wire format."""

import json

import pytest

from chatbridge.domain.entities import (
    ConnectedEvent,
    DoneEvent,
    ErrorEvent,
    TokenEvent,
    decode_event,
    encode_event,
)


def _payload(encoded: str) -> dict:
    assert encoded.startswith("data: ")
    assert encoded.endswith("\n\n")
    return json.loads(encoded[len("data: "):])


def test_connected_event_carries_chat_id():
    assert _payload(encode_event(ConnectedEvent(new_chat_id="chat-1"))) == {
        "connected": True,
        "newChatId": "chat-1",
    }


def test_done_event_omits_absent_new_chat_id():
    payload = _payload(encode_event(DoneEvent(user_message_id="u1", ai_message_id="a1")))

    assert payload == {"done": True, "userMessageId": "u1", "aiMessageId": "a1"}


def test_token_and_error_events():
    assert _payload(encode_event(TokenEvent(token="Hi"))) == {"token": "Hi"}
    assert _payload(encode_event(ErrorEvent(error="boom"))) == {"error": "boom"}


@pytest.mark.parametrize(
    "event",
    [
        ConnectedEvent(new_chat_id="c"),
        TokenEvent(token=" spaced "),
        ErrorEvent(error="Error calling AI model (gpt-4o): nope"),
        DoneEvent(user_message_id="u", ai_message_id="a", new_chat_id="c"),
    ],
)
def test_decode_reads_encoded_line(event):
    line = encode_event(event).strip()

    assert decode_event(line) == event


@pytest.mark.parametrize("line", ["", "   ", ": keep-alive", "event: ping", "data: "])
def test_decode_ignores_non_event_lines(line):
    assert decode_event(line) is None


def test_decode_rejects_malformed_json():
    with pytest.raises(ValueError):
        decode_event("data: {not json")
