"""
Tests for request parsing and translation to the NIM payload.
"""

from nimproxy.models import BackendRequest, CompletionRequest, Conversation, SinglePrompt
from nimproxy.translator import translate


def _payload(body: dict, **kwargs) -> dict:
    req = CompletionRequest.from_body(body)
    return translate(req, "nim/model", **kwargs).to_payload()


# ---------------------------------------------------------------------------
# Conversation source
# ---------------------------------------------------------------------------

def test_messages_copied_verbatim():
    messages = [{"role": "user", "content": "hi"}]
    payload = _payload({"model": "gpt-4", "messages": messages})
    assert payload["messages"] == [{"role": "user", "content": "hi"}]


def test_message_order_and_duplicates_preserved():
    messages = [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
        {"role": "user", "content": "hi"},
    ]
    payload = _payload({"messages": messages})
    assert payload["messages"] == messages


def test_prompt_becomes_single_user_message():
    req = CompletionRequest.from_body({"model": "gpt-4", "prompt": "hi"})
    assert isinstance(req.source, SinglePrompt)
    payload = translate(req, "nim/model").to_payload()
    assert payload["messages"] == [{"role": "user", "content": "hi"}]


def test_messages_win_over_prompt():
    payload = _payload({"messages": [{"role": "user", "content": "a"}], "prompt": "b"})
    assert payload["messages"] == [{"role": "user", "content": "a"}]


def test_empty_messages_fall_back_to_prompt():
    payload = _payload({"messages": [], "prompt": "b"})
    assert payload["messages"] == [{"role": "user", "content": "b"}]


def test_neither_messages_nor_prompt_forwards_empty_conversation():
    req = CompletionRequest.from_body({"model": "gpt-4"})
    assert req.source == Conversation()
    assert translate(req, "nim/model").to_payload()["messages"] == []


def test_payload_does_not_alias_client_messages():
    messages = [{"role": "user", "content": "hi"}]
    payload = _payload({"messages": messages})
    payload["messages"][0]["content"] = "mutated"
    assert messages[0]["content"] == "hi"


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------

def test_defaults_applied_when_absent():
    payload = _payload({"messages": [{"role": "user", "content": "hi"}]})
    assert payload["model"] == "nim/model"
    assert payload["temperature"] == 0.6
    assert payload["max_tokens"] == 4096
    assert payload["stream"] is False


def test_explicit_parameters_pass_through():
    payload = _payload({"prompt": "hi", "temperature": 0.2, "max_tokens": 100, "stream": True})
    assert payload["temperature"] == 0.2
    assert payload["max_tokens"] == 100
    assert payload["stream"] is True


def test_zero_temperature_is_kept():
    payload = _payload({"prompt": "hi", "temperature": 0})
    assert payload["temperature"] == 0


def test_configured_defaults():
    payload = _payload({"prompt": "hi"}, default_temperature=1.0, default_max_tokens=1024)
    assert payload["temperature"] == 1.0
    assert payload["max_tokens"] == 1024


def test_thinking_hint_absent_when_disabled():
    payload = _payload({"prompt": "hi"})
    assert "extra_body" not in payload


def test_thinking_hint_present_when_enabled():
    payload = _payload({"prompt": "hi"}, thinking=True)
    assert payload["extra_body"] == {"chat_template_kwargs": {"thinking": True}}


def test_translation_is_idempotent():
    body = {"model": "gpt-4", "messages": [{"role": "user", "content": "hi"}], "temperature": 0.3}
    req = CompletionRequest.from_body(body)
    first = translate(req, "nim/model")
    second = translate(req, "nim/model")
    assert first == second
    assert first.to_payload() == second.to_payload()
    assert isinstance(first, BackendRequest)
