import pytest

from completionkit.errors import ValidationError
from completionkit.request_builder import build_request, operation_tag, to_payload
from completionkit.types import ChatRequest, CompletionOptions, ConversationTurn, TextRequest

def test_flat_chat_with_system_message():
    req = build_request("chat", "llama3.1-8b", "Hi", system_message="Be brief.")
    assert isinstance(req, ChatRequest)
    assert [t.role for t in req.turns] == ["system", "user"]
    assert req.turns[1].content == "Hi"

def test_flat_chat_without_system_message_is_single_user_turn():
    req = build_request("chat", "m", "Hi", system_message="")
    assert req.turns == (ConversationTurn("user", "Hi"),)

def test_flat_chat_empty_prompt_fails_even_with_system_message():
    with pytest.raises(ValidationError):
        build_request("chat", "m", "", system_message="sys")

def test_turns_chat_requires_at_least_one_turn():
    with pytest.raises(ValidationError):
        build_request("chat", "m", [], strategy="turns")

def test_turns_chat_keeps_caller_order():
    msgs = [{"role": "assistant", "content": "a"}, {"role": "user", "content": "b"}]
    req = build_request("chat", "m", msgs, strategy="turns")
    assert [t.role for t in req.turns] == ["assistant", "user"]

def test_turns_chat_rejects_unknown_role():
    with pytest.raises(ValidationError):
        build_request("chat", "m", [{"role": "tool", "content": "x"}], strategy="turns")

def test_text_mode_empty_prompt_fails():
    with pytest.raises(ValidationError):
        build_request("text", "m", "")

def test_text_mode_builds_text_request():
    req = build_request("text", "m", "Once upon")
    assert req == TextRequest(model="m", prompt="Once upon", options=CompletionOptions())

def test_empty_model_fails():
    with pytest.raises(ValidationError):
        build_request("text", "", "x")

def test_build_is_pure():
    opts = CompletionOptions(temperature=0.1, stop=("x",))
    a = build_request("chat", "m", "Hi", "sys", opts)
    b = build_request("chat", "m", "Hi", "sys", opts)
    assert a == b
    assert to_payload(a) == to_payload(b)

def test_fallbacks_fill_only_unset_fields():
    fb = CompletionOptions(temperature=0.7, max_tokens=1000, top_p=1, frequency_penalty=0, presence_penalty=0)
    req = build_request("text", "m", "p", options=CompletionOptions(temperature=0.2), fallbacks=fb)
    assert req.options.temperature == 0.2
    assert req.options.max_tokens == 1000
    assert req.options.presence_penalty == 0

def test_payload_omits_unset_fields_and_empty_stop():
    payload = to_payload(build_request("text", "m", "p", options=CompletionOptions(top_p=0.9)))
    assert payload == {"model": "m", "prompt": "p", "top_p": 0.9}
    assert "stop" not in payload

def test_payload_chat_messages_and_stop():
    req = build_request("chat", "m", "Hi", options=CompletionOptions(stop=("a", "b")))
    payload = to_payload(req)
    assert payload["messages"] == [{"role": "user", "content": "Hi"}]
    assert payload["stop"] == ["a", "b"]

def test_operation_tags():
    assert operation_tag("chat") == "chatCompletion"
    assert operation_tag("text") == "textCompletion"
    with pytest.raises(ValidationError):
        operation_tag("image")
