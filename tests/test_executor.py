import threading

import pytest

from completionkit.client import BaseCompletionClient
from completionkit.errors import ApiError, BatchAborted, BatchCancelled, ValidationError
from completionkit.executor import BatchExecutor, run_batch
from completionkit.registry import ModelRegistry
from completionkit.types import ChatRequest, CompletionOptions, Failure, InputRecord, Success

def _reply(text):
    return {
        "choices": [{"message": {"role": "assistant", "content": text}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5},
    }

class FakeClient(BaseCompletionClient):
    """Answers in order; an Exception in `script` is raised instead of returned."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def complete(self, descriptor):
        self.calls.append(descriptor)
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

def test_chat_single_turn_success():
    client = FakeClient([_reply("Hello!")])
    out = run_batch(
        client,
        [{"model": "m", "messages": [{"role": "user", "content": "Hi"}]}],
        strategy="turns",
    )
    assert len(out) == 1
    assert isinstance(out[0], Success)
    assert out[0].raw_response["choices"][0]["message"]["content"] == "Hello!"
    assert out[0].model == "m"
    assert out[0].operation == "chatCompletion"

def test_text_empty_prompt_fails_before_any_call():
    client = FakeClient([])
    with pytest.raises(BatchAborted) as ei:
        run_batch(client, [{"model": "m", "prompt": ""}], {"temperature": 1}, mode="text")
    assert ei.value.info.category == "ValidationError"
    assert client.calls == []

def test_continue_on_failure_isolates_rate_limit():
    client = FakeClient([_reply("a"), ApiError(429, "too many"), _reply("c")])
    records = [{"model": "m", "prompt": p} for p in ("1", "2", "3")]
    out = run_batch(client, records, continue_on_failure=True)

    assert len(out) == 3
    assert [r.index for r in out] == [0, 1, 2]
    assert isinstance(out[0], Success)
    assert isinstance(out[1], Failure)
    assert out[1].category == "RateLimited"
    assert out[1].model == "m"
    assert isinstance(out[2], Success)

def test_fail_fast_stops_at_first_failure():
    client = FakeClient([_reply("a"), ApiError(429, "too many"), _reply("c")])
    records = [{"model": "m", "prompt": p} for p in ("1", "2", "3")]
    with pytest.raises(BatchAborted) as ei:
        run_batch(client, records, continue_on_failure=False)

    err = ei.value
    assert err.index == 1
    assert err.info.category == "RateLimited"
    assert len(err.results) == 1
    assert isinstance(err.results[0], Success)
    assert isinstance(err.cause, ApiError)
    assert len(client.calls) == 2

def test_validation_failure_becomes_output_when_continuing():
    client = FakeClient([_reply("a"), _reply("c")])
    records = [{"model": "m", "prompt": "1"}, {"model": "m", "prompt": ""}, {"model": "m", "prompt": "3"}]
    out = run_batch(client, records, continue_on_failure=True)
    assert [type(r).__name__ for r in out] == ["Success", "Failure", "Success"]
    assert out[1].category == "ValidationError"
    assert len(client.calls) == 2

def test_options_are_normalized_once_and_shared():
    client = FakeClient([_reply("a"), _reply("b")])
    run_batch(client, [{"model": "m", "prompt": "x"}, {"model": "m", "prompt": "y"}], {"stop": "END, STOP", "temperature": 0.3})
    first, second = client.calls
    assert first.options is second.options
    assert first.options == CompletionOptions(temperature=0.3, stop=("END", "STOP"))

def test_one_call_per_record_even_for_duplicates():
    client = FakeClient([_reply("a"), _reply("a")])
    out = run_batch(client, [{"model": "m", "prompt": "same"}] * 2)
    assert len(out) == 2
    assert len(client.calls) == 2

def test_fallbacks_applied_to_every_record():
    client = FakeClient([_reply("a")])
    fb = CompletionOptions(temperature=0.7, max_tokens=1000)
    run_batch(client, [{"model": "m", "prompt": "x"}], {"max_tokens": 5}, fallbacks=fb)
    assert client.calls[0].options.temperature == 0.7
    assert client.calls[0].options.max_tokens == 5

def test_flat_prompt_with_system_message():
    client = FakeClient([_reply("a")])
    run_batch(client, [{"model": "m", "prompt": "Hi", "system_message": "sys"}])
    call = client.calls[0]
    assert isinstance(call, ChatRequest)
    assert [t.role for t in call.turns] == ["system", "user"]

def test_strict_registry_rejects_unknown_model():
    client = FakeClient([])
    registry = ModelRegistry([{"name": "A", "value": "a"}], strict=True)
    out = run_batch(client, [{"model": "b", "prompt": "x"}], registry=registry, continue_on_failure=True)
    assert out[0].category == "ValidationError"
    assert client.calls == []

def test_default_model_used_when_record_has_none():
    client = FakeClient([_reply("a")])
    executor = BatchExecutor(client, default_model="llama3.1-8b")
    out = executor.run([{"prompt": "x"}])
    assert out[0].model == "llama3.1-8b"

def test_cancel_before_start_emits_nothing():
    client = FakeClient([_reply("a")])
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(BatchCancelled) as ei:
        run_batch(client, [{"model": "m", "prompt": "x"}], cancel=cancel)
    assert ei.value.results == []
    assert client.calls == []

def test_cancel_mid_batch_keeps_finished_results():
    cancel = threading.Event()

    class CancellingClient(FakeClient):
        def complete(self, descriptor):
            result = super().complete(descriptor)
            cancel.set()
            return result

    client = CancellingClient([_reply("a"), _reply("b")])
    with pytest.raises(BatchCancelled) as ei:
        run_batch(client, [{"model": "m", "prompt": "x"}, {"model": "m", "prompt": "y"}], cancel=cancel)
    assert len(ei.value.results) == 1
    assert len(client.calls) == 1

def test_explicit_input_records_keep_their_index():
    client = FakeClient([_reply("a")])
    out = run_batch(client, [InputRecord(index=7, payload={"model": "m", "prompt": "x"})])
    assert out[0].index == 7

def test_local_fault_is_classified_local_error():
    client = FakeClient([RuntimeError("socket closed")])
    out = run_batch(client, [{"model": "m", "prompt": "x"}], continue_on_failure=True)
    assert out[0].category == "LocalError"
    assert out[0].message == "socket closed"

def test_non_mapping_payload_becomes_failure_when_continuing():
    client = FakeClient([_reply("a"), _reply("c")])
    out = run_batch(client, [{"model": "m", "prompt": "1"}, None, {"model": "m", "prompt": "3"}], continue_on_failure=True)
    assert [type(r).__name__ for r in out] == ["Success", "Failure", "Success"]
    assert out[1].category == "ValidationError"
    assert out[1].index == 1

def test_non_mapping_payload_aborts_with_partial_results():
    client = FakeClient([_reply("a")])
    with pytest.raises(BatchAborted) as ei:
        run_batch(client, [{"model": "m", "prompt": "1"}, "oops", {"model": "m", "prompt": "3"}])
    assert ei.value.index == 1
    assert ei.value.info.category == "ValidationError"
    assert len(ei.value.results) == 1

def test_text_resolver_runs_per_record():
    def resolve(value):
        if value == "@bad":
            raise ValidationError("No such file: bad")
        return value

    client = FakeClient([_reply("a"), _reply("c")])
    executor = BatchExecutor(client, resolve_text=resolve)
    out = executor.run(
        [{"model": "m", "prompt": "1"}, {"model": "m", "prompt": "@bad"}, {"model": "m", "prompt": "3"}],
        continue_on_failure=True,
    )
    assert [type(r).__name__ for r in out] == ["Success", "Failure", "Success"]
    assert "bad" in out[1].message
