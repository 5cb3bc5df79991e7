"""Batch execution.

One batch = one options value, one mode, many records. Records run strictly
in input order with one remote call outstanding at a time.

Failure policy:
- continue_on_failure=False (default): the first failing record stops the
  batch; BatchAborted carries the results of the records before it.
- continue_on_failure=True: the failure becomes a Failure output at the same
  index and the loop moves on.

Cancellation is cooperative: a threading.Event is checked before each record
starts, and records not yet started never produce output.
"""
from __future__ import annotations

import threading
import time
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from .assemble import assemble_failure, assemble_success
from .classify import classify_error
from .client import BaseCompletionClient
from .errors import BatchAborted, BatchCancelled, ValidationError
from .logging_util import get_logger, log_step
from .options import normalize_options
from .registry import ModelRegistry
from .request_builder import build_request, operation_tag
from .types import (
    CompletionOptions,
    ConversationStrategy,
    InputRecord,
    Mode,
    OutputRecord,
    RequestDescriptor,
)

logger = get_logger(__name__)

RecordLike = Union[InputRecord, Mapping[str, Any]]

def as_records(items: Sequence[RecordLike]) -> List[InputRecord]:
    out: List[InputRecord] = []
    for i, item in enumerate(items):
        if isinstance(item, InputRecord):
            out.append(item)
        else:
            out.append(InputRecord(index=i, payload=item))
    return out

class BatchExecutor:
    def __init__(
        self,
        client: BaseCompletionClient,
        mode: Mode = "chat",
        strategy: ConversationStrategy = "flat",
        fallbacks: Optional[CompletionOptions] = None,
        registry: Optional[ModelRegistry] = None,
        default_model: str = "",
        resolve_text: Optional[Callable[[Any], Any]] = None,
    ):
        self.client = client
        self.resolve_text = resolve_text
        self.mode = mode
        self.strategy = strategy
        self.fallbacks = fallbacks
        self.registry = registry
        self.default_model = default_model
        self.operation = operation_tag(mode)

    def _model_of(self, record: InputRecord) -> str:
        payload = record.payload if isinstance(record.payload, Mapping) else {}
        return str(payload.get("model") or self.default_model or "").strip()

    def _text(self, value: Any) -> Any:
        if self.resolve_text is None:
            return value
        return self.resolve_text(value)

    def build(self, record: InputRecord, options: CompletionOptions) -> RequestDescriptor:
        payload = record.payload
        if not isinstance(payload, Mapping):
            raise ValidationError(f"record payload must be a mapping, got {type(payload).__name__}")
        model = self._model_of(record)

        if self.mode == "chat" and self.strategy == "turns":
            content = payload.get("messages")
        else:
            content = self._text(payload.get("prompt"))

        descriptor = build_request(
            self.mode,
            model,
            content,
            system_message=self._text(payload.get("system_message")),
            options=options,
            fallbacks=self.fallbacks,
            strategy=self.strategy,
        )
        if self.registry is not None:
            self.registry.require(descriptor.model)
        return descriptor

    def run(
        self,
        records: Sequence[RecordLike],
        raw_options: Optional[Mapping[str, Any]] = None,
        continue_on_failure: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> List[OutputRecord]:
        items = as_records(records)

        log_step(logger, "1", "normalize options (records=%d mode=%s)", len(items), self.mode)
        options = normalize_options(raw_options)

        results: List[OutputRecord] = []
        for record in items:
            if cancel is not None and cancel.is_set():
                logger.warning("batch cancelled before record %d (%d done)", record.index, len(results))
                raise BatchCancelled(f"batch cancelled before record {record.index}", results)

            model = ""
            t0 = time.perf_counter()
            try:
                model = self._model_of(record)
                descriptor = self.build(record, options)
                logger.info("[RECORD %d] call model=%s", record.index, descriptor.model)
                response = self.client.complete(descriptor)
            except Exception as e:
                info = classify_error(e)
                logger.error("[RECORD %d] failed: %s (%s)", record.index, info.category, info.message)
                if not continue_on_failure:
                    raise BatchAborted(record.index, info, results, cause=e) from e
                results.append(assemble_failure(record.index, info, model, self.operation))
                continue

            elapsed_ms = int((time.perf_counter() - t0) * 1000)
            logger.info("[RECORD %d] success (%d ms)", record.index, elapsed_ms)
            results.append(assemble_success(record.index, response, descriptor.model, self.operation))

        log_step(logger, "2", "batch done (outputs=%d)", len(results))
        return results

def run_batch(
    client: BaseCompletionClient,
    records: Sequence[RecordLike],
    raw_options: Optional[Mapping[str, Any]] = None,
    continue_on_failure: bool = False,
    mode: Mode = "chat",
    strategy: ConversationStrategy = "flat",
    fallbacks: Optional[CompletionOptions] = None,
    registry: Optional[ModelRegistry] = None,
    cancel: Optional[threading.Event] = None,
) -> List[OutputRecord]:
    executor = BatchExecutor(client, mode=mode, strategy=strategy, fallbacks=fallbacks, registry=registry)
    return executor.run(records, raw_options, continue_on_failure=continue_on_failure, cancel=cancel)
