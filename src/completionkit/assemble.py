"""Output record assembly and read helpers."""
from __future__ import annotations

from typing import Any, Dict

from .types import ErrorInfo, Failure, OutputRecord, Success

def assemble_success(index: int, response: Dict[str, Any], model: str, operation: str) -> Success:
    return Success(index=index, raw_response=response, model=model, operation=operation)

def assemble_failure(index: int, info: ErrorInfo, model: str, operation: str) -> Failure:
    return Failure(
        index=index,
        category=info.category,
        message=info.message,
        model=model,
        operation=operation,
    )

def to_output_dict(record: OutputRecord) -> Dict[str, Any]:
    """Flatten a record the way downstream consumers read it.

    Success: the raw response with model/operation merged on top.
    Failure: error + category + model/operation.
    """
    if isinstance(record, Success):
        out = dict(record.raw_response or {})
        out["model"] = record.model
        out["operation"] = record.operation
        return out

    return {
        "error": record.message,
        "category": record.category,
        "model": record.model,
        "operation": record.operation,
    }

def extract_text(response: Dict[str, Any]) -> str:
    try:
        choices = response.get("choices") or []
        if not choices:
            return ""
        first = choices[0] or {}
        msg = first.get("message") or {}
        return str(msg.get("content") or first.get("text") or "")
    except (AttributeError, TypeError):
        return ""

def extract_usage(response: Dict[str, Any]) -> Dict[str, int]:
    usage = response.get("usage") if isinstance(response, dict) else None
    if not isinstance(usage, dict):
        usage = {}
    return {
        "prompt_tokens": int(usage.get("prompt_tokens") or 0),
        "completion_tokens": int(usage.get("completion_tokens") or 0),
        "total_tokens": int(usage.get("total_tokens") or 0),
    }
