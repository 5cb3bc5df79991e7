"""Advanced-options normalization.

Rules:
- Only recognized keys are copied; anything else is ignored.
- Both the snake_case and camelCase spellings are accepted; snake_case wins.
- No defaults are filled in here. Fallback values live in request_builder.
- Ranges are not checked locally; the endpoint rejects bad values with a 400.
"""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Tuple

from .types import CompletionOptions

_ALIASES = {
    "temperature": ("temperature",),
    "max_tokens": ("max_tokens", "maxTokens"),
    "top_p": ("top_p", "topP"),
    "frequency_penalty": ("frequency_penalty", "frequencyPenalty"),
    "presence_penalty": ("presence_penalty", "presencePenalty"),
    "stop": ("stop", "stopSequences"),
    "stream": ("stream",),
}

def _pick(raw: Mapping[str, Any], names: Iterable[str]) -> Any:
    for name in names:
        if name in raw and raw[name] is not None:
            return raw[name]
    return None

def parse_stop_sequences(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        pieces = value.split(",")
    else:
        pieces = [str(v) for v in value]
    return tuple(p.strip() for p in pieces if p.strip())

def normalize_options(raw: Optional[Mapping[str, Any]]) -> CompletionOptions:
    raw = raw or {}

    values = {key: _pick(raw, names) for key, names in _ALIASES.items()}
    values["stop"] = parse_stop_sequences(values["stop"])

    return CompletionOptions(**values)
