"""Request construction.

build_request() turns one record's content into an immutable descriptor;
to_payload() turns a descriptor into the JSON body the endpoint expects.
Both are pure: the same input always gives an equal output.

Chat mode has two ways of getting a conversation:
- "turns": the caller supplies role/content messages as-is
- "flat":  a prompt plus optional system message, synthesized into at most
           one system turn followed by exactly one user turn
"""
from __future__ import annotations

from dataclasses import fields, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .errors import ValidationError
from .types import (
    ROLES,
    ChatRequest,
    CompletionOptions,
    ConversationStrategy,
    ConversationTurn,
    Mode,
    RequestDescriptor,
    TextRequest,
)

OPERATION_TAGS = {"chat": "chatCompletion", "text": "textCompletion"}

TurnLike = Union[ConversationTurn, Mapping[str, Any]]

def operation_tag(mode: Mode) -> str:
    try:
        return OPERATION_TAGS[mode]
    except KeyError:
        raise ValidationError(f"Unsupported mode: {mode}")

def validate_nonempty(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value

def apply_fallbacks(options: CompletionOptions, fallbacks: Optional[CompletionOptions]) -> CompletionOptions:
    if fallbacks is None:
        return options
    filled = {}
    for f in fields(CompletionOptions):
        if f.name == "stop":
            continue
        if getattr(options, f.name) is None and getattr(fallbacks, f.name) is not None:
            filled[f.name] = getattr(fallbacks, f.name)
    if not options.stop and fallbacks.stop:
        filled["stop"] = fallbacks.stop
    return replace(options, **filled) if filled else options

def _to_turn(t: TurnLike) -> ConversationTurn:
    if isinstance(t, ConversationTurn):
        role, content = t.role, t.content
    elif isinstance(t, Mapping):
        role = str(t.get("role") or "").strip().lower()
        content = t.get("content", "")
    else:
        raise ValidationError(f"Invalid conversation turn: {t!r}")

    if role not in ROLES:
        raise ValidationError(f"Unsupported role: {role or '<empty>'}")
    if not isinstance(content, str):
        content = "" if content is None else str(content)
    return ConversationTurn(role=role, content=content)

def build_turns(messages: Optional[Sequence[TurnLike]]) -> tuple:
    if not messages:
        raise ValidationError("messages must contain at least one turn")
    return tuple(_to_turn(m) for m in messages)

def build_flat_turns(prompt: Optional[str], system_message: Optional[str] = None) -> tuple:
    validate_nonempty("prompt", prompt)
    turns: List[ConversationTurn] = []
    if system_message:
        turns.append(ConversationTurn(role="system", content=system_message))
    turns.append(ConversationTurn(role="user", content=prompt))
    return tuple(turns)

def build_request(
    mode: Mode,
    model: Optional[str],
    content: Any,
    system_message: Optional[str] = None,
    options: Optional[CompletionOptions] = None,
    fallbacks: Optional[CompletionOptions] = None,
    strategy: ConversationStrategy = "flat",
) -> RequestDescriptor:
    model = validate_nonempty("model", model)
    opts = apply_fallbacks(options or CompletionOptions(), fallbacks)

    if mode == "chat":
        if strategy == "turns":
            turns = build_turns(content)
        elif strategy == "flat":
            turns = build_flat_turns(content, system_message)
        else:
            raise ValidationError(f"Unsupported conversation strategy: {strategy}")
        return ChatRequest(model=model, turns=turns, options=opts)

    if mode == "text":
        prompt = validate_nonempty("prompt", content)
        return TextRequest(model=model, prompt=prompt, options=opts)

    raise ValidationError(f"Unsupported mode: {mode}")

def options_payload(options: CompletionOptions) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for f in fields(CompletionOptions):
        value = getattr(options, f.name)
        if f.name == "stop":
            # Empty stop list is omitted, never sent as [].
            if value:
                out["stop"] = list(value)
            continue
        if value is not None:
            out[f.name] = value
    return out

def to_payload(descriptor: RequestDescriptor) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"model": descriptor.model}
    if isinstance(descriptor, ChatRequest):
        payload["messages"] = [t.as_message() for t in descriptor.turns]
    else:
        payload["prompt"] = descriptor.prompt
    payload.update(options_payload(descriptor.options))
    return payload
