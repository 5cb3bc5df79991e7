"""Shared types and lightweight data containers.

Everything here is a frozen dataclass: a batch builds these values once and
never mutates them. Optional option fields mean "let the endpoint decide".
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional, Tuple, Union

Mode = Literal["chat", "text"]
ConversationStrategy = Literal["turns", "flat"]
Role = Literal["system", "user", "assistant"]

ROLES = ("system", "user", "assistant")

Category = Literal[
    "ValidationError",
    "AuthenticationFailed",
    "RateLimited",
    "BadRequest",
    "RemoteServerError",
    "RemoteError",
    "LocalError",
]

@dataclass(frozen=True)
class CompletionOptions:
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stop: Tuple[str, ...] = ()
    stream: Optional[bool] = None

@dataclass(frozen=True)
class ConversationTurn:
    role: Role
    content: str

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

@dataclass(frozen=True)
class ChatRequest:
    model: str
    turns: Tuple[ConversationTurn, ...]
    options: CompletionOptions = field(default_factory=CompletionOptions)

@dataclass(frozen=True)
class TextRequest:
    model: str
    prompt: str
    options: CompletionOptions = field(default_factory=CompletionOptions)

RequestDescriptor = Union[ChatRequest, TextRequest]

@dataclass(frozen=True)
class InputRecord:
    index: int
    payload: Mapping[str, Any]

@dataclass(frozen=True)
class ErrorInfo:
    category: Category
    message: str

@dataclass(frozen=True)
class Success:
    index: int
    raw_response: Dict[str, Any]
    model: str
    operation: str

@dataclass(frozen=True)
class Failure:
    index: int
    category: Category
    message: str
    model: str
    operation: str

OutputRecord = Union[Success, Failure]
