"""Model catalog and strict allowlist.

Design:
- Strict mode means: "Only models listed in the catalog are callable."
- If the catalog is empty and strict mode is on -> block.
- Non-strict mode: allow any model string (the endpoint has the last word).
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Tuple

from .errors import ValidationError
from .logging_util import get_logger

logger = get_logger(__name__)

class ModelRegistry:
    def __init__(self, models: Iterable[Dict[str, Any]] = (), strict: bool = False):
        self.models: List[Dict[str, Any]] = [dict(m) for m in models]
        self.strict = strict

    @property
    def values(self) -> List[str]:
        return [str(m.get("value")) for m in self.models if m.get("value")]

    def is_allowed(self, model: str) -> Tuple[bool, str]:
        if not self.strict:
            return True, "strict=false"

        allowed = set(self.values)
        if not allowed:
            return False, "strict=true but model catalog is empty"

        if model not in allowed:
            return False, f"model not in catalog: {model}"

        return True, "allowed"

    def require(self, model: str) -> str:
        ok, reason = self.is_allowed(model)
        if not ok:
            logger.warning("model rejected: %s", reason)
            raise ValidationError(reason)
        return model
