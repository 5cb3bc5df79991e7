"""Credential loading. The key is opaque: it is forwarded, never logged."""
from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass

from .errors import ConfigError

def sanitize_api_key(raw: str) -> str:
    # Copy/paste often drags quotes along, which breaks latin-1 header encoding.
    k = (raw or "").strip()
    k = k.strip(' "\'`')
    k = k.strip("“”‘’")
    return k

@dataclass(frozen=True)
class Credentials:
    api_key: str

    def fingerprint(self) -> str:
        return hashlib.sha256(self.api_key.encode("utf-8")).hexdigest()[:8]

    def __repr__(self) -> str:
        return f"Credentials(api_key=***, sha8={self.fingerprint()})"

def load_credentials(env_var: str) -> Credentials:
    key = sanitize_api_key(os.getenv(env_var) or "")
    if not key:
        raise ConfigError(f"Missing environment variable: {env_var}")
    return Credentials(api_key=key)
