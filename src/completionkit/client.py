"""Completion client: the only piece that talks to the network.

Contract used by the executor:
- complete(descriptor) -> response dict
- raises ApiError(status, message) on a non-2xx answer
- raises TransportError when no HTTP status is available
"""
from __future__ import annotations

import json
from typing import Any, Dict, List

import requests

from .errors import ApiError, TransportError
from .logging_util import get_logger
from .request_builder import to_payload
from .types import ChatRequest, RequestDescriptor

logger = get_logger(__name__)

class BaseCompletionClient:
    def complete(self, descriptor: RequestDescriptor) -> Dict[str, Any]:
        raise NotImplementedError

def _remote_message(r: requests.Response) -> str:
    try:
        data = r.json()
    except ValueError:
        return (r.text or "")[:800]

    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
        if data.get("message"):
            return str(data["message"])
    return (r.text or "")[:800]

def _collect_chunks(r: requests.Response) -> Dict[str, Any]:
    chunks: List[Dict[str, Any]] = []
    for line in r.iter_lines(decode_unicode=True):
        if not line or not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if data == "[DONE]":
            break
        try:
            chunks.append(json.loads(data))
        except ValueError as e:
            raise TransportError(f"malformed stream chunk: {e}")
    return {"object": "completion.chunks", "chunks": chunks}

class OpenAIStyleClient(BaseCompletionClient):
    """OpenAI-compatible /chat/completions and /completions."""

    def __init__(self, base_url: str, api_key: str, timeout: int = 60):
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def endpoint_for(self, descriptor: RequestDescriptor) -> str:
        if isinstance(descriptor, ChatRequest):
            return f"{self.base_url}/chat/completions"
        return f"{self.base_url}/completions"

    def complete(self, descriptor: RequestDescriptor) -> Dict[str, Any]:
        url = self.endpoint_for(descriptor)
        payload = to_payload(descriptor)
        stream = bool(payload.get("stream"))

        logger.debug("POST %s model=%s stream=%s", url, descriptor.model, stream)
        try:
            r = requests.post(url, headers=self._headers(), json=payload, timeout=self.timeout, stream=stream)
        except requests.RequestException as e:
            raise TransportError(f"request failed: {e}")

        # Streamed bodies are not read to the end; the connection goes back only on close.
        with r:
            if not 200 <= r.status_code < 300:
                raise ApiError(r.status_code, _remote_message(r))

            if stream:
                try:
                    return _collect_chunks(r)
                except requests.RequestException as e:
                    raise TransportError(f"stream interrupted: {e}")

            try:
                return r.json()
            except ValueError as e:
                raise TransportError(f"invalid JSON response: {e}")

    def verify_credentials(self) -> List[str]:
        url = f"{self.base_url}/models"
        try:
            r = requests.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"request failed: {e}")

        if r.status_code != 200:
            raise ApiError(r.status_code, _remote_message(r))

        try:
            data = r.json()
        except ValueError as e:
            raise TransportError(f"invalid JSON response: {e}")
        if not isinstance(data, dict):
            raise TransportError(f"unexpected /models response: {type(data).__name__}")

        models = data.get("data") or []
        if not isinstance(models, list):
            raise TransportError("unexpected /models response: 'data' is not a list")
        return [str(m.get("id")) for m in models if isinstance(m, dict)]
