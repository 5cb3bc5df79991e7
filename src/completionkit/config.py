"""Configuration loading.

Lookup order for the YAML file:
1) explicit path argument
2) COMPLETIONKIT_CONFIG env var
3) the packaged configs/completionkit.yaml

COMPLETIONKIT_BASE_URL overrides base_url from whichever file was loaded.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError
from .logging_util import get_logger
from .options import normalize_options
from .registry import ModelRegistry
from .types import CompletionOptions

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "configs" / "completionkit.yaml"

@dataclass
class AppConfig:
    base_url: str
    timeout: int = 60
    api_key_env: str = "CEREBRAS_API_KEY"
    default_model: str = ""
    strict_models: bool = False
    models: List[Dict[str, Any]] = field(default_factory=list)
    profiles: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def fallbacks(self, profile: Optional[str]) -> Optional[CompletionOptions]:
        if not profile:
            return None
        if profile not in self.profiles:
            raise ConfigError(f"Unknown profile: {profile}")
        raw = self.profiles[profile] or {}
        if not raw:
            return None
        return normalize_options(raw)

    def registry(self) -> ModelRegistry:
        return ModelRegistry(self.models, strict=self.strict_models)

def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to load YAML: {path} ({e})")
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")
    return data

def load_config(path: Optional[Path] = None) -> AppConfig:
    env_path = (os.environ.get("COMPLETIONKIT_CONFIG") or "").strip()
    p = Path(path) if path else (Path(env_path) if env_path else DEFAULT_CONFIG_PATH)
    data = _load_yaml(p)

    base_url = (os.environ.get("COMPLETIONKIT_BASE_URL") or data.get("base_url") or "").strip()
    if not base_url:
        raise ConfigError("base_url is required")

    models = data.get("models") or []
    if not isinstance(models, list):
        raise ConfigError("models must be a list of {name, value}")

    profiles = data.get("profiles") or {}
    if not isinstance(profiles, dict):
        raise ConfigError("profiles must be a mapping")

    try:
        timeout = int(data.get("timeout", 60))
    except (TypeError, ValueError):
        raise ConfigError(f"timeout must be an integer: {data.get('timeout')!r}")

    strict_models = data.get("strict_models", False)
    if not isinstance(strict_models, bool):
        raise ConfigError(f"strict_models must be true or false: {strict_models!r}")

    cfg = AppConfig(
        base_url=base_url,
        timeout=timeout,
        api_key_env=str(data.get("api_key_env") or "CEREBRAS_API_KEY"),
        default_model=str(data.get("default_model") or ""),
        strict_models=strict_models,
        models=models,
        profiles=profiles,
    )
    logger.debug("Loaded config from %s (models=%d)", p, len(models))
    return cfg
