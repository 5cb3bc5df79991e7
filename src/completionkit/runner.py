"""Case-file runner: the host side of a batch.

Case file shape:
    {
      "defaults": {"mode": "chat", "model": "llama3.1-8b", "options": {...}},
      "cases": [
        {"id": "greet", "prompt": "Hi", "system_message": "Be brief."},
        {"id": "doc",   "prompt": "@prompts/doc.txt"}
      ]
    }

mode, strategy and options are batch-wide and read from defaults only.
Per-case text fields may be "@path" references, resolved against the case
file's directory first, then the current directory.
"""
from __future__ import annotations

import json
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .assemble import extract_text, extract_usage, to_output_dict
from .client import OpenAIStyleClient
from .config import AppConfig, load_config
from .credentials import load_credentials
from .errors import BatchError, ValidationError
from .executor import BatchExecutor
from .logging_util import get_logger, log_step
from .types import Success

logger = get_logger(__name__)

_RECORD_FIELDS = ("model", "messages", "prompt", "system_message")

def read_text_maybe_file(value: Any, base_dir: Optional[Path] = None) -> Any:
    """'@path' -> file contents (utf-8); anything else is returned untouched."""
    if not isinstance(value, str):
        return value
    v = value.strip()
    if not v.startswith("@"):
        return value

    p = Path(v[1:].strip())
    candidates = [p] if p.is_absolute() else []
    if not p.is_absolute():
        if base_dir is not None:
            candidates.append(Path(base_dir) / p)
        candidates.append(p.resolve())

    for cand in candidates:
        if cand.exists():
            return cand.read_text(encoding="utf-8")
    raise FileNotFoundError(f"No such file: {v[1:]}. Tried: {[str(c) for c in candidates]}")

def file_ref_resolver(base_dir: Path):
    """Resolver for BatchExecutor: an unreadable '@path' fails only its own record."""
    def resolve(value: Any) -> Any:
        try:
            return read_text_maybe_file(value, base_dir=base_dir)
        except OSError as e:
            raise ValidationError(str(e))
    return resolve

def _safe_filename(s: str) -> str:
    s = (s or "").strip()
    if not s:
        return "unknown"
    s = s.replace(" ", "_")
    s = re.sub(r"[^A-Za-z0-9._-]+", "_", s)
    return s[:180]

def _one_line_preview(s: Any, limit: int = 200) -> str:
    if s is None:
        return ""
    t = re.sub(r"\s+", " ", str(s)).strip()
    if len(t) > limit:
        return t[:limit].rstrip() + " ..."
    return t

def _append_jsonl(path: Path, obj: Dict[str, Any]) -> None:
    line = json.dumps(obj, ensure_ascii=False)
    with path.open("a", encoding="utf-8", newline="\n") as f:
        f.write(line + "\n")

def load_case_file(case_file: Path) -> Dict[str, Any]:
    data = json.loads(Path(case_file).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValidationError("case file must be a JSON object")

    defaults = data.get("defaults") or {}
    cases = data.get("cases") or []
    if not isinstance(cases, list) or not cases:
        raise ValidationError("cases must be a non-empty list")
    return {"defaults": defaults, "cases": cases}

def build_records(defaults: Dict[str, Any], cases: List[Any]) -> List[Any]:
    """Merge defaults into each case. '@path' values stay unresolved here;
    the executor resolves them per record so a bad reference fails only that record.
    Non-object cases are passed through and rejected by the executor."""
    records: List[Any] = []
    for c in cases:
        if not isinstance(c, dict):
            records.append(c)
            continue

        def pick(key: str) -> Any:
            v = c.get(key)
            if v is None or v == "":
                v = defaults.get(key)
            return v

        records.append({key: pick(key) for key in _RECORD_FIELDS})
    return records

def run_case_file(
    case_file: str,
    continue_on_failure: bool = False,
    profile: Optional[str] = None,
    output_dir: Optional[Path] = None,
    config: Optional[AppConfig] = None,
    client: Optional[Any] = None,
    cancel: Optional[threading.Event] = None,
    pretty: bool = True,
) -> List[Dict[str, Any]]:
    case_path = Path(case_file)
    data = load_case_file(case_path)
    defaults, cases = data["defaults"], data["cases"]

    cfg = config or load_config()
    if client is None:
        creds = load_credentials(cfg.api_key_env)
        logger.info("[CREDENTIALS] env=%s sha8=%s", cfg.api_key_env, creds.fingerprint())
        client = OpenAIStyleClient(cfg.base_url, creds.api_key, timeout=cfg.timeout)

    mode = str(defaults.get("mode") or "chat").strip().lower()
    has_messages = any(isinstance(c, dict) and c.get("messages") for c in cases) or bool(defaults.get("messages"))
    strategy = str(defaults.get("strategy") or ("turns" if has_messages else "flat"))

    executor = BatchExecutor(
        client,
        mode=mode,
        strategy=strategy,
        fallbacks=cfg.fallbacks(profile or defaults.get("profile")),
        registry=cfg.registry(),
        default_model=cfg.default_model,
        resolve_text=file_ref_resolver(case_path.parent),
    )

    log_step(logger, "0", "case file=%s cases=%d mode=%s strategy=%s", case_path, len(cases), mode, strategy)
    records = build_records(defaults, cases)

    out_dir = Path(output_dir or "output")
    out_dir.mkdir(parents=True, exist_ok=True)
    run_ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    model_hint = str(defaults.get("model") or cfg.default_model or "mixed")
    out_path = out_dir / f"{_safe_filename(model_hint)}_{run_ts}.jsonl"

    try:
        results = executor.run(records, defaults.get("options"), continue_on_failure=continue_on_failure, cancel=cancel)
    except BatchError as e:
        for r in e.results:
            _append_jsonl(out_path, _envelope(cases, r))
        logger.error("batch stopped: %s (saved %d results to %s)", e, len(e.results), out_path)
        raise

    outputs: List[Dict[str, Any]] = []
    for r in results:
        env = _envelope(cases, r)
        outputs.append(env)
        _append_jsonl(out_path, env)

        if isinstance(r, Success):
            logger.info("[OUTPUT %s] %s", env["case_id"], _one_line_preview(extract_text(r.raw_response)))
        if pretty:
            print(json.dumps(env, ensure_ascii=False, indent=2))
        else:
            print(json.dumps(env, ensure_ascii=False))

    logger.info("DONE (saved: %s)", out_path)
    return outputs

def _envelope(cases: List[Any], record: Any) -> Dict[str, Any]:
    case = cases[record.index]
    case_id = (case.get("id") if isinstance(case, dict) else None) or f"case_{record.index + 1:02d}"
    env: Dict[str, Any] = {"case_id": case_id, "result": to_output_dict(record)}
    if isinstance(record, Success):
        env["usage"] = extract_usage(record.raw_response)
    return env
