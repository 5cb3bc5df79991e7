"""Command line entrypoint.

Usage examples:
- Run a case file, stop at the first failure:
  completionkit run cases.json

- Keep going past failed records, pretty print each result:
  completionkit run cases.json --continue --pretty

- Fill unset options from a config profile:
  completionkit run cases.json --profile chat_model

- List the configured model catalog / test the API key:
  completionkit models
  completionkit verify

Exit codes: 0 ok, 1 batch aborted, 2 input/config error.
"""
import argparse
import json
import sys
from pathlib import Path

from .client import OpenAIStyleClient
from .config import load_config
from .credentials import load_credentials
from .errors import BatchAborted, ClientError, ConfigError, ValidationError
from .logging_util import get_logger
from .runner import run_case_file

logger = get_logger(__name__)

def _cmd_run(args) -> int:
    try:
        cfg = load_config(Path(args.config) if args.config else None)
        run_case_file(
            args.cases,
            continue_on_failure=args.cont,
            profile=args.profile,
            output_dir=Path(args.output_dir),
            config=cfg,
            pretty=args.pretty,
        )
    except BatchAborted:
        return 1
    except (ConfigError, ValidationError, FileNotFoundError, json.JSONDecodeError) as e:
        logger.error("Failed to start batch: %s", e)
        return 2
    return 0

def _cmd_models(args) -> int:
    try:
        cfg = load_config(Path(args.config) if args.config else None)
    except ConfigError as e:
        logger.error("%s", e)
        return 2
    for m in cfg.models:
        print(f"{m.get('value')}\t{m.get('name', '')}")
    return 0

def _cmd_verify(args) -> int:
    try:
        cfg = load_config(Path(args.config) if args.config else None)
        creds = load_credentials(cfg.api_key_env)
    except ConfigError as e:
        logger.error("%s", e)
        return 2

    client = OpenAIStyleClient(cfg.base_url, creds.api_key, timeout=cfg.timeout)
    try:
        ids = client.verify_credentials()
    except ClientError as e:
        logger.error("Credential test failed: %s", e)
        return 1
    print(json.dumps({"ok": True, "models": ids}, ensure_ascii=False))
    return 0

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="completionkit")
    ap.add_argument("--config", help="Path to a completionkit YAML config")
    sub = ap.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a case file as one batch")
    run.add_argument("cases", help="Path to the case JSON file")
    run.add_argument("--continue", dest="cont", action="store_true", help="Record failures and keep going")
    run.add_argument("--profile", help="Fallback profile from the config")
    run.add_argument("--output-dir", default="output", help="Directory for the JSONL results")
    run.add_argument("--pretty", action="store_true", help="Pretty print the output JSON")
    run.set_defaults(func=_cmd_run)

    models = sub.add_parser("models", help="List the model catalog")
    models.set_defaults(func=_cmd_models)

    verify = sub.add_parser("verify", help="Check the API key against /models")
    verify.set_defaults(func=_cmd_verify)
    return ap

def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)

if __name__ == "__main__":
    sys.exit(main())
