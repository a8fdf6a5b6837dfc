from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .util.errors import InvalidConfiguration

# --------
# Defaults
# --------
DEFAULT_PATH = "/api/v1/namespaces"
DEFAULT_PAGE_LIMIT = 500
DEFAULT_TIMEOUT = 30.0
COMMANDS = ("list", "pages")
ALLOWED_CONFIG_KEYS = {
    "server",
    "path",
    "page_limit",
    "field_selector",
    "label_selector",
    "timeout",
    "max_items",
    "log_level",
    "json_logs",
}
BOOL_CONFIG_KEYS = {"json_logs"}
INT_CONFIG_KEYS = {"page_limit", "max_items"}
FLOAT_CONFIG_KEYS = {"timeout"}
STR_CONFIG_KEYS = {"server", "path", "field_selector", "label_selector", "log_level"}


@dataclass(frozen=True)
class PagerSettings:
    server: Optional[str] = None
    path: str = DEFAULT_PATH
    page_limit: int = DEFAULT_PAGE_LIMIT
    field_selector: Optional[str] = None
    label_selector: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    max_items: Optional[int] = None

    log_level: str = "INFO"
    json_logs: bool = False


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise InvalidConfiguration(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (yaml.YAMLError, ValueError) as e:
        raise InvalidConfiguration(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise InvalidConfiguration("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return raw


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise InvalidConfiguration(f"Config field '{key}' must be a boolean")


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except ValueError:
            pass
    raise InvalidConfiguration(f"Config field '{key}' must be an integer")


def _coerce_float(key: str, value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            pass
    raise InvalidConfiguration(f"Config field '{key}' must be a number")


def _normalize(data: Dict[str, Any], *, warn_unknown: bool = True) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown and warn_unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS or value is None:
            continue
        if key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in INT_CONFIG_KEYS:
            normalized[key] = _coerce_int(key, value)
        elif key in FLOAT_CONFIG_KEYS:
            normalized[key] = _coerce_float(key, value)
        elif key in STR_CONFIG_KEYS:
            if not isinstance(value, str):
                raise InvalidConfiguration(f"Config field '{key}' must be a string")
            normalized[key] = value
    return normalized


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge: values in b override a.
    """
    merged = dict(a)
    merged.update(b)
    return merged


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kube-pager", description="Page through a Kubernetes-style list API")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
        p.add_argument("--server", default=None, help="API server base URL, e.g. https://127.0.0.1:6443")
        p.add_argument("--path", default=None, help=f"List endpoint path (default {DEFAULT_PATH})")
        p.add_argument(
            "--limit",
            dest="page_limit",
            type=int,
            default=None,
            help=f"Items requested per page (default {DEFAULT_PAGE_LIMIT})",
        )
        p.add_argument("--field-selector", default=None, help="fieldSelector query parameter")
        p.add_argument("--label-selector", default=None, help="labelSelector query parameter")
        p.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")

    p_list = subparsers.add_parser("list", help="Print every item as one JSON line")
    add_common(p_list)
    p_list.add_argument("--max-items", type=int, default=None, help="Stop after this many items")

    p_pages = subparsers.add_parser("pages", help="Print one summary line per fetched page")
    add_common(p_pages)

    return parser


def load_settings(argv: Optional[list[str]] = None) -> Tuple[str, PagerSettings]:
    """
    Build PagerSettings by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.

    Returns:
      (command, PagerSettings) where command is list|pages
    """
    ns = build_parser().parse_args(argv)

    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize(_parse_config_file(Path(ns.config)))

    env_cfg = _normalize(
        {
            "server": _env_str("KUBE_PAGER_SERVER"),
            "path": _env_str("KUBE_PAGER_PATH"),
            "page_limit": _env_str("KUBE_PAGER_PAGE_LIMIT"),
            "field_selector": _env_str("KUBE_PAGER_FIELD_SELECTOR"),
            "label_selector": _env_str("KUBE_PAGER_LABEL_SELECTOR"),
            "timeout": _env_str("KUBE_PAGER_TIMEOUT"),
            "max_items": _env_str("KUBE_PAGER_MAX_ITEMS"),
            "log_level": _env_str("KUBE_PAGER_LOG_LEVEL"),
            "json_logs": _env_str("KUBE_PAGER_JSON_LOGS"),
        },
        warn_unknown=False,
    )

    cli_cfg = _normalize(
        {key: getattr(ns, key, None) for key in ALLOWED_CONFIG_KEYS},
        warn_unknown=False,
    )

    merged = _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg))

    page_limit = merged.get("page_limit", DEFAULT_PAGE_LIMIT)
    if page_limit <= 0:
        raise InvalidConfiguration(f"page_limit must be positive, got {page_limit}")
    max_items = merged.get("max_items")
    if max_items is not None and max_items < 0:
        raise InvalidConfiguration(f"max_items must not be negative, got {max_items}")
    timeout = merged.get("timeout", DEFAULT_TIMEOUT)
    if timeout <= 0:
        raise InvalidConfiguration(f"timeout must be positive, got {timeout}")

    settings = PagerSettings(
        server=merged.get("server"),
        path=merged.get("path", DEFAULT_PATH),
        page_limit=page_limit,
        field_selector=merged.get("field_selector"),
        label_selector=merged.get("label_selector"),
        timeout=timeout,
        max_items=max_items,
        log_level=str(merged.get("log_level", "INFO")).upper(),
        json_logs=merged.get("json_logs", False),
    )
    return ns.command, settings
