from __future__ import annotations

import json
import logging
import sys
from itertools import islice
from time import perf_counter
from typing import Any, Dict, Iterable, Optional

from .accessor import MappingAccessor
from .config import PagerSettings, load_settings
from .http import ListEndpoint, create_session
from .logging import LogConfig, get_logger, log_event, setup_logging
from .pager import Pager
from .util.errors import InvalidConfiguration, as_exit_code
from .util.serialization import sanitize_for_json

LOG = get_logger(__name__)


def build_pager(settings: PagerSettings) -> Pager[Dict[str, Any]]:
    if not settings.server:
        raise InvalidConfiguration("An API server URL is required (--server or KUBE_PAGER_SERVER)")
    endpoint = ListEndpoint(
        create_session(),
        settings.server,
        settings.path,
        field_selector=settings.field_selector,
        label_selector=settings.label_selector,
        timeout=settings.timeout,
    )
    return Pager(endpoint, settings.page_limit, accessor=MappingAccessor())


def _print_summary(rows: Iterable[tuple[str, str]]) -> None:
    from rich.console import Console
    from rich.table import Table

    table = Table(title="kube-pager", show_header=False)
    table.add_column("metric", style="bold")
    table.add_column("value", justify="right")
    for name, value in rows:
        table.add_row(name, value)
    Console(stderr=True).print(table)


def cmd_list(settings: PagerSettings) -> int:
    pager = build_pager(settings)
    traversal = pager.traverse()
    items: Iterable[Any] = traversal
    if settings.max_items is not None:
        items = islice(traversal, settings.max_items)

    started = perf_counter()
    log_event(LOG, logging.INFO, "Listing started", step="list", phase="start", path=settings.path)
    count = 0
    for item in items:
        sys.stdout.write(json.dumps(sanitize_for_json(item), sort_keys=True) + "\n")
        count += 1
    log_event(
        LOG,
        logging.INFO,
        "Listing complete",
        step="list",
        phase="complete",
        duration_ms=int((perf_counter() - started) * 1000),
        items=count,
        pages=traversal.pages_fetched,
    )
    _print_summary(
        [
            ("items", str(count)),
            ("pages", str(traversal.pages_fetched)),
            ("complete", "yes" if traversal.exhausted else "no"),
        ]
    )
    return 0


def cmd_pages(settings: PagerSettings) -> int:
    pager = build_pager(settings)
    total = 0
    pages = 0
    for page in pager.pages():
        pages += 1
        total += len(page.items)
        sys.stdout.write(f"{pages}\t{len(page.items)}\t{page.continue_token or ''}\n")
    _print_summary([("items", str(total)), ("pages", str(pages))])
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    try:
        command, settings = load_settings(argv)
        setup_logging(LogConfig(level=settings.log_level, json_logs=settings.json_logs))

        if command == "list":
            code = cmd_list(settings)
        elif command == "pages":
            code = cmd_pages(settings)
        else:
            raise InvalidConfiguration(f"Unknown command: {command}")

        sys.exit(code)
    except SystemExit:
        raise
    except BrokenPipeError:
        # Piped into `head` or similar.
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())
        LOG.error("Execution failed", extra={"error": str(e), "error_type": type(e).__name__})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
