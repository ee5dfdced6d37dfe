#!/usr/bin/env python3
"""
MongoDB connectivity health check.

Uses bookstorectl config and the BookstoreClient wrapper to verify that the
configured MongoDB URI is reachable and the books collection is populated.
Does not modify any data. Run from project root after installing the
package (e.g. uv pip install -e .):

    python scripts/mongo-health-check.py
    python scripts/mongo-health-check.py --uri mongodb://localhost:27017

Exit code 0 on success, 1 on failure.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Allow importing bookstore when run from repo root (e.g. uv run python scripts/...)
if __name__ == "__main__":
    _src = Path(__file__).resolve().parent.parent / "src"
    if str(_src) not in sys.path:
        sys.path.insert(0, str(_src))

from rich.console import Console
from rich.table import Table

from bookstore.config import ConfigError, load_config, mask_uri, resolve_connection
from bookstore.mongo_api import BookstoreClient, BookstoreConnectionError, BookstoreError


def _run_health_check(uri_override: str | None) -> int:
    console = Console()
    try:
        cfg = load_config()
        settings = resolve_connection(cfg, uri_override=uri_override)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        return 1

    try:
        with BookstoreClient.from_settings(settings) as client:
            client.ping()
            version = client.server_version()
            count = client.count_books()
    except BookstoreConnectionError:
        console.print(f"[red]Could not reach MongoDB at {mask_uri(settings.uri)}.[/red]")
        return 1
    except BookstoreError as e:
        console.print(f"[red]MongoDB error:[/red] {e}")
        return 1

    table = Table(title="MongoDB health check")
    table.add_column("Check", style="cyan")
    table.add_column("Result", style="green")
    table.add_row("URI", f"{mask_uri(settings.uri)} ({settings.uri_source})")
    table.add_row("Server version", version)
    table.add_row("Namespace", f"{settings.database}.{settings.collection}")
    table.add_row("Books", str(count))
    console.print(table)
    if count == 0:
        console.print("[yellow]Collection is empty. Run 'bookstorectl seed'.[/yellow]")
    console.print("[green]Health check passed.[/green]")
    return 0


def main() -> int:
    import argparse
    parser = argparse.ArgumentParser(description="Verify the MongoDB URI and books collection.")
    parser.add_argument(
        "--uri",
        type=str,
        default=None,
        help="Override MongoDB URI (otherwise uses MONGO_URI or bookstorectl config).",
    )
    args = parser.parse_args()
    return _run_health_check(args.uri)


if __name__ == "__main__":
    sys.exit(main())
