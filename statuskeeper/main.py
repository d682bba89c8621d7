"""Entry point for StatusKeeper."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from statuskeeper.config import settings
from statuskeeper.monitor.checker import HttpProbe
from statuskeeper.monitor.models import Status, format_instant
from statuskeeper.monitor.store import LedgerStore

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel(f"StatusKeeper watching {settings.target_url}", style="bold green"))
    uvicorn.run(
        "statuskeeper.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def run_probe(url: str) -> int:
    """Probe once and print the classification. Does not touch the ledger."""
    probe = HttpProbe(url, method=settings.probe_method, timeout_seconds=settings.probe_timeout_seconds)
    with console.status(f"[bold green]Probing {url}..."):
        result = asyncio.run(probe())

    style = "green" if result.status is Status.ONLINE else "red"
    console.print(f"[bold {style}]{result.status.label}[/bold {style}] {result.message} ({result.latency_ms}ms)")
    return 0 if result.status is Status.ONLINE else 1


def show_ledger(path: str) -> None:
    """Load the ledger (with the sanity pass) and print it."""
    store = LedgerStore(path, settings.ledger_sanity_threshold_seconds)
    ledger = store.load()

    table = Table(title=f"Ledger: {path}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("uptime seconds", str(ledger.uptime_seconds))
    table.add_row("downtime seconds", str(ledger.downtime_seconds))
    table.add_row("last status", ledger.last_status.label)
    table.add_row("last state change", format_instant(ledger.last_state_change_at) or "-")
    table.add_row("last online", format_instant(ledger.last_online_at) or "-")
    console.print(table)

    for msg in store.last_diagnostics:
        console.print(f"[yellow]warning:[/yellow] {msg}")


def main() -> None:
    parser = argparse.ArgumentParser(description="StatusKeeper uptime monitor")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the monitor and API server")

    probe_parser = sub.add_parser("probe", help="Probe the target once")
    probe_parser.add_argument("--url", default=settings.target_url)

    ledger_parser = sub.add_parser("ledger", help="Show the persisted ledger")
    ledger_parser.add_argument("--path", default=settings.ledger_path)

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "probe":
        sys.exit(run_probe(args.url))
    elif args.command == "ledger":
        show_ledger(args.path)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
