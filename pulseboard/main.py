"""Entry point for Pulseboard — `pulseboard serve` / `pulseboard check`."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pulseboard.config import Settings, settings
from pulseboard.health.engine import Prober
from pulseboard.instances.reconciler import FetchError, ParseError, Reconciler
from pulseboard.instances.registry import InstanceRegistry

console = Console()


def configure_logging(cfg: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, cfg.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def print_config(cfg: Settings) -> None:
    body = "\n".join(f"{k}: {v}" for k, v in cfg.summary().items())
    console.print(Panel.fit(body, title="Configuration", border_style="green"))


def run_server(cfg: Settings) -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting Pulseboard API Server", style="bold green"))
    uvicorn.run(
        "pulseboard.api.server:app",
        host=cfg.api_host,
        port=cfg.port,
        log_level=cfg.log_level.lower(),
        reload=False,
    )


async def check_once(cfg: Settings) -> InstanceRegistry:
    """Load the instance list and probe every instance one time."""
    registry = InstanceRegistry()
    reconciler = Reconciler(
        registry, cfg.instances_url,
        max_history=cfg.max_check_history, timeout=cfg.request_timeout,
    )
    await reconciler.refresh()
    await Prober(timeout=cfg.request_timeout).check_all(registry.snapshot())
    return registry


def run_check(cfg: Settings) -> int:
    """One-shot check cycle rendered as a table."""
    with console.status("[bold green]Checking instances..."):
        try:
            registry = asyncio.run(check_once(cfg))
        except (FetchError, ParseError) as e:
            console.print(f"[red]Could not load instance list:[/red] {e}")
            return 1

    table = Table(title=f"{len(registry)} instances")
    table.add_column("#", justify="right")
    table.add_column("Group")
    table.add_column("Kind")
    table.add_column("URL")
    table.add_column("Status")
    table.add_column("Time", justify="right")

    for ep in registry.snapshot():
        checks = ep.history()
        last = checks[-1] if checks else None
        if last is None:
            status = "[dim]pending[/dim]"
        elif last.success:
            status = f"[green]up {last.status_code}[/green]"
        else:
            status = f"[red]down {last.status_code or last.error}[/red]"
        table.add_row(
            str(ep.display_index), ep.group, ep.kind.value, ep.url, status,
            f"{last.response_time}ms" if last else "-",
        )

    console.print(table)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Pulseboard instance status monitor")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")
    sub.add_parser("check", help="Probe every instance once and print the results")

    args = parser.parse_args()

    configure_logging(settings)

    if args.command == "serve":
        print_config(settings)
        run_server(settings)
    elif args.command == "check":
        sys.exit(run_check(settings))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
