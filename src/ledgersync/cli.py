import asyncio, logging
from datetime import datetime
from typing import Sequence

import click
from rich.console import Console, Group
from rich.live import Live
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from .adapters.parquet_export import write_events_parquet
from .adapters.rpc_httpx import HttpxLedgerClient
from .application.history import TransactionHistory
from .config import SyncConfig
from .domain.decoding import format_units
from .domain.models import Event, SyncStatus
from .domain.value_types import ALL, EVENT_KINDS

console = Console()


def _short(addr: str) -> str:
    return f"{addr[:6]}...{addr[-4:]}" if len(addr) > 12 else addr

def _details(ev: Event) -> str:
    if ev.kind == "Swap":
        src, dst = ("A", "B") if ev.is_forward_direction else ("B", "A")
        return f"{format_units(ev.amount_in)} {src} → {format_units(ev.amount_out)} {dst}"
    return (f"A {format_units(ev.amount_a)} • B {format_units(ev.amount_b)}"
            f" • LP {format_units(ev.liquidity_delta)}")

def render_table(events: Sequence[Event], title: str = "transaction history") -> Table:
    table = Table(title=title, expand=True)
    table.add_column("time", no_wrap=True)
    table.add_column("type")
    table.add_column("account")
    table.add_column("details")
    table.add_column("block", justify="right")
    table.add_column("tx", no_wrap=True)
    colors = {"Swap": "cyan", "AddLiquidity": "green", "RemoveLiquidity": "yellow"}
    for ev in events:
        table.add_row(
            datetime.fromtimestamp(ev.timestamp).strftime("%Y-%m-%d %H:%M:%S"),
            Text(ev.kind, style=colors.get(ev.kind, "")),
            _short(ev.actor),
            _details(ev),
            f"{ev.block_number:,}",
            _short(ev.tx_hash),
        )
    return table

def render_status(status: SyncStatus) -> Text:
    last = datetime.fromtimestamp(status.last_sync_time).strftime("%H:%M:%S") if status.last_sync_time else "never"
    line = Text()
    line.append("syncing " if status.loading else "idle ", style="bold yellow" if status.loading else "bold")
    line.append(f"• block {status.last_synced_block:,} • last sync {last}")
    if status.error:
        line.append(f" • {status.error}", style="bold red")
    return line


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

def _common(f):
    opts = [
        click.option("--rpc", required=True, help="RPC endpoint URL"),
        click.option("--dex", "dex_address", required=True, help="Exchange contract address"),
        click.option("--kind", type=click.Choice([ALL, *EVENT_KINDS]), default=ALL, show_default=True),
        click.option("--actor", default=None, help="Only events from this account"),
        click.option("--lookback", type=int, default=None, help="Blocks scanned on first sync"),
        click.option("--retention", type=int, default=None, help="Max cached events"),
        click.option("--verbose", "-v", is_flag=True, default=False),
    ]
    for opt in reversed(opts):
        f = opt(f)
    return f

def _config(lookback, retention, **extra) -> SyncConfig:
    try:
        return SyncConfig.from_env(lookback_blocks=lookback, retention_limit=retention, **extra)
    except ValueError as e:
        raise click.UsageError(str(e))


@click.group()
def cli():
    """ledgersync — live, deduplicated DEX transaction history."""


@cli.command("show")
@_common
def show_cmd(rpc, dex_address, kind, actor, lookback, retention, verbose):
    """Sync once and print the filtered history."""
    _setup_logging(verbose)
    cfg = _config(lookback, retention)

    async def run() -> None:
        client = HttpxLedgerClient(rpc, dex_address)
        try:
            history = TransactionHistory(client, cfg, kind=kind, actor=actor)
            await history.engine.synchronize(cfg.min_result_count)
            console.print(render_table(history.get_view()))
            console.print(render_status(history.get_status()))
        finally:
            await client.aclose()

    asyncio.run(run())


@cli.command("export")
@_common
@click.option("--out", "out_path", required=True, help="Parquet file to write")
def export_cmd(rpc, dex_address, kind, actor, lookback, retention, verbose, out_path):
    """Sync once and write the filtered history to Parquet."""
    _setup_logging(verbose)
    cfg = _config(lookback, retention)

    async def run() -> int:
        client = HttpxLedgerClient(rpc, dex_address)
        try:
            history = TransactionHistory(client, cfg, kind=kind, actor=actor)
            await history.engine.synchronize(cfg.min_result_count)
            status = history.get_status()
            if status.error:
                console.print(f"[yellow]warning[/]: last sync reported {status.error}")
            return write_events_parquet(out_path, history.get_view())
        finally:
            await client.aclose()

    rows = asyncio.run(run())
    console.print(f"[bold]done[/]: {rows} events → {out_path}")


@cli.command("watch")
@_common
@click.option("--poll-interval", type=float, default=None, help="Seconds between backstop polls")
@click.option("--debounce", type=float, default=None, help="Seconds to coalesce push notifications")
def watch_cmd(rpc, dex_address, kind, actor, lookback, retention, verbose, poll_interval, debounce):
    """Keep the history live until interrupted (Ctrl-C)."""
    _setup_logging(verbose)
    cfg = _config(lookback, retention, poll_interval_secs=poll_interval, debounce_secs=debounce)

    async def run() -> None:
        client = HttpxLedgerClient(rpc, dex_address)
        history = TransactionHistory(client, cfg, kind=kind, actor=actor)
        try:
            async with history:
                with Live(console=console, refresh_per_second=4) as live:
                    while True:
                        live.update(Group(render_table(history.get_view()),
                                          render_status(history.get_status())))
                        await asyncio.sleep(0.5)
        finally:
            await client.aclose()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("[bold]stopped[/]")


if __name__ == "__main__":
    cli()
