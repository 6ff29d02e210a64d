"""
ts3stats entry point.

Usage:
    ts3stats --password secret                      Poll every 10s into Telegraf
    ts3stats --output udp:127.0.0.1:8094 --once     One scan, then exit
    ts3stats scan                                   Print a table of virtual servers
"""

from __future__ import annotations

import logging

import click

from ts3stats import __version__
from ts3stats.collector.teamspeak import TeamspeakCollector
from ts3stats.errors import AuthError, CollectorError, QueryError
from ts3stats.output.telegraf import DEFAULT_OUTPUT, TelegrafSink
from ts3stats.poller import DEFAULT_INTERVAL, run_once, run_poller


log = logging.getLogger("ts3stats")


def _connect(ctx) -> TeamspeakCollector:
    server = ctx.obj["server"]
    try:
        return TeamspeakCollector.connect(
            server,
            ctx.obj["username"],
            ctx.obj["password"],
            timeout_seconds=ctx.obj["timeout"],
        )
    except AuthError as e:
        log.error("Authentication failure: %s", e)
        raise SystemExit(1)
    except (QueryError, ValueError) as e:
        log.error("Could not establish server query connection to %s: %s", server, e)
        raise SystemExit(1)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="ts3stats")
@click.option("--server", default="127.0.0.1:10011", envvar="TS3STATS_SERVER", show_default=True,
              help="ServerQuery address, host or host:port")
@click.option("--username", default="serveradmin", envvar="TS3STATS_USERNAME", show_default=True,
              help="ServerQuery login name")
@click.option("--password", default="", envvar="TS3STATS_PASSWORD", help="ServerQuery password")
@click.option("--output", default=DEFAULT_OUTPUT, envvar="TS3STATS_OUTPUT", show_default=True,
              help="Telegraf listener: unix:<path>, tcp:<host:port> or udp:<host:port>")
@click.option("--interval", default=DEFAULT_INTERVAL, envvar="TS3STATS_INTERVAL", show_default=True,
              help="Seconds between scans")
@click.option("--timeout", default=10.0, envvar="TS3STATS_TIMEOUT", show_default=True,
              help="Socket timeout in seconds")
@click.option("--once", is_flag=True, default=False, help="Run a single scan and exit")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx, server: str, username: str, password: str, output: str, interval: float,
        timeout: float, once: bool, verbose: bool):
    """ts3stats - TeamSpeak 3 virtual server metrics for Telegraf."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.ensure_object(dict)
    ctx.obj["server"] = server
    ctx.obj["username"] = username
    ctx.obj["password"] = password
    ctx.obj["timeout"] = timeout

    if ctx.invoked_subcommand is not None:
        return

    if interval <= 0:
        raise click.BadParameter("must be positive", param_hint="--interval")

    try:
        sink = TelegrafSink.from_url(output)
    except (ValueError, CollectorError) as e:
        log.error("Could not connect to telegraf: %s", e)
        raise SystemExit(1)

    collector = _connect(ctx)
    try:
        if once:
            run_once(collector, sink)
        else:
            run_poller(collector, sink, interval=interval)
    except CollectorError as e:
        log.error("Could not iterate through Teamspeak 3 server instances: %s", e)
        raise SystemExit(1)
    finally:
        collector.close()
        sink.close()


@cli.command()
@click.pass_context
def scan(ctx):
    """Scan once and print every virtual server."""
    from rich.console import Console
    from rich.table import Table
    from ts3stats.mapper import voice_clients

    collector = _connect(ctx)
    try:
        servers = collector.servers()
    except CollectorError as e:
        log.error("Scan failed: %s", e)
        raise SystemExit(1)
    finally:
        collector.close()

    console = Console()
    if not servers:
        console.print("\n[dim]No virtual servers found.[/dim]\n")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Port", justify="right")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Clients", justify="right")
    table.add_column("Channels", justify="right")
    table.add_column("Ping", justify="right")
    table.add_column("Loss", justify="right")

    for s in servers:
        color = "green" if s.online else "red"
        table.add_row(
            str(s.id),
            str(s.port),
            s.name,
            f"[{color}]{s.status or 'unknown'}[/{color}]",
            f"{voice_clients(s)}/{s.max_clients}",
            str(s.channels_online),
            f"{s.average_ping:.1f} ms" if s.online else "-",
            f"{s.packet_loss_total * 100:.2f}%" if s.online else "-",
        )
    console.print(table)


if __name__ == "__main__":
    cli()
