"""CLI commands for seat-monitor."""

import click


@click.group()
@click.version_option()
def main() -> None:
    """Watch Ticketmaster events for seats that become available."""
    pass


@main.command()
def tui() -> None:
    """Launch interactive dashboard."""
    from seat_monitor.config import Config
    from seat_monitor.tui import run_tui

    config = Config.load()
    run_tui(config)


@main.command()
def events() -> None:
    """List monitored events stored on this machine."""
    from seat_monitor.config import Config
    from seat_monitor.storage import StorageError, load_events

    config = Config.load()

    if not config.db_path.exists():
        click.echo("No events stored. Add one with 'seat-monitor tui'.")
        return

    try:
        stored = load_events(config.db_path)
    except StorageError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if not stored:
        click.echo("No events stored.")
        return

    click.echo(f"{'ID':<20} {'Status':<11} {'Added':<20} Name")
    click.echo("-" * 75)
    for event in stored:
        added = event.added_at.replace("T", " ")[:19]
        click.echo(f"{event.id:<20} {event.status.value:<11} {added:<20} {event.name}")
        click.echo(f"{'':<20} {event.url}")


@main.command()
def status() -> None:
    """Show the backend's connection status for every event."""
    import asyncio

    from seat_monitor.api import BackendClient, BackendError
    from seat_monitor.config import Config
    from seat_monitor.formatting import format_link_status, format_time
    from seat_monitor.storage import StorageError, load_events

    config = Config.load()

    async def fetch():
        async with BackendClient(config.backend) as api:
            return await api.get_connection_statuses()

    try:
        statuses = asyncio.run(fetch())
    except BackendError as e:
        click.echo(f"Backend: unreachable at {config.backend.http_url} ({e})")
        raise SystemExit(1)

    click.echo(f"Backend: {config.backend.http_url}")
    if not statuses:
        click.echo("No events monitored by the backend.")
        return

    names: dict[str, str] = {}
    if config.db_path.exists():
        try:
            names = {e.id: e.name for e in load_events(config.db_path)}
        except StorageError:
            pass

    click.echo(f"\nConnection statuses: {len(statuses)}")
    for event_id, conn in statuses.items():
        name = names.get(event_id, event_id)
        click.echo(
            f"  - {name}: {format_link_status(conn.status)} "
            f"({conn.message or 'no message'}, {format_time(conn.timestamp)})"
        )


@main.command()
@click.argument("event_id")
@click.option("--window", "-w", default=None, type=float, help="Grouping window in seconds")
def notifications(event_id: str, window: float | None) -> None:
    """Show stored seat notifications for an event, grouped by time."""
    import asyncio

    from seat_monitor.aggregator import group_updates
    from seat_monitor.api import BackendClient, BackendError
    from seat_monitor.config import Config
    from seat_monitor.formatting import format_time, group_title, seat_row, seats_by_section

    config = Config.load()
    if window is None:
        window = config.notifications.group_window

    async def fetch():
        async with BackendClient(config.backend) as api:
            return await api.get_notifications(event_id)

    try:
        updates = asyncio.run(fetch())
    except BackendError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    groups = group_updates(updates, window)
    if not groups:
        click.echo(f"No notifications for {event_id}.")
        return

    for group in groups:
        click.echo(f"[{format_time(group.timestamp)}] {group_title(group)}")
        for seats in seats_by_section(group.seats).values():
            section, row = seat_row(seats[0])[:2]
            click.echo(f"  Section {section}, row {row} ({len(seats)})")
            for seat in seats:
                _, _, place, price, description = seat_row(seat)
                click.echo(f"    seat {place:<5} {price:>10}  {description}")


@main.command()
@click.argument("event_id")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
def clear(event_id: str, force: bool) -> None:
    """Delete the backend's notification history for an event."""
    import asyncio

    from seat_monitor.api import BackendClient, BackendError
    from seat_monitor.config import Config

    config = Config.load()

    if not force:
        click.confirm(f"Clear all notifications for {event_id}?", abort=True)

    async def delete():
        async with BackendClient(config.backend) as api:
            return await api.delete_notifications(event_id)

    try:
        message = asyncio.run(delete())
    except BackendError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    click.echo(message)


@main.group()
def proxies() -> None:
    """Manage the backend's proxy pool."""
    pass


def _run_proxy_call(method: str, *args):
    """Run one BackendClient proxy method, exiting on failure."""
    import asyncio

    from seat_monitor.api import BackendClient, BackendError
    from seat_monitor.config import Config

    config = Config.load()

    async def call():
        async with BackendClient(config.backend) as api:
            return await getattr(api, method)(*args)

    try:
        return asyncio.run(call())
    except BackendError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@proxies.command("list")
def proxies_list() -> None:
    """Show configured proxies."""
    pool = _run_proxy_call("get_proxies")
    if not pool:
        click.echo("No proxies configured.")
        return
    click.echo(f"Proxies: {len(pool)}")
    for proxy in pool:
        click.echo(f"  {proxy}")


@proxies.command("set")
@click.argument("file", type=click.File("r"))
def proxies_set(file) -> None:
    """Replace the proxy pool with the lines of FILE ('-' for stdin)."""
    lines = file.read().splitlines()
    click.echo(_run_proxy_call("save_proxies", lines))


@proxies.command("clear")
@click.confirmation_option(prompt="Remove all proxies?")
def proxies_clear() -> None:
    """Remove every proxy."""
    click.echo(_run_proxy_call("clear_proxies"))


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    from seat_monitor.config import Config

    cfg = Config.load()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[backend]")
    click.echo(f"  host = {cfg.backend.host}")
    click.echo(f"  port = {cfg.backend.port}")
    click.echo(f"  ws_path = {cfg.backend.ws_path}")
    click.echo(f"  request_timeout = {cfg.backend.request_timeout}")
    click.echo()
    click.echo("[reconnect]")
    click.echo(f"  initial_delay = {cfg.reconnect.initial_delay}")
    click.echo(f"  max_delay = {cfg.reconnect.max_delay}")
    click.echo(f"  multiplier = {cfg.reconnect.multiplier}")
    click.echo(f"  max_attempts = {cfg.reconnect.max_attempts}")
    click.echo()
    click.echo("[heartbeat]")
    click.echo(f"  interval = {cfg.heartbeat.interval}")
    click.echo(f"  timeout = {cfg.heartbeat.timeout}")
    click.echo()
    click.echo("[notifications]")
    click.echo(f"  log_capacity = {cfg.notifications.log_capacity}")
    click.echo(f"  group_window = {cfg.notifications.group_window}")


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    from seat_monitor.config import Config

    cfg = Config.load()

    # Create config if it doesn't exist
    if not cfg.config_path.exists():
        cfg.save()
        click.echo(f"Created default config at {cfg.config_path}")

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from seat_monitor.config import Config

    cfg = Config()
    cfg.save()
    click.echo(f"Config reset to defaults at {cfg.config_path}")
