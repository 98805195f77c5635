"""Main module for cli tool."""

from __future__ import annotations

import logging
import sys
from contextlib import AsyncExitStack
from typing import Any

import asyncclick as click
from rich.logging import RichHandler

from netupgrade.config import DEFAULT_CONFIG_PATH, ConfigStore, load_config
from netupgrade.device import HttpDeviceClient
from netupgrade.orchestrator import UpgradeEvent, UpgradeOrchestrator
from netupgrade.watcher import ConfigWatcher

from .common import CatchAllExceptions, echo, json_formatter_cb, pass_store


@click.group(
    invoke_without_command=True,
    cls=CatchAllExceptions(click.Group),
    result_callback=json_formatter_cb,
)
@click.option(
    "-c",
    "--config",
    envvar="NETUPGRADE_CONFIG",
    default=DEFAULT_CONFIG_PATH,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Configuration file with base_url, token and os_file_path.",
)
@click.option(
    "--timeout",
    envvar="NETUPGRADE_TIMEOUT",
    default=None,
    type=float,
    help="Total timeout in seconds for each device request. "
    "Defaults to the http library default.",
)
@click.option(
    "-v",
    "--verbose",
    envvar="NETUPGRADE_VERBOSE",
    default=False,
    is_flag=True,
    help="Be more verbose on output",
)
@click.option(
    "-d",
    "--debug",
    envvar="NETUPGRADE_DEBUG",
    default=False,
    is_flag=True,
    help="Print debug output",
)
@click.option(
    "--json/--no-json",
    envvar="NETUPGRADE_JSON",
    default=False,
    is_flag=True,
    help="Output the result as JSON.",
)
@click.version_option(package_name="python-netupgrade")
@click.pass_context
async def cli(ctx, config, timeout, verbose, debug, json):
    """Upgrade the operating system of a network device."""
    # no need to perform any checks if we are just displaying the help
    if "--help" in sys.argv:
        # Context object is required to avoid crashing on sub-groups
        ctx.obj = object()
        return

    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(show_time=False)],
    )

    echo(f"Loading configuration from {config}")
    ctx.obj = ConfigStore(load_config(config))

    if ctx.invoked_subcommand is None:
        return await ctx.invoke(upgrade)


@cli.command()
@click.option(
    "--poll-interval",
    default=UpgradeOrchestrator.POLL_INTERVAL,
    type=float,
    show_default=True,
    help="Seconds to wait between upgrade status checks.",
)
@click.option(
    "--quiet-period",
    default=ConfigWatcher.DEFAULT_QUIET_PERIOD,
    type=float,
    show_default=True,
    help="Seconds the configuration file must stay unchanged before reloading.",
)
@click.option(
    "--strict-status/--no-strict-status",
    default=False,
    help="Fail when the device answers with a non-2xx status.",
)
@click.option(
    "--follow-config-changes",
    is_flag=True,
    default=False,
    help="Rebind to new connection settings when the configuration changes.",
)
@click.option(
    "--watch/--no-watch",
    default=True,
    help="Reload the configuration file when it changes.",
)
@pass_store
@click.pass_context
async def upgrade(
    ctx,
    store: ConfigStore,
    poll_interval: float,
    quiet_period: float,
    strict_status: bool,
    follow_config_changes: bool,
    watch: bool,
) -> dict[str, Any]:
    """Upload the OS image, run the upgrade and report the versions."""
    root_params = ctx.find_root().params

    async def _progress(event: UpgradeEvent) -> None:
        echo(event.message)

    orchestrator = UpgradeOrchestrator(
        store,
        client_factory=lambda config: HttpDeviceClient.from_config(
            config, timeout=root_params["timeout"], strict_status=strict_status
        ),
        poll_interval=poll_interval,
        progress_cb=_progress,
        follow_config_changes=follow_config_changes,
    )

    async with AsyncExitStack() as stack:
        if watch:
            await stack.enter_async_context(
                ConfigWatcher(store, root_params["config"], quiet_period=quiet_period)
            )
        session = await orchestrator.run()

    echo(
        f"[bold]Upgraded from {session.current_version} "
        f"to {session.final_version}[/bold]"
    )
    return session.to_dict()


@cli.command()
@pass_store
@click.pass_context
async def version(ctx, store: ConfigStore) -> dict[str, str]:
    """Print the OS version running on the device."""
    timeout = ctx.find_root().params["timeout"]
    async with HttpDeviceClient.from_config(store.read(), timeout=timeout) as dev:
        current = await dev.get_current_version()
    echo(f"Current OS version: {current}")
    return {"version": current}


@cli.command()
@pass_store
@click.pass_context
async def status(ctx, store: ConfigStore) -> dict[str, bool]:
    """Print whether the device reports the upgrade as completed."""
    timeout = ctx.find_root().params["timeout"]
    async with HttpDeviceClient.from_config(store.read(), timeout=timeout) as dev:
        completed = await dev.check_upgrade_status()
    echo(f"Upgrade completed: {completed}")
    return {"completed": completed}
