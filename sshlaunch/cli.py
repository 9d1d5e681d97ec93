"""
Command line interface for sshlaunch.

Targets are defined in configuration; the CLI can list them, check that a
runtime can be found on one, or launch a payload and bridge the local
terminal to it.
"""

# pylint: disable=raise-missing-from
import sys
from typing import Optional

import click
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from .bootstrap import SSHLauncher
from .channel import pipe_binder
from .config import ConfigLoadError, config_manager, setup_logging
from .listener import FileListener, StreamListener
from .payload import FilePayloadSource
from .transport import registry

console = Console()


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v, -vv, -vvv)")
@click.pass_context
def sshlaunch(ctx, version, verbose):
    """
    sshlaunch - start a worker on a remote host over SSH

    Check that a target has a usable runtime:
        sshlaunch check build-node

    Launch a payload and talk to it over stdin/stdout:
        sshlaunch launch build-node --payload agent.jar --log build-node.log
    """
    if version:
        from . import __version__

        click.echo(f"sshlaunch {__version__}")
        ctx.exit()

    setup_logging(verbose or None)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)


def _load_target(target: str):
    try:
        return config_manager.get_target(target)
    except ConfigLoadError as e:
        raise click.ClickException(str(e))


def _listener(log_file: Optional[str]):
    if log_file:
        return FileListener(log_file)
    return StreamListener(sys.stderr)


@sshlaunch.command(name="targets")
def list_targets():
    """List configured launch targets."""
    names = config_manager.list_targets()
    if not names:
        click.echo("No targets configured")
        return

    table = Table(title="Launch Targets")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Host", style="green")
    table.add_column("User", style="yellow")
    table.add_column("Remote FS", style="magenta")

    for name in names:
        definition = config_manager.get_target_definition(name) or {}
        host = definition.get("host", "")
        port = definition.get("port")
        table.add_row(
            name,
            f"{host}:{port}" if port else host,
            definition.get("username") or "-",
            definition.get("remote_fs", ""),
        )
    console.print(table)


@sshlaunch.group(name="config")
def config_cli():
    """Inspect sshlaunch configuration."""
    pass


@config_cli.command(name="show")
def show_config():
    """Show the merged configuration with secrets masked."""
    yaml_str = config_manager.masked_yaml()
    if not yaml_str.strip() or yaml_str.strip() == "{}":
        click.echo("No configuration found")
        return
    console.print(Syntax(yaml_str, "yaml", theme="monokai", line_numbers=True))


@config_cli.command(name="files")
def config_files():
    """List all configuration files and their locations."""
    table = Table(title="Configuration Files")
    table.add_column("Type", style="cyan", no_wrap=True)
    table.add_column("File Path", style="green")
    table.add_column("Status", style="yellow")

    for name, config_file in config_manager.get_config_files().items():
        status = "exists" if config_file.exists() else "not found"
        table.add_row(name, str(config_file), status)
    console.print(table)


@sshlaunch.command()
@click.argument("target")
@click.option("--log", "log_file", type=click.Path(dir_okay=False), help="Append progress to this file")
def check(target: str, log_file: Optional[str]):
    """Connect to TARGET and report the runtime that would be used."""
    request, node = _load_target(target)
    listener = _listener(log_file)
    try:
        launcher = SSHLauncher(request, config_manager.settings())
        result = launcher.check(node, listener)
    finally:
        listener.close()

    if not result.success:
        raise click.ClickException(f"Check of {target} failed: {result.error}")
    console.print(f"[green]{target}[/green]: runtime [bold]{result.runtime}[/bold]")
    console.print(f"Working directory: {result.working_directory}")


@sshlaunch.command()
@click.argument("target")
@click.option(
    "--payload",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Worker payload to copy and run",
)
@click.option("--log", "log_file", type=click.Path(dir_okay=False), help="Append progress to this file")
@click.pass_context
def launch(ctx, target: str, payload: str, log_file: Optional[str]):
    """Launch the payload on TARGET and bridge stdin/stdout to it."""
    request, node = _load_target(target)
    listener = _listener(log_file)
    binder = pipe_binder(sys.stdin.buffer, sys.stdout.buffer)
    launcher = SSHLauncher(
        request, config_manager.settings(), FilePayloadSource(payload), binder
    )

    try:
        result = launcher.launch(node, listener)
        if not result.success:
            raise click.ClickException(f"Launch on {target} failed: {result.error}")

        try:
            result.channel.join()
        except KeyboardInterrupt:
            result.channel.close()
        launcher.after_disconnect(node, listener)
        exit_status = result.process.exit_status
    finally:
        registry.close_all()
        listener.close()

    if exit_status > 0:
        ctx.exit(exit_status)
