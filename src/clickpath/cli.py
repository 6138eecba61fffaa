import logging
import sys

import click

from clickpath.app_data import (
    bootstrap_data_dir,
    get_checkpoints_dir,
    get_flows_dir,
    get_logs_dir,
    get_store_path,
)
from clickpath.errors import ClickpathError
from clickpath.executor import ExecutorHandle, run_executor_process
from clickpath.flows import FlowCatalog, FlowRunner
from clickpath.registry import ContextStore, format_path, parse_path
from clickpath.session import Session
from clickpath.shell import USAGE, OperatorShell
from clickpath.user_config import ResolvedUserConfig, load_user_config


def _load_config() -> ResolvedUserConfig:
    bootstrap_data_dir()
    try:
        return load_user_config()
    except ClickpathError as e:
        raise click.ClickException(str(e))


def _open_session(at: str = "/") -> Session:
    try:
        session = Session(ContextStore.load(get_store_path()))
        session.navigate(format_path(parse_path(at)))
    except ClickpathError as e:
        raise click.ClickException(str(e))
    return session


def _catalog() -> FlowCatalog:
    return FlowCatalog(get_flows_dir(), get_checkpoints_dir())


def _start_executor(cfg: ResolvedUserConfig) -> ExecutorHandle:
    click.echo("Starting automation system...")
    handle = ExecutorHandle.start(cfg.channel)
    try:
        handle.ping()
    except ClickpathError as e:
        handle.close()
        raise click.ClickException(f"Executor not reachable ({cfg.channel.transport} transport): {e}")
    click.echo("System ready!\n")
    return handle


@click.group()
def cli():
    """Record screen clicks into a context tree and replay them as flows."""


@cli.command()
def shell():
    """Interactive recording and replay shell."""
    logging.basicConfig(level=logging.INFO)
    cfg = _load_config()
    session = _open_session()
    with _start_executor(cfg) as handle:
        op = OperatorShell(
            session,
            handle.channel,
            _catalog(),
            get_logs_dir(),
            runner_cfg=cfg.runner,
            countdown_s=cfg.record.countdown_s,
            fast_countdown_s=cfg.record.fast_countdown_s,
            ask=lambda q: click.prompt(q, default="", show_default=False, prompt_suffix=""),
            echo=click.echo,
        )
        click.echo(USAGE)
        while True:
            try:
                line = click.prompt(op.prompt, default="", show_default=False, prompt_suffix="")
            except (EOFError, click.Abort):
                break
            if not op.handle(line):
                break


@cli.command()
@click.argument("flow")
@click.option("--context", "context", default="/", show_default=True, help="Context to start the flow in.")
def run(flow, context):
    """Execute a flow from the flows/ directory."""
    logging.basicConfig(level=logging.INFO)
    cfg = _load_config()
    session = _open_session(context)
    with _start_executor(cfg) as handle:
        runner = FlowRunner(
            session,
            handle.channel,
            _catalog(),
            get_logs_dir(),
            cfg=cfg.runner,
            acknowledge=lambda message: click.prompt(
                f"{message} (Press Enter to continue)", default="", show_default=False, prompt_suffix=""
            ),
            log=click.echo,
        )
        try:
            result = runner.run(flow)
        except ClickpathError as e:
            raise click.ClickException(str(e))

    click.echo(f"Log: {result.log_dir}")
    if not result.success:
        click.echo(f"Flow '{flow}' failed at step {result.failed_step}: {result.error}", err=True)
        sys.exit(1)


@cli.command()
def flows():
    """List available flows."""
    names = _catalog().list_flows()
    if not names:
        click.echo("(no flows found)")
    for name in names:
        click.echo(name)


@cli.command(name="ls")
@click.argument("path", default="/")
def ls_cmd(path):
    """List contexts and clicks at PATH."""
    session = _open_session(path)
    items = session.list_contents()
    if not items:
        click.echo("(empty)")
    for item in items:
        click.echo(item)


@cli.command()
@click.argument("name")
@click.option("--at", "at", default="/", show_default=True, help="Parent context.")
def mkcontext(name, at):
    """Create context NAME."""
    session = _open_session(at)
    try:
        created = session.make_context(name)
    except ClickpathError as e:
        raise click.ClickException(str(e))
    click.echo(f"Context created: {format_path(created)}")


@cli.command()
@click.argument("item")
@click.argument("target")
@click.option("--at", "at", default="/", show_default=True, help="Context that currently holds ITEM.")
def move(item, target, at):
    """Move click or context ITEM into TARGET."""
    session = _open_session(at)
    try:
        kind, dest = session.move(item, target)
    except ClickpathError as e:
        raise click.ClickException(str(e))
    click.echo(f"Moved {kind} '{item}' to {format_path(dest)}")


@cli.command()
@click.argument("old")
@click.argument("new")
@click.option("--at", "at", default="/", show_default=True, help="Context that holds OLD.")
def rename(old, new, at):
    """Rename click or context OLD to NEW."""
    session = _open_session(at)
    try:
        kind = session.rename(old, new)
    except ClickpathError as e:
        raise click.ClickException(str(e))
    click.echo(f"Renamed {kind} '{old}' to '{new}'")


@cli.command()
def executor():
    """Run the OS-input executor loop for the file transport."""
    logging.basicConfig(level=logging.INFO)
    cfg = _load_config()
    ch = cfg.channel
    ch.request_path.parent.mkdir(parents=True, exist_ok=True)
    click.echo(f"Executor watching {ch.request_path}")
    try:
        run_executor_process(
            request_path=str(ch.request_path),
            response_path=str(ch.response_path),
            poll_interval_s=ch.poll_interval_s,
        )
    except KeyboardInterrupt:
        click.echo("Executor stopped.")
