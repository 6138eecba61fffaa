from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

import click

from clickpath.channel import CommandChannel
from clickpath.errors import ClickpathError, StructuralConflict
from clickpath.flows import FlowCatalog, FlowRunner, RunnerConfig
from clickpath.registry import format_path, validate_name
from clickpath.session import Session

logger = logging.getLogger(__name__)

CANCEL = "cancel"

USAGE = """\
=== clickpath ===

Quick Start Example:
  /> mkcontext chrome      # Create a chrome context
  /> record                # Record click (menu for navigation)
  /> cd chrome             # Enter chrome context
  /chrome> record          # Record clicks within chrome
  /chrome> cd /            # Go back to root
  /> run my-flow           # Execute an automation

Commands:
  record          - Record click with countdown
  recordfast/rf   - Record click with short countdown
  ls              - List contexts and clicks in current context
  cd <path>       - Change context (cd .., cd /, cd chrome)
  mkcontext <n>   - Create new context
  move <i> <p>    - Move item to target parent context
  rename <o> <n>  - Rename click or context
  run <flow>      - Execute flow from flows/ directory
  flows           - List available flows
  help / ?        - Show this help
  clear / cls     - Clear screen and show this help
  exit            - Quit

Tips:
  - Clicks are always saved in current context
  - Type "cancel" during prompts to abort
  - Clicks can access parent and sibling contexts (scope chain)
"""


def _cancelled(answer: str | None) -> bool:
    return not answer or answer.strip().lower() == CANCEL


class OperatorShell:
    """
    Line-oriented operator surface. Each command maps onto one Session or FlowRunner call.

    Registry errors are reported and the shell keeps running.
    """

    def __init__(
        self,
        session: Session,
        channel: CommandChannel,
        catalog: FlowCatalog,
        logs_dir: Path,
        *,
        runner_cfg: RunnerConfig = RunnerConfig(),
        countdown_s: int = 5,
        fast_countdown_s: int = 2,
        ask: Callable[[str], str] = input,
        echo: Callable[[str], None] = print,
        sleep: Callable[[float], None] = time.sleep,
        clear: Callable[[], None] = click.clear,
    ) -> None:
        self.session = session
        self.channel = channel
        self.catalog = catalog
        self.logs_dir = logs_dir
        self.runner_cfg = runner_cfg
        self.countdown_s = countdown_s
        self.fast_countdown_s = fast_countdown_s
        self.ask = ask
        self.echo = echo
        self.sleep = sleep
        self.clear = clear

    @property
    def prompt(self) -> str:
        return self.session.prompt

    def handle(self, line: str) -> bool:
        """Run one command line. Returns False when the operator asked to exit."""
        cmd, *args = line.strip().split(" ") if line.strip() else ("",)
        args = [a for a in args if a]
        try:
            return self._dispatch(cmd, args)
        except ClickpathError as e:
            self.echo(f"Error: {e}")
            return True

    def _dispatch(self, cmd: str, args: list[str]) -> bool:
        if cmd == "record":
            self.record_click(self.countdown_s)
        elif cmd in ("recordfast", "rf"):
            self.record_click(self.fast_countdown_s)
        elif cmd == "ls":
            self.list_contents()
        elif cmd == "cd":
            if args:
                self.session.navigate(args[0])
            else:
                self.echo(f"Current context: {self.prompt}")
        elif cmd == "mkcontext":
            name = args[0] if args else self.ask('Context name (or "cancel"): ')
            if _cancelled(name):
                self.echo("Context creation cancelled")
            else:
                self.make_context(name.strip())
        elif cmd == "move":
            if len(args) >= 2:
                kind, target = self.session.move(args[0], " ".join(args[1:]))
                self.echo(f"Moved {kind} '{args[0]}' to {format_path(target)}")
            else:
                self.echo("Usage: move <item> <target-parent>\nExample: move new-tab /chrome/tabs")
        elif cmd == "rename":
            if len(args) >= 2:
                new = " ".join(args[1:])
                kind = self.session.rename(args[0], new)
                self.echo(f"Renamed {kind} '{args[0]}' to '{new}'")
            else:
                self.echo("Usage: rename <old-name> <new-name>\nExample: rename new-tab create-tab")
        elif cmd == "run":
            if args:
                self.run_flow(args[0])
            else:
                self.echo("Usage: run <flow-name>")
                self.list_flows()
        elif cmd == "flows":
            self.list_flows()
        elif cmd in ("help", "?"):
            self.echo(USAGE + f"\nCurrent context: {self.prompt}")
        elif cmd in ("clear", "cls"):
            self.clear()
            self.echo(USAGE)
        elif cmd == "exit":
            return False
        elif cmd:
            self.echo(f"Unknown command: {cmd}\nType \"?\" or \"help\" for usage instructions")
        return True

    def list_contents(self) -> None:
        items = self.session.list_contents()
        if not items:
            self.echo("(empty)")
            return
        self.echo("Contents:")
        for item in items:
            self.echo(f"  {item}")

    def list_flows(self) -> None:
        flows = self.catalog.list_flows()
        self.echo("Available flows:")
        if not flows:
            self.echo("  (no flows found)")
        for name in flows:
            self.echo(f"  {name}")

    def make_context(self, name: str) -> bool:
        created = self.session.make_context(name)
        self.echo(f"Context '{name}' created ({format_path(created)})")
        self.echo(f"Tip: Use 'cd {name}' to enter this context, then 'record' to add clicks")
        return True

    def run_flow(self, name: str) -> bool:
        runner = FlowRunner(
            self.session,
            self.channel,
            self.catalog,
            self.logs_dir,
            cfg=self.runner_cfg,
            acknowledge=lambda message: self.ask(f"{message} (Press Enter to continue)"),
            log=self.echo,
            sleep=self.sleep,
        )
        result = runner.run(name)
        if not result.success:
            self.echo(f"Flow '{name}' failed at step {result.failed_step}: {result.error}")
        self.echo(f"Log: {result.log_dir}")
        return result.success

    def _choose_target(self) -> str | None:
        """Ask where the new click navigates. Returns "" to stay, a path, or None if cancelled."""
        contexts = ["/"] + [format_path(p) for p in self.session.store.iter_context_paths()]
        here = format_path(self.session.current)
        self.echo("\nWhere should this click navigate to?")
        self.echo("  0) Stay in current context (no navigation)")
        for i, ctx in enumerate(contexts, start=1):
            marker = " [current]" if ctx == here else ""
            self.echo(f"  {i}) {ctx}{marker}")
        self.echo(f"  {len(contexts) + 1}) Create new context...")

        choice = self.ask(f'\nEnter your choice (0-{len(contexts) + 1}, or "cancel"): ')
        if _cancelled(choice):
            return None
        try:
            n = int(choice.strip())
        except ValueError:
            self.echo("Invalid choice")
            return None

        if n == 0:
            self.echo("Click will not change context")
            return ""
        if 1 <= n <= len(contexts):
            self.echo(f"Click will navigate to: {contexts[n - 1]}")
            return contexts[n - 1]
        if n == len(contexts) + 1:
            new_name = self.ask('Name for new context (or "cancel"): ')
            if _cancelled(new_name):
                return None
            try:
                created = self.session.make_context(new_name.strip())
            except StructuralConflict as e:
                self.echo(f"Error: {e}")
                return None
            self.echo(f"Click will navigate to new context: {format_path(created)}")
            return format_path(created)
        self.echo("Invalid choice")
        return None

    def record_click(self, delay: int) -> bool:
        """
        Interactive recording. Cancelling at any prompt aborts before a command is sent.
        """
        name = self.ask('Click name (or "cancel"): ')
        if _cancelled(name):
            self.echo("Recording cancelled")
            return False
        name = name.strip()
        validate_name(name)
        if name in self.session.store.node_at(self.session.current).subcontexts:
            raise StructuralConflict(f"'{name}' is already a context here")

        target = self._choose_target()
        if target is None:
            self.echo("Recording cancelled")
            return False

        self.echo(f"\nYou have {delay} seconds to position your mouse...")
        for i in range(delay, 0, -1):
            self.channel.send("showOverlay", text=str(i), duration=900)
            self.echo(f"{i}...")
            self.sleep(1.0)

        self.channel.send("showOverlay", text="RECORDING!", duration=0)
        pos = self.channel.send("getMousePosition")
        x, y = int(pos["x"]), int(pos["y"])
        self.channel.send("showOverlay", text=f"Recorded!\n({x}, {y})", duration=2000)

        self.session.record_click(name, x, y, target or None)
        self.echo(f"\nClick '{name}' saved at ({x}, {y})")
        self.echo(f"Location: {self.prompt}{name}")
        self.echo(f"Navigates to: {target}" if target else "Navigates to: (stays in current context)")
        return True
