"""CLI entry point for lazywire, a minimal interactive host loop."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

import structlog

from lazywire.app import build_runtime
from lazywire.core.config import LazywireConfig
from lazywire.exceptions import ConfigError, LazywireError

if TYPE_CHECKING:
    from lazywire.app import Runtime
    from lazywire.core.notify import Notification

logger = structlog.get_logger()

HELP = """\
:Command args        run an editor command
key <mode> <keys>    feed a key sequence, e.g. key n <leader>lg
open <path> [ft]     open a buffer, optionally with a filetype
event <Name>         fire an editor event
load <id>            materialize a plugin explicitly
status               show plugin states
keys [mode]          list key bindings
help                 show this help"""


def _print_notification(note: Notification) -> None:
    print(f"[{note.level.value}] {note.message}")


def format_status(runtime: Runtime) -> str:
    lines = []
    for descriptor in runtime.context.registry.descriptors:
        line = f"{descriptor.state.value:<13} {descriptor.identifier}"
        if descriptor.error:
            line += f"  ({descriptor.error})"
        lines.append(line)
    return "\n".join(lines) or "no plugins registered"


def format_keys(runtime: Runtime, mode: str | None = None) -> str:
    lines = []
    for binding in runtime.context.keymap.bindings(mode):
        owner = f" [{binding.owner}]" if binding.owner else ""
        lines.append(f"{binding.mode} {binding.sequence!r:<16} {binding.desc or ''}{owner}")
    return "\n".join(lines) or "no key bindings"


def handle_line(runtime: Runtime, line: str) -> str | None:
    """Execute one line of host input and return text to display."""
    ctx = runtime.context
    text = line.strip()
    if text.startswith(":"):
        try:
            result = ctx.commands.execute(text)
        except LazywireError as e:
            return str(e)
        except Exception as e:
            logger.exception("command_failed", command_line=text)
            ctx.notifier.error(f"{text} failed: {e}")
            return None
        return None if result is None else str(result)

    head, _, rest = text.partition(" ")
    rest = rest.strip()
    if head == "key":
        mode, _, sequence = rest.partition(" ")
        if not sequence:
            return "usage: key <mode> <keys>"
        try:
            result = ctx.keymap.feed(mode, sequence)
        except ValueError as e:
            return str(e)
        return None if result is None else str(result)
    if head == "open":
        path, _, filetype = rest.partition(" ")
        if not path:
            return "usage: open <path> [filetype]"
        ctx.open_buffer(path, filetype.strip() or None)
        return None
    if head == "event":
        if not rest:
            return "usage: event <Name>"
        ctx.event_bus.fire(rest)
        return None
    if head == "load":
        if not rest:
            return "usage: load <id>"
        return "active" if runtime.scheduler.load(rest) else "not active"
    if head == "status":
        return format_status(runtime)
    if head == "keys":
        return format_keys(runtime, rest or None)
    if head == "help":
        return HELP
    return f"unknown input: {text!r} (try 'help')"


def _run_cli(runtime: Runtime) -> None:
    print(f"lazywire ready: {len(runtime.context.registry)} plugins")
    print("Type 'help' for commands (Ctrl+D to exit):\n")
    try:
        while True:
            try:
                line = input("> ")
            except EOFError:
                break

            if not line.strip():
                continue

            output = handle_line(runtime, line)
            if output:
                print(output)
    except KeyboardInterrupt:
        pass
    finally:
        logger.info("cli_shutting_down")
        print("\nBye.")


def main() -> None:
    try:
        config = LazywireConfig()
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print("Check LAZYWIRE_* variables or the .env file.", file=sys.stderr)
        sys.exit(1)

    try:
        runtime = build_runtime(config, sink=_print_notification)
        runtime.scheduler.startup()
    except ConfigError as e:
        print(f"Plugin configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    _run_cli(runtime)


def run() -> None:
    main()
