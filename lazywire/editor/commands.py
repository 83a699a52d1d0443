"""Editor command registry: the user-facing named command surface."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict

from lazywire.editor.notation import CommandInvocation, is_command_name, parse_command
from lazywire.exceptions import UnknownCommandError

logger = structlog.get_logger()

CommandHandler = Callable[[CommandInvocation], Any]


class Command(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    handler: CommandHandler
    owner: str | None = None
    desc: str = ""
    stub: bool = False


class CommandRegistry:
    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def define(
        self,
        name: str,
        handler: CommandHandler,
        *,
        owner: str | None = None,
        desc: str = "",
        stub: bool = False,
    ) -> Command:
        if not is_command_name(name):
            raise ValueError(f"invalid command name: {name!r}")
        command = Command(name=name, handler=handler, owner=owner, desc=desc, stub=stub)
        replaced = self._commands.get(name)
        self._commands[name] = command
        logger.debug(
            "command_defined",
            name=name,
            owner=owner,
            stub=stub,
            replaced=replaced is not None,
        )
        return command

    def remove(self, name: str) -> bool:
        return self._commands.pop(name, None) is not None

    def get(self, name: str) -> Command | None:
        return self._commands.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    @property
    def names(self) -> list[str]:
        return list(self._commands)

    def run(self, name: str, args: str = "", *, ranged: bool = False) -> Any:
        command = self._commands.get(name)
        if command is None:
            raise UnknownCommandError(f"Not an editor command: {name}")
        return command.handler(CommandInvocation(name=name, args=args, ranged=ranged))

    def execute(self, command_line: str) -> Any:
        """Run a command string such as ``:TimerStart 25`` or ``<cmd>Oil<cr>``."""
        text = command_line.strip()
        invocation = parse_command(text) or parse_command(f":{text}")
        if invocation is None:
            raise UnknownCommandError(f"Not an editor command: {command_line}")
        return self.run(invocation.name, invocation.args, ranged=invocation.ranged)
