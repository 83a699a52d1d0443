"""Process-scoped context shared by every component of one editor session."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from lazywire.core.config import LazywireConfig
from lazywire.core.events import BUF_ENTER, BUF_READ_POST, FILE_TYPE, EventBus
from lazywire.core.notify import NotificationSink, Notifier
from lazywire.editor.commands import CommandRegistry
from lazywire.editor.keymap import Keymap
from lazywire.plugins.registry import PluginRegistry


class EditorContext(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    config: LazywireConfig
    event_bus: EventBus
    commands: CommandRegistry
    keymap: Keymap
    notifier: Notifier
    registry: PluginRegistry

    @classmethod
    def create(
        cls, config: LazywireConfig, sink: NotificationSink | None = None
    ) -> EditorContext:
        notifier = Notifier(sink)
        commands = CommandRegistry()
        keymap = Keymap(
            commands,
            notifier,
            leader=config.leader,
            noremap=config.keymap_noremap,
            silent=config.keymap_silent,
        )
        return cls(
            config=config,
            event_bus=EventBus(),
            commands=commands,
            keymap=keymap,
            notifier=notifier,
            registry=PluginRegistry(),
        )

    def open_buffer(self, path: str, filetype: str | None = None) -> None:
        """Fire the events the host emits when a buffer is read and shown."""
        self.event_bus.fire(BUF_READ_POST, path=path)
        self.event_bus.fire(BUF_ENTER, path=path)
        if filetype:
            self.event_bus.fire(FILE_TYPE, path=path, filetype=filetype)
