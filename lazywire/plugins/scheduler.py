"""Activation scheduler: decides when each descriptor materializes.

Everything runs synchronously on the host's main loop. Immediate descriptors
materialize during ``startup()``; lazy ones install lightweight triggers
(event subscriptions, stub commands, stub key bindings) that materialize the
descriptor on first use. Dependencies always materialize first.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict

from lazywire.core.events import (
    FILE_TYPE,
    PLUGIN_ACTIVE,
    PLUGIN_BUILT,
    PLUGIN_FAILED,
    STARTUP_DONE,
    VERY_LAZY,
    VIM_ENTER,
    Event,
)
from lazywire.exceptions import (
    ActivationFailureError,
    BuildError,
    ConfigError,
    LazywireError,
    SetupFailureError,
)
from lazywire.plugins.base import (
    OnCommand,
    OnEvent,
    OnFiletype,
    OnKeys,
    PluginDescriptor,
    PluginState,
)
from lazywire.plugins.setup import SetupInvoker

if TYPE_CHECKING:
    from lazywire.core.context import EditorContext
    from lazywire.editor.notation import CommandInvocation
    from lazywire.plugins.build import BuildTracker
    from lazywire.plugins.loader import PluginLoader

logger = structlog.get_logger()


class ActivationPhase(Enum):
    SETUP_STARTED = "setup_started"
    ACTIVE = "active"
    FAILED = "failed"


class ActivationRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    seq: int
    identifier: str
    phase: ActivationPhase
    reason: str | None = None


class ActivationScheduler:
    def __init__(
        self,
        context: EditorContext,
        loader: PluginLoader,
        invoker: SetupInvoker | None = None,
        builds: BuildTracker | None = None,
    ) -> None:
        self._ctx = context
        self._loader = loader
        self._invoker = invoker or SetupInvoker()
        self._builds = builds
        self._seq = itertools.count(1)
        self._history: list[ActivationRecord] = []
        self._event_waiters: dict[str, list[str]] = {}
        self._filetype_waiters: dict[str, list[str]] = {}
        self._subscribed: set[str] = set()
        self._started = False
        context.keymap.set_activator(self.load)

    @property
    def history(self) -> list[ActivationRecord]:
        return list(self._history)

    @property
    def started(self) -> bool:
        return self._started

    def is_active(self, identifier: str) -> bool:
        descriptor = self._ctx.registry.get(identifier)
        return descriptor is not None and descriptor.is_active

    # --- Startup ---

    def startup(self) -> None:
        """Install triggers and materialize immediate descriptors.

        Configuration errors (unknown or cyclic dependencies) are raised before
        anything materializes.
        """
        if self._started:
            logger.warning("scheduler_already_started")
            return
        registry = self._ctx.registry
        order = registry.resolve_order()
        self._started = True

        descriptors = [registry.get(i) for i in order]
        enabled = [d for d in descriptors if d is not None and d.enabled]
        for descriptor in enabled:
            self._install_triggers(descriptor)

        immediate = [d.identifier for d in enabled if not d.is_lazy]
        for identifier in immediate:
            self.load(identifier)

        logger.info(
            "scheduler_started",
            plugin_count=len(descriptors),
            immediate=len(immediate),
            active=sum(1 for d in enabled if d.is_active),
        )
        bus = self._ctx.event_bus
        bus.fire(VIM_ENTER)
        bus.fire(VERY_LAZY)
        bus.fire(STARTUP_DONE, active=[d.identifier for d in enabled if d.is_active])

    def _install_triggers(self, descriptor: PluginDescriptor) -> None:
        # Keys are bound for every enabled descriptor; they double as the
        # real bindings once the owner is active.
        for trigger in descriptor.triggers_of(OnKeys):
            for key in trigger.keys:
                self._ctx.keymap.bind(
                    key.modes,
                    key.sequence,
                    key.action,
                    owner=descriptor.identifier,
                    desc=key.desc,
                    noremap=key.noremap,
                    silent=key.silent,
                    expr=key.expr,
                    nowait=key.nowait,
                )

        if not descriptor.is_lazy:
            return

        for trigger in descriptor.triggers_of(OnEvent):
            for name in trigger.names:
                self._wait_for_event(name, descriptor.identifier)
        for trigger in descriptor.triggers_of(OnFiletype):
            for name in trigger.names:
                self._wait_for_filetype(name, descriptor.identifier)
        self._install_command_stubs(descriptor)

    def _wait_for_event(self, name: str, identifier: str) -> None:
        self._subscribe(name, self._on_event)
        self._event_waiters.setdefault(name, []).append(identifier)

    def _wait_for_filetype(self, filetype: str, identifier: str) -> None:
        self._subscribe(FILE_TYPE, self._on_filetype)
        self._filetype_waiters.setdefault(filetype, []).append(identifier)

    def _subscribe(self, name: str, handler: Callable[[Event], None]) -> None:
        if name not in self._subscribed:
            self._subscribed.add(name)
            self._ctx.event_bus.subscribe(name, handler)

    def _unsubscribe(self, name: str, handler: Callable[[Event], None]) -> None:
        if name in self._subscribed:
            self._subscribed.discard(name)
            self._ctx.event_bus.unsubscribe(name, handler)

    def _install_command_stubs(self, descriptor: PluginDescriptor) -> None:
        identifier = descriptor.identifier

        def _stub(invocation: CommandInvocation) -> Any:
            return self._forward_command(identifier, invocation)

        for trigger in descriptor.triggers_of(OnCommand):
            for name in trigger.names:
                self._ctx.commands.define(
                    name, _stub, owner=identifier, desc=f"Load {identifier}", stub=True
                )

    # --- Trigger handlers ---

    def _on_event(self, event: Event) -> None:
        for identifier in self._event_waiters.pop(event.name, []):
            logger.debug("plugin_event_trigger", identifier=identifier, event_name=event.name)
            self._load_waiter(self._event_waiters, event.name, identifier)
        if not self._event_waiters.get(event.name):
            self._unsubscribe(event.name, self._on_event)

    def _on_filetype(self, event: Event) -> None:
        filetype = event.data.get("filetype")
        if not filetype:
            return
        for identifier in self._filetype_waiters.pop(filetype, []):
            logger.debug("plugin_filetype_trigger", identifier=identifier, filetype=filetype)
            self._load_waiter(self._filetype_waiters, filetype, identifier)
        if not any(self._filetype_waiters.values()):
            self._unsubscribe(FILE_TYPE, self._on_filetype)

    def _load_waiter(self, waiters: dict[str, list[str]], key: str, identifier: str) -> None:
        if self.load(identifier):
            return
        descriptor = self._ctx.registry.get(identifier)
        # A dependency was still materializing; wait for the next firing.
        if (
            descriptor is not None
            and descriptor.enabled
            and descriptor.state is PluginState.REGISTERED
        ):
            logger.debug("plugin_trigger_requeued", identifier=identifier, trigger=key)
            waiters.setdefault(key, []).append(identifier)

    def _forward_command(self, identifier: str, invocation: CommandInvocation) -> Any:
        notifier = self._ctx.notifier
        if not self.load(identifier):
            notifier.error(str(ActivationFailureError(identifier)), identifier=identifier)
            return None
        command = self._ctx.commands.get(invocation.name)
        if command is None or command.stub:
            notifier.error(
                str(
                    ActivationFailureError(
                        identifier, f"command {invocation.name} was not defined"
                    )
                ),
                identifier=identifier,
            )
            return None
        try:
            return command.handler(invocation)
        except LazywireError as e:
            notifier.error(str(e), identifier=identifier)
        except Exception as e:
            logger.exception("command_failed", name=invocation.name, identifier=identifier)
            notifier.error(f"{invocation.name} failed: {e}", identifier=identifier)
        return None

    # --- Materialization ---

    def load(self, identifier: str) -> bool:
        """Materialize *identifier* and its dependencies. Returns whether it is active."""
        registry = self._ctx.registry
        descriptor = registry.get(identifier)
        if descriptor is None:
            logger.error("plugin_unknown", identifier=identifier)
            return False
        if descriptor.state is PluginState.ACTIVE:
            return True
        if descriptor.state is PluginState.FAILED:
            logger.debug("plugin_previously_failed", identifier=identifier)
            return False
        if descriptor.state is PluginState.MATERIALIZING:
            logger.warning("plugin_load_reentrant", identifier=identifier)
            return False

        try:
            chain = registry.dependency_chain(identifier)
        except ConfigError as e:
            self._fail(descriptor, str(e))
            return False

        for dep_id in chain:
            dep = registry.get(dep_id)
            if dep is None or dep.state in (PluginState.ACTIVE, PluginState.FAILED):
                continue
            if dep.state is PluginState.MATERIALIZING:
                logger.warning("plugin_load_reentrant", identifier=dep_id, requested=identifier)
                return False
            self._materialize(dep)

        return descriptor.is_active

    def _materialize(self, descriptor: PluginDescriptor) -> bool:
        registry = self._ctx.registry
        unmet = []
        for dep_id in descriptor.dependencies:
            dep = registry.get(dep_id)
            if dep is None or not dep.is_active:
                unmet.append(dep_id)
        if unmet:
            self._fail(
                descriptor,
                f"{descriptor.identifier}: dependencies not active: {', '.join(unmet)}",
            )
            return False
        if not descriptor.enabled:
            logger.info("plugin_disabled", identifier=descriptor.identifier)
            return False

        descriptor.state = PluginState.MATERIALIZING
        self._record(descriptor.identifier, ActivationPhase.SETUP_STARTED)
        self._remove_command_stubs(descriptor)
        try:
            module = self._loader.load(descriptor)
            descriptor.module = module
            self._define_module_commands(descriptor, module)
            self._invoker.apply(descriptor, module)
        except Exception as e:
            error = (
                e
                if isinstance(e, SetupFailureError)
                else SetupFailureError(descriptor.identifier, str(e) or type(e).__name__)
            )
            self._fail(descriptor, str(error))
            # Stubs keep reporting the failure instead of half-set-up commands.
            if descriptor.is_lazy:
                self._install_command_stubs(descriptor)
            return False

        descriptor.state = PluginState.ACTIVE
        self._record(descriptor.identifier, ActivationPhase.ACTIVE)
        logger.info("plugin_active", identifier=descriptor.identifier)
        self._ctx.event_bus.fire(PLUGIN_ACTIVE, identifier=descriptor.identifier)
        self._run_build(descriptor)
        return True

    def _remove_command_stubs(self, descriptor: PluginDescriptor) -> None:
        commands = self._ctx.commands
        for trigger in descriptor.triggers_of(OnCommand):
            for name in trigger.names:
                command = commands.get(name)
                if (
                    command is not None
                    and command.stub
                    and command.owner == descriptor.identifier
                ):
                    commands.remove(name)

    def _define_module_commands(self, descriptor: PluginDescriptor, module: Any) -> None:
        defined = getattr(module, "commands", None)
        if not isinstance(defined, Mapping):
            return
        for name, handler in defined.items():
            self._ctx.commands.define(name, handler, owner=descriptor.identifier)

    def _run_build(self, descriptor: PluginDescriptor) -> None:
        if self._builds is None:
            return
        try:
            if self._builds.run(descriptor):
                self._ctx.event_bus.fire(PLUGIN_BUILT, identifier=descriptor.identifier)
        except BuildError as e:
            self._ctx.notifier.error(str(e), identifier=descriptor.identifier)

    def _fail(self, descriptor: PluginDescriptor, reason: str) -> None:
        descriptor.state = PluginState.FAILED
        descriptor.error = reason
        self._record(descriptor.identifier, ActivationPhase.FAILED, reason)
        logger.error("plugin_failed", identifier=descriptor.identifier, reason=reason)
        self._ctx.notifier.error(reason, identifier=descriptor.identifier)
        self._ctx.event_bus.fire(
            PLUGIN_FAILED, identifier=descriptor.identifier, reason=reason
        )

    def _record(
        self, identifier: str, phase: ActivationPhase, reason: str | None = None
    ) -> None:
        self._history.append(
            ActivationRecord(
                seq=next(self._seq), identifier=identifier, phase=phase, reason=reason
            )
        )
