"""Mode-scoped key bindings with lazy owner activation."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict

from lazywire.editor.notation import normalize_modes, normalize_sequence, parse_command
from lazywire.exceptions import ActivationFailureError, LazywireError

if TYPE_CHECKING:
    from lazywire.core.notify import Notifier
    from lazywire.editor.commands import CommandRegistry

logger = structlog.get_logger()

KeyAction = str | Callable[..., Any]
Activator = Callable[[str], bool]

_MAX_REMAP_DEPTH = 20


class KeyBinding(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    mode: str
    sequence: str
    # None marks a pure trigger: the owner is expected to rebind the sequence.
    action: KeyAction | None
    owner: str | None = None
    desc: str | None = None
    noremap: bool = True
    silent: bool = False
    expr: bool = False
    nowait: bool = False


class Keymap:
    def __init__(
        self,
        commands: CommandRegistry,
        notifier: Notifier,
        *,
        leader: str = " ",
        noremap: bool = True,
        silent: bool = False,
    ) -> None:
        self._commands = commands
        self._notifier = notifier
        self._leader = leader
        self._defaults = {"noremap": noremap, "silent": silent}
        self._bindings: dict[tuple[str, str], KeyBinding] = {}
        self._activator: Activator | None = None

    def set_activator(self, activator: Activator) -> None:
        """Install the callback used to materialize a binding's owner."""
        self._activator = activator

    def normalize(self, sequence: str) -> str:
        return normalize_sequence(sequence, self._leader)

    def bind(
        self,
        modes: str | list[str],
        sequence: str,
        action: KeyAction | None,
        *,
        owner: str | None = None,
        desc: str | None = None,
        noremap: bool | None = None,
        silent: bool | None = None,
        expr: bool = False,
        nowait: bool = False,
    ) -> list[KeyBinding]:
        if action is None and owner is None:
            raise ValueError("a binding without an action needs an owner")
        key = self.normalize(sequence)
        created = []
        for mode in normalize_modes(modes):
            binding = KeyBinding(
                mode=mode,
                sequence=key,
                action=action,
                owner=owner,
                desc=desc,
                noremap=self._defaults["noremap"] if noremap is None else noremap,
                silent=self._defaults["silent"] if silent is None else silent,
                expr=expr,
                nowait=nowait,
            )
            self._bindings[(mode, key)] = binding
            created.append(binding)
        logger.debug("key_bound", modes=modes, sequence=key, owner=owner, desc=desc)
        return created

    def with_defaults(self, **defaults: Any) -> Callable[..., list[KeyBinding]]:
        """Return a ``bind`` variant whose option defaults are *defaults*.

        Options passed per call win over the defaults.
        """

        def _bind(
            modes: str | list[str],
            sequence: str,
            action: KeyAction | None,
            **options: Any,
        ) -> list[KeyBinding]:
            return self.bind(modes, sequence, action, **{**defaults, **options})

        return _bind

    def unbind(self, modes: str | list[str], sequence: str) -> int:
        key = self.normalize(sequence)
        removed = 0
        for mode in normalize_modes(modes):
            if self._bindings.pop((mode, key), None) is not None:
                removed += 1
        return removed

    def get(self, mode: str, sequence: str) -> KeyBinding | None:
        return self._bindings.get((mode, self.normalize(sequence)))

    def bindings(self, mode: str | None = None) -> list[KeyBinding]:
        return [b for b in self._bindings.values() if mode is None or b.mode == mode]

    def feed(self, mode: str, sequence: str, *args: Any) -> Any:
        """Dispatch an input sequence.

        Returns the action's result, or ``None`` when the sequence is unbound or
        the action failed (failures are surfaced as notifications).
        """
        binding = self.get(mode, sequence)
        if binding is None:
            logger.debug("key_unbound", mode=mode, sequence=sequence)
            return None
        return self._feed_binding(binding, args, depth=0)

    def _feed_binding(self, binding: KeyBinding, args: tuple[Any, ...], depth: int) -> Any:
        if binding.owner is not None:
            if not self._activate(binding.owner):
                return None
            # Materialization may have rebound the sequence to the real action.
            current = self._bindings.get((binding.mode, binding.sequence))
            if current is None:
                return None
            if current is not binding:
                if depth >= _MAX_REMAP_DEPTH:
                    return None
                return self._feed_binding(current, args, depth + 1)
        return self._dispatch(binding, args, depth)

    def _activate(self, owner: str) -> bool:
        if self._activator is None:
            self._notifier.error(
                str(ActivationFailureError(owner, "no activator installed")),
                identifier=owner,
            )
            return False
        if self._activator(owner):
            return True
        self._notifier.error(str(ActivationFailureError(owner)), identifier=owner)
        return False

    def _dispatch(self, binding: KeyBinding, args: tuple[Any, ...], depth: int) -> Any:
        action = binding.action
        if action is None:
            return None
        try:
            if callable(action):
                return action(*args)
            invocation = parse_command(action)
            if invocation is not None:
                return self._commands.run(
                    invocation.name, invocation.args, ranged=invocation.ranged
                )
            if not binding.noremap and depth < _MAX_REMAP_DEPTH:
                target = self._bindings.get((binding.mode, self.normalize(action)))
                if target is not None and target is not binding:
                    return self._feed_binding(target, args, depth + 1)
            # Plain keys are handed back for the host to type.
            return action
        except LazywireError as e:
            self._notifier.error(str(e), identifier=binding.owner)
        except Exception as e:
            logger.exception(
                "key_action_failed", mode=binding.mode, sequence=binding.sequence
            )
            self._notifier.error(
                f"{binding.sequence!r} failed: {e}", identifier=binding.owner
            )
        return None
