"""Setup invoker: applies a descriptor's setup payload exactly once."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from lazywire.exceptions import SetupFailureError
from lazywire.plugins.base import Callback, PluginDescriptor, StaticOptions

logger = structlog.get_logger()


class SetupInvoker:
    def __init__(self, overrides: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._overrides = {k: dict(v) for k, v in (overrides or {}).items()}

    def set_override(self, identifier: str, opts: Mapping[str, Any]) -> None:
        self._overrides[identifier] = dict(opts)

    def merge_options(self, descriptor: PluginDescriptor) -> dict[str, Any]:
        """Descriptor defaults updated by the user override; override wins per top-level key."""
        return {**descriptor.opts, **self._overrides.get(descriptor.identifier, {})}

    def apply(self, descriptor: PluginDescriptor, module: Any = None) -> bool:
        """Run the setup payload. Returns ``False`` if the descriptor is already active."""
        if descriptor.is_active:
            logger.debug("plugin_setup_skipped", identifier=descriptor.identifier)
            return False

        opts = self.merge_options(descriptor)
        payload = descriptor.setup
        try:
            if isinstance(payload, Callback):
                payload.fn(opts)
            elif isinstance(payload, StaticOptions):
                self._call_entry_point(descriptor, module, opts)
        except SetupFailureError:
            raise
        except Exception as e:
            raise SetupFailureError(descriptor.identifier, str(e) or type(e).__name__) from e

        logger.info(
            "plugin_setup_applied",
            identifier=descriptor.identifier,
            payload=payload.kind,
            option_keys=sorted(opts),
        )
        return True

    def _call_entry_point(
        self, descriptor: PluginDescriptor, module: Any, opts: dict[str, Any]
    ) -> None:
        setup = getattr(module, "setup", None)
        if setup is None:
            if opts:
                raise SetupFailureError(
                    descriptor.identifier, "options given but the plugin has no setup()"
                )
            return
        if not callable(setup):
            raise SetupFailureError(descriptor.identifier, "setup is not callable")
        setup(opts)
