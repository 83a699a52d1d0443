"""Plugin loaders: resolve a descriptor to the module that implements it.

A plugin module may expose:

* ``setup(opts)``: the generic setup entry point, called with merged options.
* ``commands``: a mapping of command name to handler, defined when the module
  is materialized (before setup runs).

Both are optional.
"""

from __future__ import annotations

import importlib
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from lazywire.plugins.base import PluginDescriptor

logger = structlog.get_logger()

_STRIP_SUFFIXES = (".nvim", "-nvim", ".vim", "-vim", ".lua", ".py")
_STRIP_PREFIXES = ("nvim-", "vim-")


class PluginLoader(Protocol):
    def load(self, descriptor: PluginDescriptor) -> Any: ...


def derive_module_name(identifier: str) -> str:
    """``mrjones2014/smart-splits.nvim`` -> ``smart_splits``."""
    name = identifier.rsplit("/", 1)[-1].lower()
    for suffix in _STRIP_SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            name = name[: -len(suffix)]
            break
    for prefix in _STRIP_PREFIXES:
        if name.startswith(prefix) and len(name) > len(prefix):
            name = name[len(prefix) :]
            break
    return name.replace("-", "_").replace(".", "_")


def module_name_for(descriptor: PluginDescriptor) -> str:
    return descriptor.main or derive_module_name(descriptor.identifier)


class ImportLoader:
    """Load plugins as importable Python modules, optionally under a package."""

    def __init__(self, package: str | None = None) -> None:
        self._package = package

    def load(self, descriptor: PluginDescriptor) -> Any:
        name = module_name_for(descriptor)
        target = f"{self._package}.{name}" if self._package else name
        module = importlib.import_module(target)
        logger.debug("plugin_module_imported", identifier=descriptor.identifier, module=target)
        return module


class MappingLoader:
    """Serve in-process plugin objects keyed by identifier or module name."""

    def __init__(self, modules: Mapping[str, Any] | None = None) -> None:
        self._modules: dict[str, Any] = dict(modules or {})

    def add(self, key: str, module: Any) -> None:
        self._modules[key] = module

    def load(self, descriptor: PluginDescriptor) -> Any:
        for key in (descriptor.identifier, module_name_for(descriptor)):
            if key in self._modules:
                return self._modules[key]
        raise ImportError(f"No module registered for {descriptor.identifier}")
