"""Load plugin specs from YAML documents or plain dicts.

A spec file is a list of entries (or a mapping with a ``plugins`` list)::

    - id: epwalsh/pomo.nvim
      version: "*"
      cmd: [TimerStart, TimerRepeat]
      dependencies: [rcarriga/nvim-notify]
      opts:
        notifiers: [{name: Default}]

    - id: kdheepak/lazygit.nvim
      keys:
        - {lhs: "<leader>lg", rhs: "<cmd>LazyGit<cr>", desc: LazyGit}
"""

from __future__ import annotations

import importlib
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
import yaml
from pydantic import ValidationError

from lazywire.exceptions import ConfigError
from lazywire.plugins.base import (
    Callback,
    KeySpec,
    OnCommand,
    OnEvent,
    OnFiletype,
    OnKeys,
    PluginDescriptor,
    StaticOptions,
)
from lazywire.plugins.credentials import expand_env_markers

if TYPE_CHECKING:
    from lazywire.plugins.registry import PluginRegistry

logger = structlog.get_logger()

_SPEC_KEYS = {
    "id",
    "event",
    "cmd",
    "ft",
    "keys",
    "dependencies",
    "opts",
    "config",
    "main",
    "build",
    "version",
    "tag",
    "lazy",
    "enabled",
}
_KEY_ENTRY_KEYS = {"lhs", "rhs", "mode", "desc", "noremap", "silent", "expr", "nowait"}


def resolve_entry_point(reference: str) -> Callable[..., Any]:
    """Resolve ``package.module:attr.path`` to a callable."""
    module_name, sep, attr_path = reference.partition(":")
    if not sep or not module_name or not attr_path:
        raise ConfigError(f"Entry point must look like 'module:function': {reference}")
    try:
        target: Any = importlib.import_module(module_name)
        for part in attr_path.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Cannot resolve entry point {reference}: {e}") from e
    if not callable(target):
        raise ConfigError(f"Entry point {reference} is not callable")
    return target


def read_spec_file(path: Path) -> list[Any]:
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read plugin spec {path}: {e}") from e
    if data is None:
        return []
    if isinstance(data, Mapping):
        data = data.get("plugins", [])
    if not isinstance(data, list):
        raise ConfigError(f"Plugin spec {path} must be a list of plugins")
    return data


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _parse_key(entry: Any) -> KeySpec:
    if isinstance(entry, str):
        return KeySpec(sequence=entry)
    if not isinstance(entry, Mapping) or "lhs" not in entry:
        raise ConfigError(f"Key entries need an 'lhs': {entry!r}")
    unknown = set(entry) - _KEY_ENTRY_KEYS
    if unknown:
        raise ConfigError(f"Unknown key entry fields: {', '.join(sorted(unknown))}")
    fields: dict[str, Any] = {
        "sequence": entry["lhs"],
        "action": entry.get("rhs"),
        "modes": _as_list(entry.get("mode", "n")),
    }
    for name in ("desc", "noremap", "silent", "expr", "nowait"):
        if name in entry:
            fields[name] = entry[name]
    return KeySpec(**fields)


class SpecLoader:
    def __init__(self, registry: PluginRegistry, *, default_lazy: bool = False) -> None:
        self._registry = registry
        self._default_lazy = default_lazy

    def load_files(self, paths: Iterable[Path]) -> list[PluginDescriptor]:
        loaded: list[PluginDescriptor] = []
        for path in paths:
            specs = read_spec_file(path)
            loaded.extend(self.add_all(specs))
            logger.info("plugin_spec_loaded", path=str(path), count=len(specs))
        return loaded

    def add_all(self, specs: Iterable[Any]) -> list[PluginDescriptor]:
        return [self.add(spec) for spec in specs]

    def add(self, spec: Any) -> PluginDescriptor:
        if isinstance(spec, str):
            spec = {"id": spec}
        if not isinstance(spec, Mapping):
            raise ConfigError(f"Plugin spec must be a mapping or an id: {spec!r}")
        if "id" not in spec:
            raise ConfigError(f"Plugin spec has no 'id': {dict(spec)!r}")
        unknown = set(spec) - _SPEC_KEYS
        if unknown:
            raise ConfigError(
                f"Unknown fields in spec for {spec['id']}: {', '.join(sorted(unknown))}"
            )

        dependencies = [self._dependency(dep) for dep in _as_list(spec.get("dependencies"))]
        try:
            descriptor = PluginDescriptor(
                identifier=spec["id"],
                triggers=self._triggers(spec),
                lazy=spec.get("lazy", True if self._default_lazy else None),
                dependencies=dependencies,
                setup=self._setup(spec),
                main=spec.get("main"),
                build=spec.get("build"),
                version=spec.get("tag", spec.get("version")),
                enabled=spec.get("enabled", True),
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid spec for {spec['id']}: {e}") from e
        return self._registry.upgrade_implicit(descriptor)

    def _dependency(self, dep: Any) -> str:
        if isinstance(dep, Mapping):
            identifier = str(dep.get("id", ""))
            existing = self._registry.get(identifier)
            if existing is not None and not existing.implicit:
                return identifier
            return self.add(dep).identifier
        identifier = str(dep)
        self._registry.ensure(identifier)
        return identifier

    def _triggers(self, spec: Mapping[str, Any]) -> list[Any]:
        triggers: list[Any] = []
        if spec.get("event"):
            triggers.append(OnEvent(names=_as_list(spec["event"])))
        if spec.get("cmd"):
            triggers.append(OnCommand(names=_as_list(spec["cmd"])))
        if spec.get("ft"):
            triggers.append(OnFiletype(names=_as_list(spec["ft"])))
        if spec.get("keys"):
            triggers.append(OnKeys(keys=[_parse_key(k) for k in _as_list(spec["keys"])]))
        return triggers

    def _setup(self, spec: Mapping[str, Any]) -> StaticOptions | Callback:
        opts = spec.get("opts") or {}
        if not isinstance(opts, Mapping):
            raise ConfigError(f"'opts' for {spec['id']} must be a mapping")
        opts = expand_env_markers(dict(opts))
        config = spec.get("config")
        if config is None or config is True:
            return StaticOptions(opts=opts)
        if callable(config):
            return Callback(fn=config, opts=opts)
        if isinstance(config, str):
            return Callback(fn=resolve_entry_point(config), opts=opts)
        raise ConfigError(f"'config' for {spec['id']} must be an entry point string")
