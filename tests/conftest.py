"""Shared fixtures and fake plugin modules for testing."""

from __future__ import annotations

import os
from types import SimpleNamespace
from typing import Any

import pytest

from lazywire.core.config import LazywireConfig
from lazywire.core.context import EditorContext
from lazywire.plugins.base import PluginDescriptor
from lazywire.plugins.build import BuildTracker
from lazywire.plugins.loader import MappingLoader
from lazywire.plugins.scheduler import ActivationPhase, ActivationScheduler


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Prevent .env file and shell env from leaking into tests."""
    monkeypatch.setitem(LazywireConfig.model_config, "env_file", None)
    for key in list(os.environ):
        if key.startswith("LAZYWIRE_"):
            monkeypatch.delenv(key, raising=False)


class FakePluginModule(SimpleNamespace):
    """In-memory plugin module that records setup calls."""

    def __init__(self, commands: dict[str, Any] | None = None, fail: bool = False) -> None:
        super().__init__()
        self.setup_calls: list[dict[str, Any]] = []
        self.fail = fail
        if commands is not None:
            self.commands = commands

    def setup(self, opts: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("setup exploded")
        self.setup_calls.append(opts)


@pytest.fixture
def config(tmp_path):
    return LazywireConfig(lockfile_path=tmp_path / "lazywire-lock.json")


@pytest.fixture
def context(config):
    return EditorContext.create(config)


@pytest.fixture
def registry(context):
    return context.registry


@pytest.fixture
def loader():
    return MappingLoader()


@pytest.fixture
def builds(context, config):
    return BuildTracker(config.lockfile_path, context.commands.execute)


@pytest.fixture
def scheduler(context, loader, builds):
    return ActivationScheduler(context, loader, builds=builds)


@pytest.fixture
def add_plugin(registry, loader):
    """Register a descriptor backed by a fake module; returns the module."""

    def _add(identifier: str, module: Any = None, **fields: Any) -> FakePluginModule:
        module = module if module is not None else FakePluginModule()
        registry.register(PluginDescriptor(identifier=identifier, **fields))
        loader.add(identifier, module)
        return module

    return _add


def setup_starts(scheduler: ActivationScheduler) -> list[str]:
    """Identifiers in the order their setup began."""
    return [
        r.identifier
        for r in scheduler.history
        if r.phase is ActivationPhase.SETUP_STARTED
    ]
