"""Tests for PluginRegistry."""

import pytest

from lazywire.exceptions import ConfigError, CyclicDependencyError, DuplicateIdentifierError
from lazywire.plugins.base import PluginDescriptor
from lazywire.plugins.registry import PluginRegistry


def _descriptor(identifier, *deps, **fields):
    return PluginDescriptor(identifier=identifier, dependencies=list(deps), **fields)


@pytest.fixture
def registry():
    return PluginRegistry()


class TestRegister:
    def test_register_and_get(self, registry):
        descriptor = registry.register(_descriptor("folke/noice.nvim"))
        assert registry.get("folke/noice.nvim") is descriptor
        assert "folke/noice.nvim" in registry
        assert len(registry) == 1

    def test_duplicate_raises(self, registry):
        registry.register(_descriptor("a/a"))
        with pytest.raises(DuplicateIdentifierError, match="already registered") as exc:
            registry.register(_descriptor("a/a"))
        assert exc.value.identifier == "a/a"
        assert isinstance(exc.value, ConfigError)

    def test_duplicate_leaves_first_in_place(self, registry):
        first = registry.register(_descriptor("a/a", main="first"))
        with pytest.raises(DuplicateIdentifierError):
            registry.register(_descriptor("a/a", main="second"))
        assert registry.get("a/a") is first

    def test_get_unknown_returns_none(self, registry):
        assert registry.get("nope") is None

    def test_descriptors_in_declaration_order(self, registry):
        registry.register(_descriptor("b/b"))
        registry.register(_descriptor("a/a"))
        assert [d.identifier for d in registry.descriptors] == ["b/b", "a/a"]


class TestImplicit:
    def test_ensure_registers_bare_lazy_descriptor(self, registry):
        descriptor = registry.ensure("nvim-lua/plenary.nvim")
        assert descriptor.implicit
        assert descriptor.is_lazy

    def test_ensure_returns_existing(self, registry):
        existing = registry.register(_descriptor("a/a"))
        assert registry.ensure("a/a") is existing

    def test_upgrade_replaces_implicit(self, registry):
        registry.ensure("a/a")
        full = registry.upgrade_implicit(_descriptor("a/a", main="alpha"))
        assert registry.get("a/a") is full
        assert not full.implicit

    def test_upgrade_rejects_explicit_duplicate(self, registry):
        registry.register(_descriptor("a/a"))
        with pytest.raises(DuplicateIdentifierError):
            registry.upgrade_implicit(_descriptor("a/a"))


class TestResolveOrder:
    def test_dependencies_first(self, registry):
        registry.register(_descriptor("a/top", "b/mid"))
        registry.register(_descriptor("b/mid", "c/base"))
        registry.register(_descriptor("c/base"))
        assert registry.resolve_order() == ["c/base", "b/mid", "a/top"]

    def test_shared_dependency_listed_once(self, registry):
        registry.register(_descriptor("a/one", "c/base"))
        registry.register(_descriptor("b/two", "c/base"))
        registry.register(_descriptor("c/base"))
        order = registry.resolve_order()
        assert order.count("c/base") == 1
        assert order.index("c/base") < order.index("a/one")
        assert order.index("c/base") < order.index("b/two")

    def test_cycle_names_members(self, registry):
        registry.register(_descriptor("a/a", "b/b"))
        registry.register(_descriptor("b/b", "c/c"))
        registry.register(_descriptor("c/c", "a/a"))
        with pytest.raises(CyclicDependencyError) as exc:
            registry.resolve_order()
        assert set(exc.value.cycle) == {"a/a", "b/b", "c/c"}
        assert "->" in str(exc.value)

    def test_self_dependency_is_cycle(self, registry):
        registry.register(_descriptor("a/a", "a/a"))
        with pytest.raises(CyclicDependencyError):
            registry.resolve_order()

    def test_unknown_dependency(self, registry):
        registry.register(_descriptor("a/a", "ghost/dep"))
        with pytest.raises(ConfigError, match="ghost/dep"):
            registry.resolve_order()


class TestDependencyChain:
    def test_chain_ends_with_identifier(self, registry):
        registry.register(_descriptor("a/top", "b/mid"))
        registry.register(_descriptor("b/mid", "c/base"))
        registry.register(_descriptor("c/base"))
        registry.register(_descriptor("d/other"))
        assert registry.dependency_chain("a/top") == ["c/base", "b/mid", "a/top"]

    def test_chain_of_unknown(self, registry):
        with pytest.raises(ConfigError, match="Unknown plugin"):
            registry.dependency_chain("ghost")
