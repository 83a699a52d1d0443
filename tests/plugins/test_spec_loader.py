"""Tests for loading plugin specs from YAML and dicts."""

import pytest

from lazywire.exceptions import ConfigError, DuplicateIdentifierError
from lazywire.plugins.base import (
    Callback,
    OnCommand,
    OnEvent,
    OnFiletype,
    OnKeys,
    StaticOptions,
)
from lazywire.plugins.credentials import EnvCredential
from lazywire.plugins.registry import PluginRegistry
from lazywire.plugins.spec_loader import SpecLoader, read_spec_file, resolve_entry_point


def configure_for_test(opts):
    return opts


@pytest.fixture
def registry():
    return PluginRegistry()


@pytest.fixture
def specs(registry):
    return SpecLoader(registry)


class TestAdd:
    def test_bare_id(self, specs):
        descriptor = specs.add("folke/noice.nvim")
        assert descriptor.identifier == "folke/noice.nvim"
        assert not descriptor.is_lazy

    def test_triggers_from_fields(self, specs):
        descriptor = specs.add(
            {
                "id": "epwalsh/obsidian.nvim",
                "event": "BufReadPre",
                "cmd": ["ObsidianOpen", "ObsidianNew"],
                "ft": "markdown",
                "keys": [{"lhs": "<leader>od", "rhs": "<cmd>ObsidianOpen<cr>"}],
            }
        )
        assert descriptor.is_lazy
        assert descriptor.triggers_of(OnEvent)[0].names == ["BufReadPre"]
        assert descriptor.triggers_of(OnCommand)[0].names == ["ObsidianOpen", "ObsidianNew"]
        assert descriptor.triggers_of(OnFiletype)[0].names == ["markdown"]
        key = descriptor.triggers_of(OnKeys)[0].keys[0]
        assert key.sequence == "<leader>od"
        assert key.action == "<cmd>ObsidianOpen<cr>"
        assert key.modes == ["n"]

    def test_key_entry_options(self, specs):
        descriptor = specs.add(
            {
                "id": "a/a",
                "keys": [
                    "<leader>x",
                    {"lhs": "gc", "mode": ["n", "x"], "desc": "Comment", "silent": True},
                ],
            }
        )
        keys = descriptor.triggers_of(OnKeys)[0].keys
        assert keys[0].action is None
        assert keys[1].modes == ["n", "x"]
        assert keys[1].desc == "Comment"
        assert keys[1].silent is True

    def test_unknown_key_entry_field(self, specs):
        with pytest.raises(ConfigError, match="remap"):
            specs.add({"id": "a/a", "keys": [{"lhs": "x", "remap": True}]})

    def test_invalid_key_mode(self, specs, registry):
        with pytest.raises(ConfigError, match="unknown mode"):
            specs.add({"id": "a/x.nvim", "keys": [{"lhs": "<leader>x", "mode": "z"}]})
        assert "a/x.nvim" not in registry

    def test_empty_key_sequence(self, specs):
        with pytest.raises(ConfigError, match="must not be empty"):
            specs.add({"id": "a/a", "keys": [{"lhs": ""}]})

    def test_invalid_command_name(self, specs):
        with pytest.raises(ConfigError, match="invalid command name"):
            specs.add({"id": "a/a", "cmd": ["Good", "1bad"]})

    def test_key_entry_without_lhs(self, specs):
        with pytest.raises(ConfigError, match="lhs"):
            specs.add({"id": "a/a", "keys": [{"rhs": "x"}]})

    def test_opts_become_static_options(self, specs):
        descriptor = specs.add({"id": "a/a", "opts": {"theme": "dark"}})
        assert isinstance(descriptor.setup, StaticOptions)
        assert descriptor.opts == {"theme": "dark"}

    def test_env_marker_in_opts(self, specs):
        descriptor = specs.add(
            {"id": "kawre/leetcode.nvim", "opts": {"cookie": {"$env": "LEETCODE_SESSION"}}}
        )
        assert descriptor.opts["cookie"] == EnvCredential(variable="LEETCODE_SESSION")

    def test_config_entry_point_becomes_callback(self, specs):
        descriptor = specs.add(
            {"id": "a/a", "config": f"{__name__}:configure_for_test", "opts": {"x": 1}}
        )
        assert isinstance(descriptor.setup, Callback)
        assert descriptor.setup.fn is configure_for_test
        assert descriptor.opts == {"x": 1}

    def test_config_true_uses_module_setup(self, specs):
        assert isinstance(specs.add({"id": "a/a", "config": True}).setup, StaticOptions)

    def test_invalid_config_type(self, specs):
        with pytest.raises(ConfigError, match="config"):
            specs.add({"id": "a/a", "config": 42})

    def test_tag_preferred_over_version(self, specs):
        descriptor = specs.add({"id": "a/a", "version": "*", "tag": "v1.2.0"})
        assert descriptor.version == "v1.2.0"

    def test_unknown_field(self, specs):
        with pytest.raises(ConfigError, match="priority"):
            specs.add({"id": "a/a", "priority": 1000})

    def test_missing_id(self, specs):
        with pytest.raises(ConfigError, match="no 'id'"):
            specs.add({"cmd": "X"})

    def test_invalid_field_value(self, specs):
        with pytest.raises(ConfigError, match="Invalid spec"):
            specs.add({"id": "a/a", "enabled": "sometimes"})

    def test_duplicate_declaration(self, specs):
        specs.add("a/a")
        with pytest.raises(DuplicateIdentifierError):
            specs.add("a/a")

    def test_default_lazy(self, registry):
        descriptor = SpecLoader(registry, default_lazy=True).add("a/a")
        assert descriptor.is_lazy


class TestDependencies:
    def test_string_dependency_registered_implicitly(self, specs, registry):
        specs.add({"id": "epwalsh/pomo.nvim", "dependencies": ["rcarriga/nvim-notify"]})
        dep = registry.get("rcarriga/nvim-notify")
        assert dep is not None
        assert dep.implicit
        assert dep.is_lazy

    def test_later_declaration_upgrades_implicit(self, specs, registry):
        specs.add({"id": "epwalsh/pomo.nvim", "dependencies": "rcarriga/nvim-notify"})
        specs.add({"id": "rcarriga/nvim-notify", "opts": {"timeout": 500}})
        dep = registry.get("rcarriga/nvim-notify")
        assert not dep.implicit
        assert dep.opts == {"timeout": 500}

    def test_nested_dependency_spec(self, specs, registry):
        specs.add(
            {
                "id": "epwalsh/obsidian.nvim",
                "dependencies": [{"id": "nvim-lua/plenary.nvim", "lazy": True}],
            }
        )
        assert registry.get("epwalsh/obsidian.nvim").dependencies == [
            "nvim-lua/plenary.nvim"
        ]
        assert not registry.get("nvim-lua/plenary.nvim").implicit

    def test_shared_dependency_declared_once(self, specs, registry):
        specs.add({"id": "a/one", "dependencies": ["nvim-lua/plenary.nvim"]})
        specs.add({"id": "b/two", "dependencies": ["nvim-lua/plenary.nvim"]})
        assert len(registry) == 3


class TestFiles:
    def test_read_list_file(self, tmp_path):
        path = tmp_path / "plugins.yaml"
        path.write_text("- id: a/a\n- b/b\n")
        assert read_spec_file(path) == [{"id": "a/a"}, "b/b"]

    def test_read_mapping_file(self, tmp_path):
        path = tmp_path / "plugins.yaml"
        path.write_text("plugins:\n  - id: a/a\n")
        assert read_spec_file(path) == [{"id": "a/a"}]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "plugins.yaml"
        path.write_text("")
        assert read_spec_file(path) == []

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "plugins.yaml"
        path.write_text("- id: [unclosed\n")
        with pytest.raises(ConfigError, match="Cannot read"):
            read_spec_file(path)

    def test_scalar_document_rejected(self, tmp_path):
        path = tmp_path / "plugins.yaml"
        path.write_text("just a string\n")
        with pytest.raises(ConfigError, match="must be a list"):
            read_spec_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            read_spec_file(tmp_path / "missing.yaml")

    def test_load_files_registers_all(self, tmp_path, specs, registry):
        first = tmp_path / "core.yaml"
        first.write_text("- id: folke/noice.nvim\n")
        second = tmp_path / "notes.yaml"
        second.write_text(
            "- id: epwalsh/obsidian.nvim\n"
            "  ft: markdown\n"
            "  dependencies: [nvim-lua/plenary.nvim]\n"
        )
        loaded = specs.load_files([first, second])
        assert [d.identifier for d in loaded] == [
            "folke/noice.nvim",
            "epwalsh/obsidian.nvim",
        ]
        assert "nvim-lua/plenary.nvim" in registry


class TestResolveEntryPoint:
    def test_resolves_dotted_attribute(self):
        assert resolve_entry_point("os.path:join").__name__ == "join"

    def test_malformed_reference(self):
        with pytest.raises(ConfigError, match="module:function"):
            resolve_entry_point("os.path.join")

    def test_missing_module(self):
        with pytest.raises(ConfigError, match="Cannot resolve"):
            resolve_entry_point("lazywire_missing_module:fn")

    def test_not_callable(self):
        with pytest.raises(ConfigError, match="not callable"):
            resolve_entry_point("os:sep")
