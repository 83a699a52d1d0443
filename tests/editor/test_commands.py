"""Tests for the editor command registry."""

import pytest

from lazywire.editor.commands import CommandRegistry
from lazywire.exceptions import UnknownCommandError


@pytest.fixture
def commands():
    return CommandRegistry()


class TestCommandRegistry:
    def test_define_and_run(self, commands):
        commands.define("Oil", lambda inv: f"oil {inv.args}".strip(), owner="stevearc/oil.nvim")
        assert "Oil" in commands
        assert commands.run("Oil", "~/src") == "oil ~/src"
        assert commands.get("Oil").owner == "stevearc/oil.nvim"

    def test_invalid_name(self, commands):
        with pytest.raises(ValueError, match="invalid command name"):
            commands.define("1up", lambda inv: None)

    def test_redefine_replaces(self, commands):
        commands.define("X", lambda inv: "stub", stub=True)
        commands.define("X", lambda inv: "real")
        assert commands.run("X") == "real"
        assert not commands.get("X").stub

    def test_remove(self, commands):
        commands.define("X", lambda inv: None)
        assert commands.remove("X") is True
        assert commands.remove("X") is False
        assert commands.names == []

    def test_run_unknown(self, commands):
        with pytest.raises(UnknownCommandError, match="Not an editor command: Nope"):
            commands.run("Nope")

    def test_ranged_invocation(self, commands):
        commands.define("Sort", lambda inv: inv.ranged)
        assert commands.run("Sort", ranged=True) is True


class TestExecute:
    def test_colon_line(self, commands):
        commands.define("TimerStart", lambda inv: inv.args)
        assert commands.execute(":TimerStart 25") == "25"

    def test_without_colon(self, commands):
        commands.define("TimerStart", lambda inv: inv.args)
        assert commands.execute("TimerStart 5 break") == "5 break"

    def test_cmd_notation(self, commands):
        commands.define("LazyGit", lambda inv: "lazygit")
        assert commands.execute("<cmd>LazyGit<cr>") == "lazygit"

    def test_unparseable(self, commands):
        with pytest.raises(UnknownCommandError):
            commands.execute("%%%")

    def test_unknown(self, commands):
        with pytest.raises(UnknownCommandError):
            commands.execute(":Nope")
