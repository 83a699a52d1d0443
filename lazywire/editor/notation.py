"""Key notation and command-string parsing."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

_KEY_TOKEN = re.compile(r"<[^<>\s]+>|.", re.DOTALL)
_MODIFIED = re.compile(r"^((?:[A-Za-z]-)+)(.+)$")
_COMMAND = re.compile(
    r"^(?:<cmd>|:)(?:<c-u>)?\s*(?P<range>'<,'>|%)?\s*(?P<body>.*?)\s*(?:<cr>)?$",
    re.IGNORECASE | re.DOTALL,
)
_COMMAND_NAME = re.compile(r"^[A-Za-z_][\w.]*!?$")

# Modifier aliases: <M-x> is the same key as <A-x>.
_MODIFIER_ALIASES = {"m": "a"}

MODES = frozenset({"n", "v", "x", "s", "o", "i", "c", "t"})


class CommandInvocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    args: str = ""
    ranged: bool = False


def _normalize_token(token: str, leader: str) -> str:
    inner = token[1:-1]
    lowered = inner.lower()
    if lowered == "leader":
        return leader
    if lowered == "space":
        return " "

    match = _MODIFIED.match(inner)
    if not match:
        return f"<{lowered}>"

    modifiers = [
        _MODIFIER_ALIASES.get(m.lower(), m.lower())
        for m in match.group(1).split("-")
        if m
    ]
    key = match.group(2)
    # <C-h> and <C-H> are the same key; multi-char names are case-insensitive.
    if len(key) > 1 or "c" in modifiers:
        key = key.lower()
    return "<" + "-".join([*modifiers, key]) + ">"


def normalize_sequence(sequence: str, leader: str = " ") -> str:
    """Canonical form of a key sequence so equal inputs compare equal.

    ``<leader>`` expands to *leader*, special key names are lowercased and
    ``<M-x>`` is folded into ``<A-x>``. Plain characters are kept verbatim.
    """
    if not sequence:
        raise ValueError("key sequence must not be empty")
    parts = []
    for token in _KEY_TOKEN.findall(sequence):
        if len(token) > 2 and token.startswith("<") and token.endswith(">"):
            parts.append(_normalize_token(token, leader))
        else:
            parts.append(token)
    return "".join(parts)


def is_command_name(name: str) -> bool:
    """User commands must start with a letter."""
    return bool(name) and name[0].isalpha()


def normalize_modes(modes: str | list[str] | tuple[str, ...]) -> list[str]:
    if isinstance(modes, str):
        modes = [modes]
    result: list[str] = []
    for mode in modes:
        if mode not in MODES:
            raise ValueError(f"unknown mode: {mode!r}")
        if mode not in result:
            result.append(mode)
    if not result:
        raise ValueError("at least one mode is required")
    return result


def parse_command(action: str) -> CommandInvocation | None:
    """Parse ``<cmd>Name args<cr>`` or ``:Name args<CR>`` into an invocation.

    Returns ``None`` for strings that are not editor command invocations.
    """
    match = _COMMAND.match(action.strip())
    if not match:
        return None
    body = match.group("body")
    if not body:
        return None
    name, _, args = body.partition(" ")
    if not _COMMAND_NAME.match(name):
        return None
    return CommandInvocation(
        name=name,
        args=args.strip(),
        ranged=match.group("range") is not None,
    )
