"""Plugin descriptors, the declarative unit of the plugin list."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lazywire.editor.keymap import KeyAction
from lazywire.editor.notation import is_command_name, normalize_modes

SetupCallback = Callable[[dict[str, Any]], Any]
BuildAction = str | Callable[..., Any]


class PluginState(Enum):
    REGISTERED = "registered"
    MATERIALIZING = "materializing"
    ACTIVE = "active"
    FAILED = "failed"


def _as_name_list(v: str | list[str]) -> list[str]:
    names = [v] if isinstance(v, str) else list(v)
    names = [n.strip() for n in names if n and n.strip()]
    if not names:
        raise ValueError("at least one name is required")
    return names


# --- Activation predicates ---


class Immediate(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["immediate"] = "immediate"


class _NamedTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    names: list[str]

    @field_validator("names", mode="before")
    @classmethod
    def parse_names(cls, v: str | list[str]) -> list[str]:
        return _as_name_list(v)


class OnEvent(_NamedTrigger):
    kind: Literal["event"] = "event"


class OnCommand(_NamedTrigger):
    kind: Literal["command"] = "command"

    @field_validator("names")
    @classmethod
    def valid_command_names(cls, v: list[str]) -> list[str]:
        for name in v:
            if not is_command_name(name):
                raise ValueError(f"invalid command name: {name!r}")
        return v


class OnFiletype(_NamedTrigger):
    kind: Literal["filetype"] = "filetype"


class KeySpec(BaseModel):
    """A lazy key trigger. Without an action it only triggers materialization."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    sequence: str
    action: KeyAction | None = None
    modes: list[str] = ["n"]
    desc: str | None = None
    noremap: bool | None = None
    silent: bool | None = None
    expr: bool = False
    nowait: bool = False

    @field_validator("sequence")
    @classmethod
    def sequence_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("key sequence must not be empty")
        return v

    @field_validator("modes", mode="before")
    @classmethod
    def parse_modes(cls, v: str | list[str]) -> list[str]:
        return normalize_modes(v)


class OnKeys(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["keys"] = "keys"
    keys: list[KeySpec]

    @field_validator("keys", mode="before")
    @classmethod
    def parse_keys(cls, v: Any) -> Any:
        if isinstance(v, (str, KeySpec)):
            v = [v]
        return [KeySpec(sequence=k) if isinstance(k, str) else k for k in v]


Trigger = Annotated[
    Immediate | OnEvent | OnCommand | OnFiletype | OnKeys,
    Field(discriminator="kind"),
]


# --- Setup payloads ---


class StaticOptions(BaseModel):
    """Options handed to the plugin module's own ``setup`` entry point."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["static"] = "static"
    opts: dict[str, Any] = Field(default_factory=dict)


class Callback(BaseModel):
    """Custom setup routine called with the merged options."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["callback"] = "callback"
    fn: SetupCallback
    opts: dict[str, Any] = Field(default_factory=dict)


SetupPayload = Annotated[StaticOptions | Callback, Field(discriminator="kind")]


# Mutable: the scheduler moves state forward in-place.
class PluginDescriptor(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    identifier: str
    triggers: list[Trigger] = Field(default_factory=list)
    lazy: bool | None = None
    dependencies: list[str] = Field(default_factory=list)
    setup: SetupPayload = Field(default_factory=StaticOptions)
    main: str | None = None
    build: BuildAction | None = None
    version: str | None = None
    enabled: bool = True
    implicit: bool = False

    state: PluginState = PluginState.REGISTERED
    error: str | None = None
    module: Any = Field(default=None, exclude=True, repr=False)

    @field_validator("identifier")
    @classmethod
    def identifier_not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("identifier must not be empty")
        return v

    @field_validator("dependencies", mode="before")
    @classmethod
    def dedupe_dependencies(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            v = [v]
        seen: list[str] = []
        for dep in v:
            dep = dep.strip()
            if dep and dep not in seen:
                seen.append(dep)
        return seen

    @property
    def name(self) -> str:
        return self.identifier.rsplit("/", 1)[-1]

    @property
    def opts(self) -> dict[str, Any]:
        return self.setup.opts

    @property
    def is_lazy(self) -> bool:
        if self.lazy is not None:
            return self.lazy
        if not self.triggers:
            return False
        return not any(isinstance(t, Immediate) for t in self.triggers)

    @property
    def is_active(self) -> bool:
        return self.state is PluginState.ACTIVE

    def triggers_of(self, kind: type[BaseModel]) -> list[Any]:
        return [t for t in self.triggers if isinstance(t, kind)]
