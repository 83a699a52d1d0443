"""Deferred credential lookup from the environment.

Credentials are resolved when a feature first uses them, never at
configuration load, so a missing variable only breaks the feature that
needs it.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict

from lazywire.exceptions import MissingCredentialError

ENV_MARKER = "$env"


class EnvCredential(BaseModel):
    model_config = ConfigDict(frozen=True)

    variable: str

    def resolve(self, environ: Mapping[str, str] | None = None) -> str:
        env = os.environ if environ is None else environ
        value = env.get(self.variable)
        if not value:
            raise MissingCredentialError(self.variable)
        return value

    def is_set(self, environ: Mapping[str, str] | None = None) -> bool:
        env = os.environ if environ is None else environ
        return bool(env.get(self.variable))

    def __str__(self) -> str:
        return f"<env {self.variable}>"


def expand_env_markers(value: Any) -> Any:
    """Replace ``{"$env": NAME}`` mappings with :class:`EnvCredential` values."""
    if isinstance(value, Mapping):
        if set(value) == {ENV_MARKER}:
            return EnvCredential(variable=str(value[ENV_MARKER]))
        return {k: expand_env_markers(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_markers(v) for v in value]
    return value
