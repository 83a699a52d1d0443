"""Shared exception types for lazywire."""


class LazywireError(Exception):
    """Base exception for all lazywire errors."""


class ConfigError(LazywireError):
    """Plugin configuration is invalid or missing."""


class DuplicateIdentifierError(ConfigError):
    """A plugin identifier was registered twice."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Plugin already registered: {identifier}")
        self.identifier = identifier


class CyclicDependencyError(ConfigError):
    """Plugin dependencies do not form a DAG."""

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(f"Cyclic dependency: {' -> '.join([*cycle, cycle[0]])}")
        self.cycle = cycle


class SetupFailureError(LazywireError):
    """A plugin's setup routine raised."""

    def __init__(self, identifier: str, reason: str) -> None:
        super().__init__(f"Setup of {identifier} failed: {reason}")
        self.identifier = identifier


class MissingCredentialError(LazywireError):
    """A credential environment variable is not set."""

    def __init__(self, variable: str) -> None:
        super().__init__(f"Environment variable {variable} is not set")
        self.variable = variable


class ActivationFailureError(LazywireError):
    """A key or command trigger could not materialize its plugin."""

    def __init__(self, identifier: str, reason: str = "") -> None:
        message = f"Plugin {identifier} could not be activated"
        super().__init__(f"{message}: {reason}" if reason else message)
        self.identifier = identifier


class UnknownCommandError(LazywireError):
    """No editor command is registered under the given name."""


class BuildError(LazywireError):
    """A plugin build step failed."""
