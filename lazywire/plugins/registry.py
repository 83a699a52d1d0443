"""Plugin registry: explicit registration and dependency ordering."""

from __future__ import annotations

import structlog

from lazywire.exceptions import ConfigError, CyclicDependencyError, DuplicateIdentifierError
from lazywire.plugins.base import PluginDescriptor

logger = structlog.get_logger()


class PluginRegistry:
    def __init__(self) -> None:
        self._descriptors: dict[str, PluginDescriptor] = {}

    def register(self, descriptor: PluginDescriptor) -> PluginDescriptor:
        identifier = descriptor.identifier
        if identifier in self._descriptors:
            raise DuplicateIdentifierError(identifier)
        self._descriptors[identifier] = descriptor
        logger.info(
            "plugin_registered",
            identifier=identifier,
            lazy=descriptor.is_lazy,
            dependencies=descriptor.dependencies,
        )
        return descriptor

    def upgrade_implicit(self, descriptor: PluginDescriptor) -> PluginDescriptor:
        """Replace an implicitly registered dependency with its full declaration."""
        existing = self._descriptors.get(descriptor.identifier)
        if existing is None:
            return self.register(descriptor)
        if not existing.implicit:
            raise DuplicateIdentifierError(descriptor.identifier)
        self._descriptors[descriptor.identifier] = descriptor
        logger.info("plugin_declaration_merged", identifier=descriptor.identifier)
        return descriptor

    def ensure(self, identifier: str) -> PluginDescriptor:
        """Return the descriptor for *identifier*, registering a bare lazy one if absent."""
        existing = self._descriptors.get(identifier)
        if existing is not None:
            return existing
        return self.register(
            PluginDescriptor(identifier=identifier, lazy=True, implicit=True)
        )

    def get(self, identifier: str) -> PluginDescriptor | None:
        return self._descriptors.get(identifier)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    @property
    def descriptors(self) -> list[PluginDescriptor]:
        return list(self._descriptors.values())

    def resolve_order(self) -> list[str]:
        """Topological order of all identifiers, dependencies first.

        Independent descriptors keep declaration order, but callers must not
        rely on it.
        """
        self._check_known_dependencies()
        order: list[str] = []
        done: set[str] = set()
        for identifier in self._descriptors:
            self._visit(identifier, [], done, order)
        return order

    def dependency_chain(self, identifier: str) -> list[str]:
        """Transitive dependencies of *identifier* in materialization order, itself last."""
        if identifier not in self._descriptors:
            raise ConfigError(f"Unknown plugin: {identifier}")
        self._check_known_dependencies()
        order: list[str] = []
        self._visit(identifier, [], set(), order)
        return order

    def _check_known_dependencies(self) -> None:
        for descriptor in self._descriptors.values():
            for dep in descriptor.dependencies:
                if dep not in self._descriptors:
                    raise ConfigError(
                        f"Plugin {descriptor.identifier} depends on {dep}, "
                        "which is not registered"
                    )

    def _visit(
        self, identifier: str, path: list[str], done: set[str], order: list[str]
    ) -> None:
        if identifier in done:
            return
        if identifier in path:
            cycle = path[path.index(identifier) :]
            logger.error("plugin_dependency_cycle", cycle=cycle)
            raise CyclicDependencyError(cycle)
        path.append(identifier)
        for dep in self._descriptors[identifier].dependencies:
            self._visit(dep, path, done, order)
        path.pop()
        done.add(identifier)
        order.append(identifier)
