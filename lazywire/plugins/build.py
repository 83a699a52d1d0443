"""Post-install build steps, tracked per installed version in a JSON lockfile."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ValidationError

from lazywire.exceptions import BuildError

if TYPE_CHECKING:
    from lazywire.plugins.base import PluginDescriptor

logger = structlog.get_logger()

CommandRunner = Callable[[str], Any]


class LockEntry(BaseModel):
    version: str
    built_at: datetime


def version_key(descriptor: PluginDescriptor) -> str:
    return descriptor.version or "*"


class BuildTracker:
    """Runs a descriptor's build once per version; ``lock_path=None`` keeps state in memory."""

    def __init__(self, lock_path: Path | str | None, run_command: CommandRunner) -> None:
        self._path = Path(lock_path) if lock_path is not None else None
        self._run_command = run_command
        self._entries: dict[str, LockEntry] = self._read()

    def _read(self) -> dict[str, LockEntry]:
        if self._path is None or not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text())
            return {k: LockEntry.model_validate(v) for k, v in data.items()}
        except (json.JSONDecodeError, ValidationError, AttributeError, OSError):
            logger.warning("lockfile_invalid", path=str(self._path), exc_info=True)
            return {}

    def _write(self) -> None:
        if self._path is None:
            return
        payload = {k: v.model_dump(mode="json") for k, v in self._entries.items()}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n")
        except OSError as e:
            logger.error("lockfile_write_failed", path=str(self._path), error=str(e))

    def entry(self, identifier: str) -> LockEntry | None:
        return self._entries.get(identifier)

    def needs_build(self, descriptor: PluginDescriptor) -> bool:
        if descriptor.build is None:
            return False
        entry = self._entries.get(descriptor.identifier)
        return entry is None or entry.version != version_key(descriptor)

    def run(self, descriptor: PluginDescriptor) -> bool:
        """Run the build if this version has not been built. Returns whether it ran."""
        if not self.needs_build(descriptor):
            return False

        build = descriptor.build
        logger.info("plugin_build_started", identifier=descriptor.identifier, build=str(build))
        try:
            if callable(build):
                build(descriptor)
            else:
                self._run_command(str(build))
        except Exception as e:
            logger.error(
                "plugin_build_failed", identifier=descriptor.identifier, error=str(e)
            )
            raise BuildError(f"Build of {descriptor.identifier} failed: {e}") from e

        self._entries[descriptor.identifier] = LockEntry(
            version=version_key(descriptor), built_at=datetime.now(UTC)
        )
        self._write()
        logger.info("plugin_build_done", identifier=descriptor.identifier)
        return True
