"""Bootstrap: wires all components together."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict

from lazywire.core.config import LazywireConfig
from lazywire.core.context import EditorContext
from lazywire.plugins.build import BuildTracker
from lazywire.plugins.loader import ImportLoader
from lazywire.plugins.scheduler import ActivationScheduler
from lazywire.plugins.setup import SetupInvoker
from lazywire.plugins.spec_loader import SpecLoader

if TYPE_CHECKING:
    from lazywire.core.notify import NotificationSink
    from lazywire.plugins.loader import PluginLoader

logger = structlog.get_logger()


class Runtime(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    context: EditorContext
    scheduler: ActivationScheduler
    specs: SpecLoader


def _configure_logging(config: LazywireConfig, *, log_dir: Path | None = None) -> None:
    """Set up structlog with console output and optional rotating JSON file handler."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(config.log_level)
    root_logger.handlers.clear()

    # Console handler: colored dev-friendly output
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(),
        )
    )
    root_logger.addHandler(console_handler)

    # File handler: JSON lines for machine parsing
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "lazywire.log",
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
        )
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
            )
        )
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_runtime(
    config: LazywireConfig | None = None,
    loader: PluginLoader | None = None,
    sink: NotificationSink | None = None,
) -> Runtime:
    if config is None:
        config = LazywireConfig()

    _configure_logging(config, log_dir=config.log_dir)

    context = EditorContext.create(config, sink)
    invoker = SetupInvoker(config.load_overrides())
    builds = BuildTracker(config.lockfile_path, context.commands.execute)
    scheduler = ActivationScheduler(
        context,
        loader or ImportLoader(config.plugin_package),
        invoker=invoker,
        builds=builds,
    )

    specs = SpecLoader(context.registry, default_lazy=config.default_lazy)
    specs.load_files(config.spec_files)

    logger.info(
        "runtime_built",
        spec_files=[str(p) for p in config.spec_files],
        plugin_count=len(context.registry),
        override_count=len(config.plugin_overrides),
        lockfile=str(config.lockfile_path),
    )
    return Runtime(context=context, scheduler=scheduler, specs=specs)
