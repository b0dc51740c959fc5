"""Application bootstrap helpers."""

from __future__ import annotations

import logging
from typing import Optional

from .config import AppConfig, load_config
from .db import MeasurementSink, init_sink
from .errors import PersistenceError
from .logging_setup import configure_logging
from .measurements.manager import MeasurementManager
from .measurements.probe_runner import ProbeRunner
from .measurements.store import ResultStore
from .scheduler import SchedulerService
from .web.app import create_web_app

LOGGER = logging.getLogger(__name__)


class ApplicationContext:
    """Holds shared singletons for the service."""

    def __init__(self, config: AppConfig):
        self.config = config
        configure_logging(config)
        self.sink: Optional[MeasurementSink] = (
            init_sink(config.target.sink) if config.target.persistence_enabled else None
        )
        self.store = ResultStore(config.result_path, self.sink)
        self.store.load_from_disk()
        self.runner = ProbeRunner(config.probes)
        self.measurements = MeasurementManager(config, self.runner, self.store)
        self.scheduler = SchedulerService(config, self.measurements)
        self.web_app = create_web_app(config=config, store=self.store)

    def start(self, run_now: bool = False) -> None:
        if self.sink is not None:
            try:
                self.sink.ensure_table()
            except PersistenceError as exc:
                LOGGER.warning("Database not ready at startup, will retry on first insert: %s", exc)
        self.scheduler.start(run_now=run_now)

    def stop(self) -> None:
        self.scheduler.shutdown()
        if self.sink is not None:
            self.sink.dispose()


def bootstrap(config_path: Optional[str] = None) -> ApplicationContext:
    """Load configuration and wire dependencies."""

    config = load_config(config_path)
    return ApplicationContext(config)
