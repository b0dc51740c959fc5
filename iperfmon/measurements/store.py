"""Latest-result slot shared between the pipeline and the web app."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from ..db import MeasurementSink
from ..errors import ParseError, PersistenceError, PersistenceErrorKind
from ..exporter import SnapshotExporter
from .models import Measurement

LOGGER = logging.getLogger(__name__)


class ResultStore:
    """Holds the most recent Measurement and persists it.

    The slot is swapped under a lock and Measurement is immutable, so readers
    always get one complete measurement, old or new.
    """

    def __init__(self, result_path: Path, sink: Optional[MeasurementSink] = None):
        self.exporter = SnapshotExporter(result_path)
        self.sink = sink
        self._latest: Optional[Measurement] = None
        self._lock = threading.Lock()

    @property
    def result_path(self) -> Path:
        return self.exporter.target

    def update(self, measurement: Measurement) -> None:
        with self._lock:
            self._latest = measurement

    def read(self) -> Optional[Measurement]:
        with self._lock:
            return self._latest

    def persist_to_disk(self, measurement: Measurement) -> Path:
        try:
            return self.exporter.write_snapshot(measurement)
        except OSError as exc:
            raise PersistenceError(
                PersistenceErrorKind.DISK_WRITE_FAILED, f"cannot write {self.result_path}: {exc}"
            ) from exc

    def persist_to_sink(self, measurement: Measurement) -> bool:
        """Insert ``measurement`` into the sink. Returns False when no sink is configured."""

        if self.sink is None:
            return False
        self.sink.insert(measurement)
        return True

    def load_from_disk(self) -> Optional[Measurement]:
        """Seed the slot from the last persisted snapshot, if any."""

        if not self.result_path.exists():
            LOGGER.info("No previous measurement at %s", self.result_path)
            return None
        try:
            measurement = self.exporter.read_snapshot()
        except (OSError, ValueError, KeyError, TypeError, AttributeError, ParseError) as exc:
            LOGGER.warning("Ignoring unreadable measurement file %s: %s", self.result_path, exc)
            return None
        with self._lock:
            if self._latest is None:
                self._latest = measurement
        LOGGER.info("Loaded previous measurement taken at %s", measurement.taken_at.isoformat())
        return measurement
