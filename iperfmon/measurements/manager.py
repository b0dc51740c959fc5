"""Measurement cycle orchestration."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Tuple

from ..config import AppConfig
from ..errors import ParseError, PersistenceError, ProbeError
from .models import Measurement
from .probe_runner import ProbeRunner
from .store import ResultStore

LOGGER = logging.getLogger(__name__)


def _fmt(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.3f}"


class MeasurementManager:
    def __init__(self, config: AppConfig, runner: ProbeRunner, store: ResultStore):
        self.config = config
        self.runner = runner
        self.store = store

    def _measure_throughput(self, target: str) -> Tuple[Optional[float], Optional[float]]:
        try:
            return self.runner.run_throughput_probe(target)
        except ProbeError as exc:
            LOGGER.error("Throughput probe against %s failed: %s", target, exc)
            return None, None

    def _measure_latency(self, target: str) -> Optional[float]:
        try:
            return self.runner.run_latency_probe(target, self.config.probes.ping_count)
        except (ProbeError, ParseError) as exc:
            LOGGER.error("Latency probe against %s failed: %s", target, exc)
            return None

    def measure(self) -> Measurement:
        """Run both probes sequentially and build a Measurement."""

        target = self.config.target.address
        sender, receiver = self._measure_throughput(target)
        latency = self._measure_latency(target)
        return Measurement(
            latency_ms=latency,
            download_mbps=receiver,
            upload_mbps=sender,
            # Whole seconds, matching the RFC3339 snapshot on disk.
            taken_at=datetime.now().astimezone().replace(microsecond=0),
        )

    def record(self, measurement: Measurement) -> None:
        """Publish ``measurement`` to the slot, then disk, then the sink.

        Each persistence step fails independently and never undoes the
        previous ones.
        """

        self.store.update(measurement)

        try:
            path = self.store.persist_to_disk(measurement)
            LOGGER.debug("Wrote measurement snapshot to %s", path)
        except PersistenceError as exc:
            LOGGER.error("Failed to save measurement: %s", exc)

        if not self.config.target.persistence_enabled:
            return
        try:
            if self.store.persist_to_sink(measurement):
                LOGGER.info(
                    "Data stored successfully: up %s / down %s Mbps, ping %s ms",
                    _fmt(measurement.upload_mbps),
                    _fmt(measurement.download_mbps),
                    _fmt(measurement.latency_ms),
                )
        except PersistenceError as exc:
            LOGGER.error("Error storing data in database: %s", exc)

    def run_cycle(self) -> Optional[Measurement]:
        """One complete probe, parse, store and persist pass.

        Returns None when no probe produced any value; the previous
        measurement then stays in place.
        """

        measurement = self.measure()
        if not measurement.has_data:
            LOGGER.error(
                "No data from any probe against %s; keeping previous measurement",
                self.config.target.address,
            )
            return None

        self.record(measurement)
        LOGGER.info(
            "Measurement at %s: up %s Mbps / down %s Mbps / ping %s ms",
            measurement.taken_at.isoformat(timespec="seconds"),
            _fmt(measurement.upload_mbps),
            _fmt(measurement.download_mbps),
            _fmt(measurement.latency_ms),
        )
        return measurement
