"""Shared dataclasses for measurements."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Measurement:
    """One cycle's result. ``None`` marks a value the probes could not produce."""

    latency_ms: Optional[float]
    download_mbps: Optional[float]
    upload_mbps: Optional[float]
    taken_at: datetime

    @property
    def has_data(self) -> bool:
        return any(value is not None for value in (self.latency_ms, self.download_mbps, self.upload_mbps))


@dataclass(frozen=True)
class ProbeOutcome:
    raw_output: str
    succeeded: bool
    error_detail: Optional[str] = None
