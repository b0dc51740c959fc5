"""JSON snapshot of the latest measurement on disk."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from .measurements.models import Measurement
from .measurements.parser import parse_number


class SnapshotExporter:
    """Reads and writes ``netdata.json``.

    Numbers are stored as text with three decimals and the timestamp as
    RFC3339, so the file stays readable by consumers of the older format.
    """

    def __init__(self, target: Path):
        self.target = target

    @staticmethod
    def _format(value: Optional[float]) -> Optional[str]:
        return None if value is None else f"{value:.3f}"

    @staticmethod
    def _parse(raw: Any) -> Optional[float]:
        if raw is None:
            return None
        return parse_number(str(raw))

    def to_document(self, measurement: Measurement) -> Dict[str, Optional[str]]:
        return {
            "upload": self._format(measurement.upload_mbps),
            "download": self._format(measurement.download_mbps),
            "pingTime": self._format(measurement.latency_ms),
            "timeStamp": measurement.taken_at.isoformat(timespec="seconds"),
        }

    def from_document(self, document: Dict[str, Any]) -> Measurement:
        """Rebuild a Measurement, rejecting values a probe could never produce.

        Raises ParseError for negative or non-finite numbers and ValueError for
        a timestamp without a UTC offset.
        """

        raw_timestamp = document["timeStamp"]
        clean = raw_timestamp.replace("Z", "+00:00") if raw_timestamp.endswith("Z") else raw_timestamp
        taken_at = datetime.fromisoformat(clean)
        if taken_at.utcoffset() is None:
            raise ValueError(f"timestamp {raw_timestamp!r} has no UTC offset")
        return Measurement(
            latency_ms=self._parse(document.get("pingTime")),
            download_mbps=self._parse(document.get("download")),
            upload_mbps=self._parse(document.get("upload")),
            taken_at=taken_at,
        )

    def write_snapshot(self, measurement: Measurement) -> Path:
        payload = json.dumps(self.to_document(measurement), indent=4)
        self.target.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=self.target.parent, prefix=".netdata-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(temp_name, self.target)
        except BaseException:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise
        return self.target

    def read_snapshot(self) -> Measurement:
        with self.target.open("r", encoding="utf-8") as handle:
            return self.from_document(json.load(handle))
