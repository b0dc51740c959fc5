"""Error taxonomy shared by the measurement pipeline."""

from __future__ import annotations

from enum import Enum


class ProbeErrorKind(str, Enum):
    EXECUTION_FAILED = "execution_failed"
    TIMEOUT = "timeout"


class ParseErrorKind(str, Enum):
    NO_MATCH = "no_match"
    NO_SAMPLES = "no_samples"
    MALFORMED_NUMBER = "malformed_number"


class PersistenceErrorKind(str, Enum):
    DISK_WRITE_FAILED = "disk_write_failed"
    SINK_UNAVAILABLE = "sink_unavailable"
    SINK_WRITE_FAILED = "sink_write_failed"


class ConfigErrorKind(str, Enum):
    UNREADABLE = "unreadable"
    MALFORMED = "malformed"
    UNWRITABLE = "unwritable"


class MonitorError(Exception):
    """Base class for errors carrying a ``kind`` discriminator."""

    def __init__(self, kind: Enum, message: str):
        super().__init__(message)
        self.kind = kind

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.args[0]}"


class ProbeError(MonitorError):
    pass


class ParseError(MonitorError):
    pass


class PersistenceError(MonitorError):
    pass


class ConfigError(MonitorError):
    pass
