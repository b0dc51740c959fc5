"""Parsers for iperf3 and ping text output.

Both parsers work line by line: each line is classified first, then the
numeric field is extracted and normalized. Malformed numbers never raise; they
are logged and skipped.
"""

from __future__ import annotations

import logging
import math
import re
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from ..errors import ParseError, ParseErrorKind

LOGGER = logging.getLogger(__name__)

# Multipliers from <prefix>bits/sec to Mbits/sec.
UNIT_TO_MBPS = {
    "": 1e-6,
    "k": 1e-3,
    "m": 1.0,
    "g": 1e3,
}

_SUMMARY_RE = re.compile(
    r"(?P<value>\S+)\s+(?P<prefix>[kKmMgG]?)bits/sec\b.*\b(?P<role>sender|receiver)\s*$"
)
# Windows ping reports sub-millisecond replies as "time<1ms"; the bound is used.
_SAMPLE_RE = re.compile(r"\btime[=<](?P<value>[^\s,;]+?)(?=ms\b|[\s,;]|$)")


class LineKind(Enum):
    SENDER = "sender"
    RECEIVER = "receiver"
    LATENCY_SAMPLE = "latency_sample"
    OTHER = "other"


def classify_line(line: str) -> LineKind:
    match = _SUMMARY_RE.search(line)
    if match:
        return LineKind.SENDER if match.group("role") == "sender" else LineKind.RECEIVER
    if _SAMPLE_RE.search(line):
        return LineKind.LATENCY_SAMPLE
    return LineKind.OTHER


def parse_number(raw: str) -> float:
    """Parse a non-negative finite number or raise MALFORMED_NUMBER."""
    try:
        value = float(raw)
    except ValueError as exc:
        raise ParseError(ParseErrorKind.MALFORMED_NUMBER, f"not a number: {raw!r}") from exc
    if not math.isfinite(value) or value < 0:
        raise ParseError(ParseErrorKind.MALFORMED_NUMBER, f"out of range: {raw!r}")
    return value


def _summary_rate(line: str) -> float:
    match = _SUMMARY_RE.search(line)
    if match is None:
        raise ParseError(ParseErrorKind.NO_MATCH, f"not a summary line: {line!r}")
    magnitude = parse_number(match.group("value"))
    return magnitude * UNIT_TO_MBPS[match.group("prefix").lower()]


def _lines_of(raw_text: str, kind: LineKind) -> Iterator[str]:
    for line in raw_text.splitlines():
        if classify_line(line) is kind:
            yield line


def _last_rate(raw_text: str, kind: LineKind) -> Optional[float]:
    """Rate of the last well-formed summary line of ``kind``.

    With parallel streams iperf3 prints one summary per stream followed by a
    ``[SUM]`` line, so the last line is the aggregate.
    """

    rate: Optional[float] = None
    for line in _lines_of(raw_text, kind):
        try:
            rate = _summary_rate(line)
        except ParseError as exc:
            LOGGER.warning("Skipping iperf3 %s line (%s)", kind.value, exc)
    if rate is None:
        LOGGER.warning("%s: no iperf3 %s summary found", ParseErrorKind.NO_MATCH.value, kind.value)
    return rate


def parse_throughput(raw_text: str) -> Tuple[Optional[float], Optional[float]]:
    """Return ``(sender_mbps, receiver_mbps)``; missing values are ``None``."""

    return _last_rate(raw_text, LineKind.SENDER), _last_rate(raw_text, LineKind.RECEIVER)


def latency_samples(raw_text: str) -> List[float]:
    samples: List[float] = []
    for line in _lines_of(raw_text, LineKind.LATENCY_SAMPLE):
        for match in _SAMPLE_RE.finditer(line):
            try:
                samples.append(parse_number(match.group("value")))
            except ParseError as exc:
                LOGGER.warning("Skipping ping sample (%s)", exc)
    return samples


def parse_latency(raw_text: str) -> float:
    """Average round-trip time in ms over every ``time=<n>`` sample."""

    samples = latency_samples(raw_text)
    if not samples:
        raise ParseError(ParseErrorKind.NO_SAMPLES, "no round-trip samples in ping output")
    return math.fsum(samples) / len(samples)
