"""Throughput and latency probes backed by iperf3 and ping."""

from __future__ import annotations

import logging
import platform
import subprocess
from typing import List, Optional, Tuple

from ..config import ProbeConfig
from ..errors import ProbeError, ProbeErrorKind
from .models import ProbeOutcome
from .parser import parse_latency, parse_throughput

LOGGER = logging.getLogger(__name__)

PING_FLAG = "-n" if platform.system().lower().startswith("win") else "-c"

# Seconds per ping sample with the default one-second interval.
PING_INTERVAL = 1


class ProbeRunner:
    """Runs the external probe tools against a target address.

    Every invocation is bounded: the child is killed and reaped when it
    outlives its deadline.
    """

    def __init__(self, config: Optional[ProbeConfig] = None):
        self.config = config or ProbeConfig()

    def run_throughput_probe(self, target: str) -> Tuple[Optional[float], Optional[float]]:
        """Return ``(sender_mbps, receiver_mbps)`` for one iperf3 run."""

        cmd = [
            self.config.iperf_binary,
            "-c",
            target,
            "-p",
            str(self.config.iperf_port),
            "-t",
            str(self.config.iperf_duration),
        ]
        timeout = self.config.iperf_duration + self.config.timeout_margin
        outcome = self.execute(cmd, timeout)
        if not outcome.succeeded:
            raise ProbeError(ProbeErrorKind.EXECUTION_FAILED, f"iperf3 failed: {outcome.error_detail}")
        return parse_throughput(outcome.raw_output)

    def run_latency_probe(self, target: str, sample_count: Optional[int] = None) -> float:
        """Return the average round-trip time in ms over ``sample_count`` pings."""

        count = sample_count or self.config.ping_count
        cmd = [self.config.ping_binary, PING_FLAG, str(count), target]
        timeout = count * PING_INTERVAL + self.config.timeout_margin
        outcome = self.execute(cmd, timeout)
        if not outcome.succeeded:
            raise ProbeError(ProbeErrorKind.EXECUTION_FAILED, f"ping failed: {outcome.error_detail}")
        return parse_latency(outcome.raw_output)

    def execute(self, cmd: List[str], timeout: float) -> ProbeOutcome:
        """Run ``cmd`` to completion with stderr folded into stdout.

        Raises ``ProbeError(TIMEOUT)`` when the deadline expires. Launch
        failures and non-zero exits come back as an unsuccessful outcome.
        """

        LOGGER.info("Running probe command: %s", " ".join(cmd))
        try:
            completed = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ProbeError(
                ProbeErrorKind.TIMEOUT, f"{cmd[0]} did not finish within {timeout:g}s"
            ) from exc
        except OSError as exc:
            LOGGER.warning("Could not launch %s: %s", cmd[0], exc)
            return ProbeOutcome(raw_output="", succeeded=False, error_detail=str(exc))

        output = completed.stdout or ""
        if completed.returncode != 0:
            detail = f"exit status {completed.returncode}: {_tail(output)}"
            LOGGER.warning("Probe command %s failed (%s)", cmd[0], detail)
            return ProbeOutcome(raw_output=output, succeeded=False, error_detail=detail)
        return ProbeOutcome(raw_output=output, succeeded=True)


def _tail(output: str, lines: int = 3) -> str:
    return " | ".join(line.strip() for line in output.strip().splitlines()[-lines:])
