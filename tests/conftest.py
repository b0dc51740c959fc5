"""Shared fixtures for the iperfmon test-suite."""

from __future__ import annotations

import json
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List

import pytest

from iperfmon.config import AppConfig, load_config
from iperfmon.measurements.models import Measurement
from iperfmon.measurements.store import ResultStore

IPERF_OUTPUT = """\
Connecting to host 192.168.1.10, port 5201
[  5] local 192.168.1.20 port 50412 connected to 192.168.1.10 port 5201
[ ID] Interval           Transfer     Bitrate         Retr  Cwnd
[  5]   0.00-1.00   sec   112 MBytes   941 Mbits/sec    0    378 KBytes
[  5]   1.00-2.00   sec   112 MBytes   939 Mbits/sec    0    378 KBytes
- - - - - - - - - - - - - - - - - - - - - - - - -
[ ID] Interval           Transfer     Bitrate         Retr
[  5]   0.00-10.00  sec  1.09 GBytes   940 Mbits/sec    0             sender
[  5]   0.00-10.04  sec  1.09 GBytes   935 Mbits/sec                  receiver

iperf Done.
"""

PING_OUTPUT = """\
PING 192.168.1.10 (192.168.1.10) 56(84) bytes of data.
64 bytes from 192.168.1.10: icmp_seq=1 ttl=64 time=12.1 ms
64 bytes from 192.168.1.10: icmp_seq=2 ttl=64 time=12.3 ms
64 bytes from 192.168.1.10: icmp_seq=3 ttl=64 time=12.345 ms
64 bytes from 192.168.1.10: icmp_seq=4 ttl=64 time=12.4 ms
64 bytes from 192.168.1.10: icmp_seq=5 ttl=64 time=12.58 ms

--- 192.168.1.10 ping statistics ---
5 packets transmitted, 5 received, 0% packet loss, time 4006ms
rtt min/avg/max/mdev = 12.100/12.345/12.580/0.160 ms
"""

TZ = timezone(timedelta(hours=2))


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "iperf_server_ip": "192.168.1.10",
                "use_db": False,
                "db_user": "iperf",
                "db_pass": "secret",
                "db_host": "db",
                "db_port": 3306,
                "db_name": "speedtest",
                "scheduler": {"timezone": "UTC"},
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def app_config(config_file: Path) -> AppConfig:
    return load_config(str(config_file), environ={})


@pytest.fixture
def store(app_config: AppConfig) -> ResultStore:
    return ResultStore(app_config.result_path)


@pytest.fixture
def measurement() -> Measurement:
    return Measurement(
        latency_ms=12.345,
        download_mbps=935.0,
        upload_mbps=940.0,
        taken_at=datetime(2024, 5, 1, 14, 0, 0, tzinfo=TZ),
    )


@pytest.fixture
def fake_run(monkeypatch: pytest.MonkeyPatch) -> Callable:
    """Replace ``subprocess.run`` with canned results keyed by program name."""

    def install(results: Dict[str, object]) -> List[List[str]]:
        calls: List[List[str]] = []

        def run(cmd, **kwargs):
            calls.append(list(cmd))
            result = results[cmd[0]]
            if isinstance(result, BaseException):
                raise result
            return result

        monkeypatch.setattr(subprocess, "run", run)
        return calls

    return install


def completed(cmd: str, stdout: str, returncode: int = 0) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[cmd], returncode=returncode, stdout=stdout)
