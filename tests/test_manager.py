"""Tests for the measurement cycle."""

import json
from dataclasses import replace
from pathlib import Path
from unittest.mock import Mock

import pytest

from conftest import IPERF_OUTPUT, PING_OUTPUT, completed
from iperfmon.config import AppConfig
from iperfmon.db import MeasurementSink
from iperfmon.errors import (
    ParseError,
    ParseErrorKind,
    PersistenceError,
    PersistenceErrorKind,
    ProbeError,
    ProbeErrorKind,
)
from iperfmon.measurements.manager import MeasurementManager
from iperfmon.measurements.models import Measurement
from iperfmon.measurements.probe_runner import ProbeRunner
from iperfmon.measurements.store import ResultStore
from iperfmon.web.app import create_web_app


@pytest.fixture
def runner_mock() -> Mock:
    runner = Mock(spec=ProbeRunner)
    runner.run_throughput_probe.return_value = (940.0, 935.0)
    runner.run_latency_probe.return_value = 12.345
    return runner


@pytest.fixture
def manager(app_config: AppConfig, runner_mock: Mock, store: ResultStore) -> MeasurementManager:
    return MeasurementManager(app_config, runner_mock, store)


def test_cycle_maps_sender_to_upload(manager: MeasurementManager, store: ResultStore) -> None:
    """Stores sender as upload and receiver as download."""
    result = manager.run_cycle()

    assert result.upload_mbps == 940.0
    assert result.download_mbps == 935.0
    assert result.latency_ms == 12.345
    assert store.read() is result


def test_cycle_runs_probes_against_target(manager: MeasurementManager, runner_mock: Mock) -> None:
    """Probes the configured target with the configured sample count."""
    manager.run_cycle()

    runner_mock.run_throughput_probe.assert_called_once_with("192.168.1.10")
    runner_mock.run_latency_probe.assert_called_once_with("192.168.1.10", 5)


def test_failed_throughput_keeps_latency(manager: MeasurementManager, runner_mock: Mock) -> None:
    """Marks throughput unavailable but still records latency."""
    runner_mock.run_throughput_probe.side_effect = ProbeError(ProbeErrorKind.TIMEOUT, "iperf3 hung")

    result = manager.run_cycle()

    assert result.upload_mbps is None
    assert result.download_mbps is None
    assert result.latency_ms == 12.345


def test_failed_latency_keeps_throughput(manager: MeasurementManager, runner_mock: Mock) -> None:
    """Marks latency unavailable when ping yields no samples."""
    runner_mock.run_latency_probe.side_effect = ParseError(ParseErrorKind.NO_SAMPLES, "no samples")

    result = manager.run_cycle()

    assert result.latency_ms is None
    assert result.upload_mbps == 940.0


def test_cycle_without_data_keeps_previous(
    manager: MeasurementManager, runner_mock: Mock, store: ResultStore, measurement: Measurement
) -> None:
    """Leaves the previous measurement in place when every probe fails."""
    store.update(measurement)
    runner_mock.run_throughput_probe.side_effect = ProbeError(ProbeErrorKind.EXECUTION_FAILED, "down")
    runner_mock.run_latency_probe.side_effect = ProbeError(ProbeErrorKind.EXECUTION_FAILED, "down")

    assert manager.run_cycle() is None
    assert store.read() is measurement
    assert not store.result_path.exists()


def test_disk_failure_still_updates_slot(app_config: AppConfig, runner_mock: Mock, tmp_path: Path) -> None:
    """Keeps the fresh value readable when the snapshot cannot be written."""
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = ResultStore(blocker / "netdata.json")
    manager = MeasurementManager(app_config, runner_mock, store)

    result = manager.run_cycle()

    assert store.read() is result
    assert result.upload_mbps == 940.0


def test_sink_failure_keeps_disk_and_memory(
    app_config: AppConfig, runner_mock: Mock, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    """Logs sink errors without undoing earlier steps."""
    config = replace(app_config, target=replace(app_config.target, persistence_enabled=True))
    sink = Mock(spec=MeasurementSink)
    sink.insert.side_effect = PersistenceError(PersistenceErrorKind.SINK_UNAVAILABLE, "refused")
    store = ResultStore(tmp_path / "netdata.json", sink)
    manager = MeasurementManager(config, runner_mock, store)

    result = manager.run_cycle()

    sink.insert.assert_called_once_with(result)
    assert store.read() is result
    assert store.result_path.exists()
    assert "Error storing data in database" in caplog.text


def test_sink_skipped_when_disabled(app_config: AppConfig, runner_mock: Mock, tmp_path: Path) -> None:
    """Does not touch the sink when persistence is disabled."""
    sink = Mock(spec=MeasurementSink)
    store = ResultStore(tmp_path / "netdata.json", sink)

    MeasurementManager(app_config, runner_mock, store).run_cycle()

    sink.insert.assert_not_called()


def test_end_to_end_cycle_and_http(app_config: AppConfig, store: ResultStore, fake_run) -> None:
    """Runs real parsing through to the persisted file and the HTTP response."""
    fake_run({"iperf3": completed("iperf3", IPERF_OUTPUT), "ping": completed("ping", PING_OUTPUT)})
    manager = MeasurementManager(app_config, ProbeRunner(app_config.probes), store)

    manager.run_cycle()

    document = json.loads(store.result_path.read_text(encoding="utf-8"))
    assert document["upload"] == "940.000"
    assert document["download"] == "935.000"
    assert document["pingTime"] == "12.345"

    client = create_web_app(app_config, store).test_client()
    response = client.get("/api/speedtest/latest")
    body = response.get_json()

    assert response.status_code == 200
    assert body["message"] == "ok"
    assert body["data"]["ping"] == 12.345
    assert body["data"]["download"] == 935.0
    assert body["data"]["upload"] == 940.0


def test_cycle_result_matches_reloaded_snapshot(manager: MeasurementManager, store: ResultStore) -> None:
    """Serves the same timestamp before and after a restart."""
    result = manager.run_cycle()

    reloaded = ResultStore(store.result_path).load_from_disk()

    assert result.taken_at.microsecond == 0
    assert reloaded == result
    assert reloaded.taken_at.isoformat() == result.taken_at.isoformat()
