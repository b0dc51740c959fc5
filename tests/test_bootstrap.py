"""Tests for application wiring."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

import iperfmon
from iperfmon import ApplicationContext, bootstrap
from iperfmon.config import AppConfig
from iperfmon.logging_setup import ACCESS_LOGGER_NAME, configure_logging
from iperfmon.measurements.models import Measurement
from iperfmon.measurements.store import ResultStore


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(iperfmon, "configure_logging", lambda config: None)


def test_bootstrap_wires_components(config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Builds the store, pipeline and web app without a sink by default."""
    monkeypatch.delenv("USE_DB", raising=False)
    monkeypatch.delenv("IPERF_SERVER_IP", raising=False)

    context = bootstrap(str(config_file))

    assert isinstance(context, ApplicationContext)
    assert context.sink is None
    assert context.measurements.store is context.store
    assert context.store.read() is None
    assert context.web_app.test_client().get("/").status_code == 301


def test_bootstrap_serves_previous_snapshot(
    config_file: Path, measurement: Measurement, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Serves the last persisted measurement right after a restart."""
    monkeypatch.delenv("USE_DB", raising=False)
    ResultStore(config_file.parent / "data" / "netdata.json").persist_to_disk(measurement)

    context = bootstrap(str(config_file))
    response = context.web_app.test_client().get("/api/speedtest/latest")

    assert context.store.read() == measurement
    assert response.status_code == 200
    assert response.get_json()["data"]["upload"] == 940.0


@pytest.fixture
def restored_loggers():
    root = logging.getLogger()
    access = logging.getLogger(ACCESS_LOGGER_NAME)
    saved = (list(root.handlers), root.level, list(access.handlers), access.level, access.propagate)
    yield root, access
    for logger in (root, access):
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    access.handlers[:] = saved[2]
    access.setLevel(saved[3])
    access.propagate = saved[4]


def test_configure_logging_splits_service_and_access_logs(app_config: AppConfig, restored_loggers) -> None:
    """Keeps access lines out of the service log, both rotating by size."""
    root, access = restored_loggers

    configure_logging(app_config)

    root_files = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
    access_files = [h for h in access.handlers if isinstance(h, RotatingFileHandler)]
    assert [Path(h.baseFilename).name for h in root_files] == ["iperfmon.log"]
    assert [Path(h.baseFilename).name for h in access_files] == ["access.log"]
    assert root_files[0].maxBytes == app_config.logging.max_bytes
    assert access_files[0].backupCount == app_config.logging.backup_count
    assert root.level == logging.INFO
    assert access.propagate is False
    assert logging.getLogger("apscheduler").level == logging.WARNING
