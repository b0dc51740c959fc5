"""Configuration loading helpers for the iperf monitor."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError, ConfigErrorKind

DEFAULT_CONFIG_NAME = "config.json"

# Environment variable -> flat config key.
ENV_OVERRIDES = {
    "IPERF_SERVER_IP": "iperf_server_ip",
    "USE_DB": "use_db",
    "MYSQL_USER": "db_user",
    "MYSQL_PASSWORD": "db_pass",
    "DB_HOST": "db_host",
    "DB_PORT": "db_port",
    "MYSQL_DATABASE": "db_name",
}

_TRUE_LITERALS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_LITERALS = {"0", "f", "F", "FALSE", "false", "False"}


@dataclass
class PathsConfig:
    data_dir: Path
    logs_dir: Path


@dataclass
class SinkCredentials:
    user: str = ""
    password: str = ""
    host: str = "localhost"
    port: int = 3306
    name: str = ""
    driver: str = "mysql+pymysql"
    table: Optional[str] = None

    @property
    def table_name(self) -> str:
        return self.table or self.name


@dataclass
class TargetConfig:
    address: str
    persistence_enabled: bool = False
    sink: SinkCredentials = field(default_factory=SinkCredentials)


@dataclass
class ProbeConfig:
    iperf_binary: str = "iperf3"
    iperf_port: int = 5201
    iperf_duration: int = 10
    ping_binary: str = "ping"
    ping_count: int = 5
    timeout_margin: int = 15


@dataclass
class SchedulerConfig:
    cron: str = "0 * * * *"
    timezone: Optional[str] = None
    run_on_start: bool = False


@dataclass
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    server_host: str = "iperf.lan"
    server_name: str = "iperf"
    reverse_proxy_headers: bool = False


@dataclass
class ExportConfig:
    result_file: str = "netdata.json"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file_name: str = "iperfmon.log"
    access_file_name: str = "access.log"
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 5


@dataclass
class AppConfig:
    root_dir: Path
    source_path: Path
    paths: PathsConfig
    target: TargetConfig
    probes: ProbeConfig
    scheduler: SchedulerConfig
    web: WebConfig
    export: ExportConfig
    logging: LoggingConfig

    @property
    def result_path(self) -> Path:
        return self.paths.data_dir / self.export.result_file


def _as_path(base: Path, maybe_path: Optional[str]) -> Path:
    if not maybe_path:
        raise ConfigError(ConfigErrorKind.MALFORMED, "Path configuration entries cannot be empty")
    path = (base / maybe_path).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


def _parse_bool(raw: str) -> Optional[bool]:
    if raw in _TRUE_LITERALS:
        return True
    if raw in _FALSE_LITERALS:
        return False
    return None


def apply_env_overrides(data: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Overlay non-empty environment variables onto the flat config keys.

    Boolean and integer variables that fail to parse are ignored, leaving the
    file value in place.
    """

    environ = os.environ if environ is None else environ
    merged = dict(data)
    for env_name, key in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if not raw:
            continue
        if key == "use_db":
            value = _parse_bool(raw)
            if value is not None:
                merged[key] = value
        elif key == "db_port":
            try:
                merged[key] = int(raw)
            except ValueError:
                continue
        else:
            merged[key] = raw
    return merged


def _read_document(source_path: Path) -> Dict[str, Any]:
    try:
        text = source_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(ConfigErrorKind.UNREADABLE, f"Failed to read config file {source_path}: {exc}") from exc

    try:
        if source_path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text) if text.strip() else {}
    except (yaml.YAMLError, ValueError) as exc:
        raise ConfigError(ConfigErrorKind.MALFORMED, f"Failed to parse config file {source_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(ConfigErrorKind.MALFORMED, f"Config file {source_path} must contain a mapping")
    return data


def write_config(source_path: Path, data: Dict[str, Any]) -> None:
    """Write the merged config document back to ``source_path``."""

    if source_path.suffix.lower() in (".yaml", ".yml"):
        payload = yaml.safe_dump(data, sort_keys=False)
    else:
        payload = json.dumps(data, indent=4)
    try:
        source_path.write_text(payload, encoding="utf-8")
    except OSError as exc:
        raise ConfigError(ConfigErrorKind.UNWRITABLE, f"Failed to write config file {source_path}: {exc}") from exc


def _build_target(data: Dict[str, Any]) -> TargetConfig:
    address = data.get("iperf_server_ip") or ""
    use_db = data.get("use_db", False)
    port = data.get("db_port", 3306)
    if not isinstance(address, str):
        raise ConfigError(ConfigErrorKind.MALFORMED, "iperf_server_ip must be a string")
    if not isinstance(use_db, bool):
        raise ConfigError(ConfigErrorKind.MALFORMED, "use_db must be a boolean")
    if isinstance(port, bool) or not isinstance(port, int):
        raise ConfigError(ConfigErrorKind.MALFORMED, "db_port must be an integer")

    sink = SinkCredentials(
        user=str(data.get("db_user") or ""),
        password=str(data.get("db_pass") or ""),
        host=str(data.get("db_host") or "localhost"),
        port=port,
        name=str(data.get("db_name") or ""),
        driver=str(data.get("db_driver") or "mysql+pymysql"),
        table=data.get("db_table"),
    )
    if use_db and not sink.table_name:
        raise ConfigError(ConfigErrorKind.MALFORMED, "db_name is required when use_db is enabled")
    return TargetConfig(address=address, persistence_enabled=use_db, sink=sink)


def _section(cls, data: Dict[str, Any], name: str):
    values = data.get(name) or {}
    if not isinstance(values, dict):
        raise ConfigError(ConfigErrorKind.MALFORMED, f"Section '{name}' must be a mapping")
    try:
        return cls(**values)
    except TypeError as exc:
        raise ConfigError(ConfigErrorKind.MALFORMED, f"Invalid '{name}' section: {exc}") from exc


def load_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    write_back: bool = True,
) -> AppConfig:
    """Load configuration, overlay the environment and persist the result."""

    source_path = Path(path).resolve() if path else Path.cwd() / DEFAULT_CONFIG_NAME
    root_dir = source_path.parent
    if not source_path.exists():
        raise ConfigError(ConfigErrorKind.UNREADABLE, f"Missing configuration file at {source_path}")

    data = apply_env_overrides(_read_document(source_path), environ)
    if write_back:
        write_config(source_path, data)

    paths_data = data.get("paths") or {}
    paths = PathsConfig(
        data_dir=_as_path(root_dir, paths_data.get("data_dir", "data")),
        logs_dir=_as_path(root_dir, paths_data.get("logs_dir", "logs")),
    )

    return AppConfig(
        root_dir=root_dir,
        source_path=source_path,
        paths=paths,
        target=_build_target(data),
        probes=_section(ProbeConfig, data, "probes"),
        scheduler=_section(SchedulerConfig, data, "scheduler"),
        web=_section(WebConfig, data, "web"),
        export=_section(ExportConfig, data, "export"),
        logging=_section(LoggingConfig, data, "logging"),
    )
