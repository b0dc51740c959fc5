"""Relational sink for measurements."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Column, DateTime, Float, Integer, MetaData, Table, create_engine, insert
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .config import SinkCredentials
from .errors import PersistenceError, PersistenceErrorKind
from .measurements.models import Measurement

LOGGER = logging.getLogger(__name__)


def measurement_table(name: str, metadata: MetaData) -> Table:
    return Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("ping", Float),
        Column("download", Float),
        Column("upload", Float),
        Column("timestamp", DateTime),
    )


def sink_url(credentials: SinkCredentials) -> URL:
    return URL.create(
        credentials.driver,
        username=credentials.user or None,
        password=credentials.password or None,
        host=credentials.host,
        port=credentials.port,
        database=credentials.name,
    )


@contextmanager
def get_session(Session: sessionmaker) -> Iterator:
    session = Session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class MeasurementSink:
    """Appends one row per measurement; creates the table on first use."""

    def __init__(self, engine: Engine, table_name: str):
        self.engine = engine
        self.metadata = MetaData()
        self.table = measurement_table(table_name, self.metadata)
        self.Session = sessionmaker(bind=engine, future=True, expire_on_commit=False)
        self._table_ready = False
        self._lock = threading.Lock()

    def ensure_table(self) -> None:
        with self._lock:
            if self._table_ready:
                return
            try:
                self.metadata.create_all(self.engine, tables=[self.table], checkfirst=True)
            except OperationalError as exc:
                raise PersistenceError(
                    PersistenceErrorKind.SINK_UNAVAILABLE, f"database unreachable: {exc.orig}"
                ) from exc
            except SQLAlchemyError as exc:
                raise PersistenceError(
                    PersistenceErrorKind.SINK_WRITE_FAILED, f"failed to create table {self.table.name}: {exc}"
                ) from exc
            self._table_ready = True
            LOGGER.info("Measurement table %s is ready", self.table.name)

    def insert(self, measurement: Measurement) -> None:
        self.ensure_table()
        # DATETIME has no zone; store the local wall time.
        timestamp = measurement.taken_at.replace(tzinfo=None)
        statement = insert(self.table).values(
            ping=measurement.latency_ms,
            download=measurement.download_mbps,
            upload=measurement.upload_mbps,
            timestamp=timestamp,
        )
        try:
            with get_session(self.Session) as session:
                session.execute(statement)
        except OperationalError as exc:
            raise PersistenceError(
                PersistenceErrorKind.SINK_UNAVAILABLE, f"database unreachable: {exc.orig}"
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(PersistenceErrorKind.SINK_WRITE_FAILED, f"insert failed: {exc}") from exc

    def dispose(self) -> None:
        self.engine.dispose()


def init_sink(credentials: SinkCredentials) -> MeasurementSink:
    engine = create_engine(sink_url(credentials), pool_pre_ping=True, future=True)
    return MeasurementSink(engine, credentials.table_name)
