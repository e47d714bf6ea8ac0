"""SQLite-backed persistence layer."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..clock import Clock, utc_now
from ..errors import StorageError
from .models import Base, TimeboxRow

logger = logging.getLogger(__name__)


def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


class TimeboxStore:
    """Own the database engine and serialize every command behind one lock.

    ``path=None`` selects a private in-memory database. All access goes through
    :meth:`transaction`, which commits on success and rolls back on any error,
    so a command's side effects land together or not at all.
    """

    def __init__(
        self,
        path: Path | str | None,
        *,
        engine_factory: Callable[[], Engine] | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._path = Path(path) if path is not None else None
        self._engine_factory = engine_factory or self._default_engine_factory
        self._clock = clock or utc_now
        self._engine: Engine | None = None
        self._sessionmaker: sessionmaker[Session] | None = None
        self._lock = threading.Lock()
        self._init_lock = threading.Lock()

    @property
    def path(self) -> Path | None:
        return self._path

    def now(self) -> datetime:
        return self._clock()

    def _default_engine_factory(self) -> Engine:
        if self._path is None:
            url = "sqlite://"
        else:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite:///{self._path}"
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        event.listen(engine, "connect", _enable_foreign_keys)
        return engine

    def _ensure_sessionmaker(self) -> sessionmaker[Session]:
        if self._sessionmaker is not None:
            return self._sessionmaker
        with self._init_lock:
            if self._sessionmaker is None:
                try:
                    engine = self._engine or self._engine_factory()
                    Base.metadata.create_all(engine)
                except (SQLAlchemyError, OSError) as exc:
                    raise StorageError(f"Unable to open timebox database: {exc}") from exc
                self._engine = engine
                self._sessionmaker = sessionmaker(bind=engine, expire_on_commit=False)
                logger.debug(
                    "Timebox database ready", extra={"path": str(self._path or ":memory:")}
                )
            return self._sessionmaker

    def ping(self) -> bool:
        """Verify that the schema exists and the database answers queries."""

        with self.transaction() as session:
            session.execute(select(TimeboxRow.id).limit(1))
        return True

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield an ORM session that runs as a single atomic command."""

        factory = self._ensure_sessionmaker()
        with self._lock:
            session = factory()
            try:
                yield session
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError(str(exc)) from exc
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()

    def purge_timebox(self, timebox_id: int) -> bool:
        """Physically remove a timebox; its sessions and change log go with it."""

        with self.transaction() as session:
            row = session.get(TimeboxRow, timebox_id)
            if row is None:
                return False
            session.delete(row)
        logger.info("Purged timebox", extra={"timebox_id": timebox_id})
        return True

    def dispose(self) -> None:
        with self._init_lock, self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._sessionmaker = None


__all__ = ["TimeboxStore"]
