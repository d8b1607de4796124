"""
Server-side session stores.

A session maps an opaque random id (carried in the signed cookie) to the
authenticated user. The database-backed store shares the storage engine and
creates its own table on first use.
"""

from __future__ import annotations

import secrets
import threading
from datetime import timedelta
from typing import Dict, Optional, Protocol

from sqlalchemy import Column, DateTime, Integer, String, delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from runway.errors import StorageError
from runway.records import SessionRecord, utcnow


class SessionStore(Protocol):
    """Interface the auth layer needs from a session backend."""

    def create(self, user_id: int, ttl_seconds: int) -> SessionRecord:
        ...

    def get(self, sid: str) -> Optional[SessionRecord]:
        ...

    def destroy(self, sid: str) -> None:
        ...

    def prune_expired(self) -> int:
        ...


def _new_sid() -> str:
    return secrets.token_urlsafe(32)


class InMemorySessionStore:
    """Dictionary-backed sessions for development and tests."""

    def __init__(self):
        self.sessions: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def create(self, user_id: int, ttl_seconds: int) -> SessionRecord:
        now = utcnow()
        record = SessionRecord(
            sid=_new_sid(),
            user_id=user_id,
            expires_at=now + timedelta(seconds=ttl_seconds),
            created_at=now,
        )
        with self._lock:
            self.sessions[record.sid] = record
        return record

    def get(self, sid: str) -> Optional[SessionRecord]:
        with self._lock:
            record = self.sessions.get(sid)
            if record and record.is_expired():
                del self.sessions[sid]
                return None
            return record

    def destroy(self, sid: str) -> None:
        with self._lock:
            self.sessions.pop(sid, None)

    def prune_expired(self) -> int:
        now = utcnow()
        with self._lock:
            expired = [sid for sid, r in self.sessions.items() if r.is_expired(now)]
            for sid in expired:
                del self.sessions[sid]
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self.sessions.clear()


SessionBase = declarative_base()


class SessionRow(SessionBase):
    __tablename__ = "sessions"

    sid = Column(String, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class DatabaseSessionStore:
    """
    SQLAlchemy-backed session store sharing the storage connection pool.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.Session = sessionmaker(
            bind=engine, class_=Session, expire_on_commit=False, future=True
        )
        try:
            SessionRow.__table__.create(engine, checkfirst=True)
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    @staticmethod
    def _to_record(row: SessionRow) -> SessionRecord:
        return SessionRecord(
            sid=row.sid,
            user_id=row.user_id,
            expires_at=row.expires_at,
            created_at=row.created_at,
        )

    def create(self, user_id: int, ttl_seconds: int) -> SessionRecord:
        now = utcnow()
        row = SessionRow(
            sid=_new_sid(),
            user_id=user_id,
            expires_at=now + timedelta(seconds=ttl_seconds),
            created_at=now,
        )
        try:
            with self.Session() as session:
                session.add(row)
                session.commit()
                return self._to_record(row)
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def get(self, sid: str) -> Optional[SessionRecord]:
        try:
            with self.Session() as session:
                row = session.get(SessionRow, sid)
                if not row:
                    return None
                record = self._to_record(row)
                if record.is_expired():
                    session.delete(row)
                    session.commit()
                    return None
                return record
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def destroy(self, sid: str) -> None:
        try:
            with self.Session() as session:
                session.execute(delete(SessionRow).where(SessionRow.sid == sid))
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def prune_expired(self) -> int:
        try:
            with self.Session() as session:
                result = session.execute(
                    delete(SessionRow).where(SessionRow.expires_at <= utcnow())
                )
                session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc
