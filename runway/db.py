"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import copy
import itertools
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Protocol

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from runway.errors import ConstraintViolationError, StorageError
from runway.records import (
    EarlyAccessRecord,
    EmailRecord,
    PageantRecord,
    ProfileRecord,
    RecordingRecord,
    ReferenceMoveRecord,
    TrackingSettingsRecord,
    UserRecord,
    normalize_string_list,
    utcnow,
)
from runway.sessions import DatabaseSessionStore, InMemorySessionStore, SessionStore

PROFILE_FIELDS = ("goal", "goal_due_date", "profile_image_url", "gallery_images")
TRACKING_SETTINGS_FIELDS = (
    "shoulder_width_calibration",
    "distance_calibration",
    "camera_settings",
    "preferred_routines",
)
REFERENCE_MOVE_FIELDS = ("name", "category", "image_url", "joint_angles")


class Storage(Protocol):
    """Interface for database access."""

    session_store: SessionStore

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        ...

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        ...

    def create_user(
        self, username: str, password: str, email: str | None = None
    ) -> UserRecord:
        ...

    def update_user_last_practice(
        self, user_id: int, when: datetime | None = None
    ) -> Optional[UserRecord]:
        ...

    def increment_recordings_count(self, user_id: int) -> int:
        ...

    def get_user_profile(self, user_id: int) -> Optional[ProfileRecord]:
        ...

    def upsert_user_profile(self, user_id: int, patch: dict) -> ProfileRecord:
        ...

    def create_user_profile(self, user_id: int, patch: dict) -> ProfileRecord:
        ...

    def update_user_profile(self, user_id: int, patch: dict) -> ProfileRecord:
        ...

    def add_gallery_image(self, user_id: int, image_url: str) -> list[str]:
        ...

    def remove_gallery_image(self, user_id: int, image_url: str) -> list[str]:
        ...

    def get_recordings(self, user_id: int) -> list[RecordingRecord]:
        ...

    def save_recording(
        self,
        user_id: int,
        file_url: str,
        title: str | None = None,
        notes: str | None = None,
    ) -> RecordingRecord:
        ...

    def delete_recording(self, recording_id: int, user_id: int) -> bool:
        ...

    def get_tracking_settings(self, user_id: int) -> Optional[TrackingSettingsRecord]:
        ...

    def save_tracking_settings(
        self, user_id: int, patch: dict
    ) -> TrackingSettingsRecord:
        ...

    def get_reference_move(self, move_id: int) -> Optional[ReferenceMoveRecord]:
        ...

    def save_reference_move(
        self,
        move_id: int,
        name: str,
        category: str,
        image_url: str,
        joint_angles: dict[str, float] | None = None,
    ) -> ReferenceMoveRecord:
        ...

    def get_all_reference_moves(self) -> list[ReferenceMoveRecord]:
        ...

    def get_early_access_by_email(self, email: str) -> Optional[EarlyAccessRecord]:
        ...

    def save_early_access(
        self, email: str, name: str | None = None
    ) -> EarlyAccessRecord:
        ...

    def list_early_access_signups(self) -> list[EarlyAccessRecord]:
        ...

    def save_email_record(
        self,
        email: str,
        status: str,
        source: str | None = None,
        response_data: dict | None = None,
    ) -> EmailRecord:
        ...

    def get_email_records(self) -> list[EmailRecord]:
        ...

    def get_upcoming_pageants(self, user_id: int) -> list[PageantRecord]:
        ...

    def save_upcoming_pageant(
        self,
        user_id: int,
        name: str,
        location: str,
        date: datetime,
        special_note: str | None = None,
    ) -> PageantRecord:
        ...

    def delete_upcoming_pageant(self, pageant_id: int, user_id: int) -> bool:
        ...


def _pick(patch: dict, allowed: Iterable[str]) -> dict:
    return {key: value for key, value in patch.items() if key in allowed}


def _clean_profile_patch(patch: dict) -> dict:
    values = _pick(patch, PROFILE_FIELDS)
    if "gallery_images" in values:
        values["gallery_images"] = normalize_string_list(values["gallery_images"])
    return values


def _clean_tracking_patch(patch: dict) -> dict:
    values = _pick(patch, TRACKING_SETTINGS_FIELDS)
    if "preferred_routines" in values:
        values["preferred_routines"] = normalize_string_list(
            values["preferred_routines"]
        )
    return values


class InMemoryStorage:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.session_store = InMemorySessionStore()
        self.users: Dict[int, UserRecord] = {}
        self.profiles: Dict[int, ProfileRecord] = {}
        self.tracking_settings: Dict[int, TrackingSettingsRecord] = {}
        self.recordings: Dict[int, RecordingRecord] = {}
        self.pageants: Dict[int, PageantRecord] = {}
        self.reference_moves: Dict[int, ReferenceMoveRecord] = {}
        self.early_access: Dict[str, EarlyAccessRecord] = {}
        self.email_records: list[EmailRecord] = []
        self._ids: Dict[str, Iterator[int]] = {}
        self._lock = threading.RLock()

    def _next_id(self, table: str) -> int:
        if table not in self._ids:
            self._ids[table] = itertools.count(1)
        return next(self._ids[table])

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.users.clear()
            self.profiles.clear()
            self.tracking_settings.clear()
            self.recordings.clear()
            self.pageants.clear()
            self.reference_moves.clear()
            self.early_access.clear()
            self.email_records.clear()
            self._ids.clear()
            self.session_store.reset()

    # Users

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        with self._lock:
            return copy.deepcopy(self.users.get(user_id))

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self._lock:
            for user in self.users.values():
                if user.username == username:
                    return copy.deepcopy(user)
        return None

    def create_user(
        self, username: str, password: str, email: str | None = None
    ) -> UserRecord:
        with self._lock:
            if any(u.username == username for u in self.users.values()):
                raise ConstraintViolationError(
                    f"duplicate key value violates unique constraint: username={username}"
                )
            user = UserRecord(
                id=self._next_id("users"),
                username=username,
                password=password,
                email=email,
            )
            self.users[user.id] = user
            return copy.deepcopy(user)

    def update_user_last_practice(
        self, user_id: int, when: datetime | None = None
    ) -> Optional[UserRecord]:
        with self._lock:
            user = self.users.get(user_id)
            if not user:
                return None
            user.last_practice_date = when or utcnow()
            return copy.deepcopy(user)

    def increment_recordings_count(self, user_id: int) -> int:
        with self._lock:
            user = self.users.get(user_id)
            if not user:
                return 0
            user.recordings_count += 1
            return user.recordings_count

    # Profiles

    def get_user_profile(self, user_id: int) -> Optional[ProfileRecord]:
        with self._lock:
            return copy.deepcopy(self.profiles.get(user_id))

    def upsert_user_profile(self, user_id: int, patch: dict) -> ProfileRecord:
        values = _clean_profile_patch(patch)
        with self._lock:
            profile = self.profiles.get(user_id)
            if profile is None:
                profile = ProfileRecord(id=self._next_id("profiles"), user_id=user_id)
                self.profiles[user_id] = profile
            for key, value in values.items():
                setattr(profile, key, value)
            profile.updated_at = utcnow()
            return copy.deepcopy(profile)

    def create_user_profile(self, user_id: int, patch: dict) -> ProfileRecord:
        return self.upsert_user_profile(user_id, patch)

    def update_user_profile(self, user_id: int, patch: dict) -> ProfileRecord:
        return self.upsert_user_profile(user_id, patch)

    def add_gallery_image(self, user_id: int, image_url: str) -> list[str]:
        with self._lock:
            profile = self.profiles.get(user_id)
            current = profile.gallery_images if profile else []
            updated = self.upsert_user_profile(
                user_id, {"gallery_images": [*current, image_url]}
            )
            return list(updated.gallery_images)

    def remove_gallery_image(self, user_id: int, image_url: str) -> list[str]:
        with self._lock:
            profile = self.profiles.get(user_id)
            if not profile:
                return []
            profile.gallery_images = [
                image for image in profile.gallery_images if image != image_url
            ]
            profile.updated_at = utcnow()
            return list(profile.gallery_images)

    # Recordings

    def get_recordings(self, user_id: int) -> list[RecordingRecord]:
        with self._lock:
            return [
                copy.deepcopy(r)
                for r in self.recordings.values()
                if r.user_id == user_id
            ]

    def save_recording(
        self,
        user_id: int,
        file_url: str,
        title: str | None = None,
        notes: str | None = None,
    ) -> RecordingRecord:
        with self._lock:
            recording = RecordingRecord(
                id=self._next_id("recordings"),
                user_id=user_id,
                file_url=file_url,
                title=title,
                notes=notes,
            )
            self.recordings[recording.id] = recording
            self.increment_recordings_count(user_id)
            return copy.deepcopy(recording)

    def delete_recording(self, recording_id: int, user_id: int) -> bool:
        with self._lock:
            recording = self.recordings.get(recording_id)
            if not recording or recording.user_id != user_id:
                return False
            del self.recordings[recording_id]
            return True

    # Tracking settings

    def get_tracking_settings(self, user_id: int) -> Optional[TrackingSettingsRecord]:
        with self._lock:
            return copy.deepcopy(self.tracking_settings.get(user_id))

    def save_tracking_settings(
        self, user_id: int, patch: dict
    ) -> TrackingSettingsRecord:
        values = _clean_tracking_patch(patch)
        with self._lock:
            settings = self.tracking_settings.get(user_id)
            if settings is None:
                settings = TrackingSettingsRecord(
                    id=self._next_id("tracking_settings"), user_id=user_id
                )
                self.tracking_settings[user_id] = settings
            for key, value in values.items():
                setattr(settings, key, value)
            settings.updated_at = utcnow()
            return copy.deepcopy(settings)

    # Reference moves

    def get_reference_move(self, move_id: int) -> Optional[ReferenceMoveRecord]:
        with self._lock:
            return copy.deepcopy(self.reference_moves.get(move_id))

    def save_reference_move(
        self,
        move_id: int,
        name: str,
        category: str,
        image_url: str,
        joint_angles: dict[str, float] | None = None,
    ) -> ReferenceMoveRecord:
        with self._lock:
            move = self.reference_moves.get(move_id)
            if move:
                move.name = name
                move.category = category
                move.image_url = image_url
                move.joint_angles = joint_angles
                move.updated_at = utcnow()
            else:
                move = ReferenceMoveRecord(
                    id=self._next_id("reference_moves"),
                    move_id=move_id,
                    name=name,
                    category=category,
                    image_url=image_url,
                    joint_angles=joint_angles,
                )
                self.reference_moves[move_id] = move
            return copy.deepcopy(move)

    def get_all_reference_moves(self) -> list[ReferenceMoveRecord]:
        with self._lock:
            return [
                copy.deepcopy(self.reference_moves[key])
                for key in sorted(self.reference_moves)
            ]

    # Early access

    def get_early_access_by_email(self, email: str) -> Optional[EarlyAccessRecord]:
        with self._lock:
            return copy.deepcopy(self.early_access.get(email))

    def save_early_access(
        self, email: str, name: str | None = None
    ) -> EarlyAccessRecord:
        with self._lock:
            existing = self.early_access.get(email)
            if existing:
                return copy.deepcopy(existing)
            signup = EarlyAccessRecord(
                id=self._next_id("early_access"), email=email, name=name
            )
            self.early_access[email] = signup
            return copy.deepcopy(signup)

    def list_early_access_signups(self) -> list[EarlyAccessRecord]:
        with self._lock:
            signups = sorted(
                self.early_access.values(), key=lambda s: (s.created_at, s.id)
            )
            return copy.deepcopy(signups)

    # Email audit log

    def save_email_record(
        self,
        email: str,
        status: str,
        source: str | None = None,
        response_data: dict | None = None,
    ) -> EmailRecord:
        with self._lock:
            record = EmailRecord(
                id=self._next_id("email_records"),
                email=email,
                status=status,
                source=source,
                response_data=copy.deepcopy(response_data),
            )
            self.email_records.append(record)
            return copy.deepcopy(record)

    def get_email_records(self) -> list[EmailRecord]:
        with self._lock:
            records = sorted(
                self.email_records, key=lambda r: (r.sent_at, r.id), reverse=True
            )
            return copy.deepcopy(records)

    # Pageants

    def get_upcoming_pageants(self, user_id: int) -> list[PageantRecord]:
        with self._lock:
            pageants = [p for p in self.pageants.values() if p.user_id == user_id]
            pageants.sort(key=lambda p: (p.date, p.id))
            return copy.deepcopy(pageants)

    def save_upcoming_pageant(
        self,
        user_id: int,
        name: str,
        location: str,
        date: datetime,
        special_note: str | None = None,
    ) -> PageantRecord:
        with self._lock:
            pageant = PageantRecord(
                id=self._next_id("pageants"),
                user_id=user_id,
                name=name,
                location=location,
                date=date,
                special_note=special_note,
            )
            self.pageants[pageant.id] = pageant
            return copy.deepcopy(pageant)

    def delete_upcoming_pageant(self, pageant_id: int, user_id: int) -> bool:
        with self._lock:
            pageant = self.pageants.get(pageant_id)
            if not pageant or pageant.user_id != user_id:
                return False
            del self.pageants[pageant_id]
            return True


class DatabaseStorage:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for DatabaseStorage")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc
        self.session_store = DatabaseSessionStore(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self.Session()
        try:
            yield session
        except IntegrityError as exc:
            session.rollback()
            raise ConstraintViolationError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(str(exc)) from exc
        finally:
            session.close()

    @staticmethod
    def _to_user(row: "UserRow") -> UserRecord:
        return UserRecord(
            id=row.id,
            username=row.username,
            password=row.password,
            email=row.email,
            last_practice_date=row.last_practice_date,
            recordings_count=row.recordings_count or 0,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_profile(row: "ProfileRow") -> ProfileRecord:
        return ProfileRecord(
            id=row.id,
            user_id=row.user_id,
            goal=row.goal,
            goal_due_date=row.goal_due_date,
            profile_image_url=row.profile_image_url,
            gallery_images=list(row.gallery_images or []),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_tracking_settings(row: "TrackingSettingsRow") -> TrackingSettingsRecord:
        return TrackingSettingsRecord(
            id=row.id,
            user_id=row.user_id,
            shoulder_width_calibration=row.shoulder_width_calibration,
            distance_calibration=row.distance_calibration,
            camera_settings=row.camera_settings,
            preferred_routines=list(row.preferred_routines or []),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_recording(row: "RecordingRow") -> RecordingRecord:
        return RecordingRecord(
            id=row.id,
            user_id=row.user_id,
            file_url=row.file_url,
            title=row.title,
            notes=row.notes,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_pageant(row: "PageantRow") -> PageantRecord:
        return PageantRecord(
            id=row.id,
            user_id=row.user_id,
            name=row.name,
            location=row.location,
            date=row.date,
            special_note=row.special_note,
            created_at=row.created_at,
        )

    @staticmethod
    def _to_reference_move(row: "ReferenceMoveRow") -> ReferenceMoveRecord:
        return ReferenceMoveRecord(
            id=row.id,
            move_id=row.move_id,
            name=row.name,
            category=row.category,
            image_url=row.image_url,
            joint_angles=row.joint_angles,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_early_access(row: "EarlyAccessRow") -> EarlyAccessRecord:
        return EarlyAccessRecord(
            id=row.id, email=row.email, name=row.name, created_at=row.created_at
        )

    @staticmethod
    def _to_email_record(row: "EmailRecordRow") -> EmailRecord:
        return EmailRecord(
            id=row.id,
            email=row.email,
            status=row.status,
            source=row.source,
            response_data=row.response_data,
            sent_at=row.sent_at,
        )

    # Users

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        with self._session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self._session() as session:
            row = session.execute(
                select(UserRow).where(UserRow.username == username)
            ).scalar_one_or_none()
            return self._to_user(row) if row else None

    def create_user(
        self, username: str, password: str, email: str | None = None
    ) -> UserRecord:
        with self._session() as session:
            row = UserRow(
                username=username,
                password=password,
                email=email,
                recordings_count=0,
                created_at=utcnow(),
            )
            session.add(row)
            session.commit()
            return self._to_user(row)

    def update_user_last_practice(
        self, user_id: int, when: datetime | None = None
    ) -> Optional[UserRecord]:
        with self._session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            row.last_practice_date = when or utcnow()
            session.commit()
            return self._to_user(row)

    def _increment(self, session: Session, user_id: int) -> int:
        result = session.execute(
            update(UserRow)
            .where(UserRow.id == user_id)
            .values(recordings_count=UserRow.recordings_count + 1)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            return 0
        # Same transaction holds the row lock, so this reads our own write.
        return session.execute(
            select(UserRow.recordings_count).where(UserRow.id == user_id)
        ).scalar_one()

    def increment_recordings_count(self, user_id: int) -> int:
        with self._session() as session:
            count = self._increment(session, user_id)
            session.commit()
            return count

    # Singleton rows owned by a user (profile, tracking settings)

    def _upsert_by_user(
        self,
        row_cls: type,
        user_id: int,
        values: dict[str, Any],
        defaults: dict[str, Any],
        to_record: Callable[[Any], Any],
    ):
        def apply() -> Any:
            now = utcnow()
            with self._session() as session:
                row = session.execute(
                    select(row_cls).where(row_cls.user_id == user_id).with_for_update()
                ).scalar_one_or_none()
                if row is None:
                    row = row_cls(user_id=user_id, created_at=now, **defaults)
                    session.add(row)
                for key, value in values.items():
                    setattr(row, key, value)
                row.updated_at = now
                session.commit()
                return to_record(row)

        try:
            return apply()
        except ConstraintViolationError:
            # A concurrent writer inserted the row first; patch it instead.
            return apply()

    def get_user_profile(self, user_id: int) -> Optional[ProfileRecord]:
        with self._session() as session:
            row = session.execute(
                select(ProfileRow).where(ProfileRow.user_id == user_id)
            ).scalar_one_or_none()
            return self._to_profile(row) if row else None

    def upsert_user_profile(self, user_id: int, patch: dict) -> ProfileRecord:
        return self._upsert_by_user(
            ProfileRow,
            user_id,
            _clean_profile_patch(patch),
            {"gallery_images": []},
            self._to_profile,
        )

    def create_user_profile(self, user_id: int, patch: dict) -> ProfileRecord:
        return self.upsert_user_profile(user_id, patch)

    def update_user_profile(self, user_id: int, patch: dict) -> ProfileRecord:
        return self.upsert_user_profile(user_id, patch)

    def add_gallery_image(self, user_id: int, image_url: str) -> list[str]:
        with self._session() as session:
            row = session.execute(
                select(ProfileRow).where(ProfileRow.user_id == user_id).with_for_update()
            ).scalar_one_or_none()
            if row is not None:
                row.gallery_images = [*(row.gallery_images or []), image_url]
                row.updated_at = utcnow()
                session.commit()
                return list(row.gallery_images)
        profile = self.upsert_user_profile(user_id, {"gallery_images": [image_url]})
        return profile.gallery_images

    def remove_gallery_image(self, user_id: int, image_url: str) -> list[str]:
        with self._session() as session:
            row = session.execute(
                select(ProfileRow).where(ProfileRow.user_id == user_id).with_for_update()
            ).scalar_one_or_none()
            if row is None or not row.gallery_images:
                return []
            row.gallery_images = [
                image for image in row.gallery_images if image != image_url
            ]
            row.updated_at = utcnow()
            session.commit()
            return list(row.gallery_images)

    # Recordings

    def get_recordings(self, user_id: int) -> list[RecordingRecord]:
        with self._session() as session:
            rows = session.execute(
                select(RecordingRow)
                .where(RecordingRow.user_id == user_id)
                .order_by(RecordingRow.id.asc())
            ).scalars()
            return [self._to_recording(row) for row in rows]

    def save_recording(
        self,
        user_id: int,
        file_url: str,
        title: str | None = None,
        notes: str | None = None,
    ) -> RecordingRecord:
        now = utcnow()
        with self._session() as session:
            row = RecordingRow(
                user_id=user_id,
                file_url=file_url,
                title=title,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            self._increment(session, user_id)
            session.commit()
            return self._to_recording(row)

    def delete_recording(self, recording_id: int, user_id: int) -> bool:
        with self._session() as session:
            result = session.execute(
                delete(RecordingRow).where(
                    RecordingRow.id == recording_id,
                    RecordingRow.user_id == user_id,
                )
            )
            session.commit()
            return bool(result.rowcount)

    # Tracking settings

    def get_tracking_settings(self, user_id: int) -> Optional[TrackingSettingsRecord]:
        with self._session() as session:
            row = session.execute(
                select(TrackingSettingsRow).where(
                    TrackingSettingsRow.user_id == user_id
                )
            ).scalar_one_or_none()
            return self._to_tracking_settings(row) if row else None

    def save_tracking_settings(
        self, user_id: int, patch: dict
    ) -> TrackingSettingsRecord:
        return self._upsert_by_user(
            TrackingSettingsRow,
            user_id,
            _clean_tracking_patch(patch),
            {"preferred_routines": []},
            self._to_tracking_settings,
        )

    # Reference moves

    def get_reference_move(self, move_id: int) -> Optional[ReferenceMoveRecord]:
        with self._session() as session:
            row = session.execute(
                select(ReferenceMoveRow).where(ReferenceMoveRow.move_id == move_id)
            ).scalar_one_or_none()
            return self._to_reference_move(row) if row else None

    def save_reference_move(
        self,
        move_id: int,
        name: str,
        category: str,
        image_url: str,
        joint_angles: dict[str, float] | None = None,
    ) -> ReferenceMoveRecord:
        values = {
            "name": name,
            "category": category,
            "image_url": image_url,
            "joint_angles": joint_angles,
        }

        def apply() -> ReferenceMoveRecord:
            now = utcnow()
            with self._session() as session:
                row = session.execute(
                    select(ReferenceMoveRow)
                    .where(ReferenceMoveRow.move_id == move_id)
                    .with_for_update()
                ).scalar_one_or_none()
                if row is None:
                    row = ReferenceMoveRow(move_id=move_id, created_at=now)
                    session.add(row)
                for key in REFERENCE_MOVE_FIELDS:
                    setattr(row, key, values[key])
                row.updated_at = now
                session.commit()
                return self._to_reference_move(row)

        try:
            return apply()
        except ConstraintViolationError:
            return apply()

    def get_all_reference_moves(self) -> list[ReferenceMoveRecord]:
        with self._session() as session:
            rows = session.execute(
                select(ReferenceMoveRow).order_by(ReferenceMoveRow.move_id.asc())
            ).scalars()
            return [self._to_reference_move(row) for row in rows]

    # Early access

    def get_early_access_by_email(self, email: str) -> Optional[EarlyAccessRecord]:
        with self._session() as session:
            row = session.execute(
                select(EarlyAccessRow).where(EarlyAccessRow.email == email)
            ).scalar_one_or_none()
            return self._to_early_access(row) if row else None

    def save_early_access(
        self, email: str, name: str | None = None
    ) -> EarlyAccessRecord:
        try:
            with self._session() as session:
                row = EarlyAccessRow(email=email, name=name, created_at=utcnow())
                session.add(row)
                session.commit()
                return self._to_early_access(row)
        except ConstraintViolationError:
            existing = self.get_early_access_by_email(email)
            if existing is None:
                raise
            return existing

    def list_early_access_signups(self) -> list[EarlyAccessRecord]:
        with self._session() as session:
            rows = session.execute(
                select(EarlyAccessRow).order_by(
                    EarlyAccessRow.created_at.asc(), EarlyAccessRow.id.asc()
                )
            ).scalars()
            return [self._to_early_access(row) for row in rows]

    # Email audit log

    def save_email_record(
        self,
        email: str,
        status: str,
        source: str | None = None,
        response_data: dict | None = None,
    ) -> EmailRecord:
        with self._session() as session:
            row = EmailRecordRow(
                email=email,
                status=status,
                source=source,
                response_data=response_data,
                sent_at=utcnow(),
            )
            session.add(row)
            session.commit()
            return self._to_email_record(row)

    def get_email_records(self) -> list[EmailRecord]:
        with self._session() as session:
            rows = session.execute(
                select(EmailRecordRow).order_by(
                    EmailRecordRow.sent_at.desc(), EmailRecordRow.id.desc()
                )
            ).scalars()
            return [self._to_email_record(row) for row in rows]

    # Pageants

    def get_upcoming_pageants(self, user_id: int) -> list[PageantRecord]:
        with self._session() as session:
            rows = session.execute(
                select(PageantRow)
                .where(PageantRow.user_id == user_id)
                .order_by(PageantRow.date.asc(), PageantRow.id.asc())
            ).scalars()
            return [self._to_pageant(row) for row in rows]

    def save_upcoming_pageant(
        self,
        user_id: int,
        name: str,
        location: str,
        date: datetime,
        special_note: str | None = None,
    ) -> PageantRecord:
        with self._session() as session:
            row = PageantRow(
                user_id=user_id,
                name=name,
                location=location,
                date=date,
                special_note=special_note,
                created_at=utcnow(),
            )
            session.add(row)
            session.commit()
            return self._to_pageant(row)

    def delete_upcoming_pageant(self, pageant_id: int, user_id: int) -> bool:
        with self._session() as session:
            result = session.execute(
                delete(PageantRow).where(
                    PageantRow.id == pageant_id,
                    PageantRow.user_id == user_id,
                )
            )
            session.commit()
            return bool(result.rowcount)


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, nullable=False, unique=True)
    password = Column(String, nullable=False)
    email = Column(String, nullable=True)
    last_practice_date = Column(DateTime(timezone=True), nullable=True)
    recordings_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)


class ProfileRow(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    goal = Column(Text, nullable=True)
    goal_due_date = Column(DateTime(timezone=True), nullable=True)
    profile_image_url = Column(String, nullable=True)
    gallery_images = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class TrackingSettingsRow(Base):
    __tablename__ = "tracking_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    shoulder_width_calibration = Column(Float, nullable=True)
    distance_calibration = Column(Float, nullable=True)
    camera_settings = Column(JSON, nullable=True)
    preferred_routines = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class RecordingRow(Base):
    __tablename__ = "recordings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    file_url = Column(String, nullable=False)
    title = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class PageantRow(Base):
    __tablename__ = "upcoming_pageants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    location = Column(String, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    special_note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class ReferenceMoveRow(Base):
    __tablename__ = "reference_moves"

    id = Column(Integer, primary_key=True, autoincrement=True)
    move_id = Column(Integer, nullable=False, unique=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False)
    image_url = Column(String, nullable=False)
    joint_angles = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class EarlyAccessRow(Base):
    __tablename__ = "early_access_signups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class EmailRecordRow(Base):
    __tablename__ = "email_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False)
    source = Column(String, nullable=True)
    response_data = Column(JSON, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=False)
