"""
Plain records returned by the storage layer.

Storage implementations convert their rows into these dataclasses so the
route layer never touches ORM objects or open sessions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserRecord:
    id: int
    username: str
    password: str
    email: Optional[str] = None
    last_practice_date: Optional[datetime] = None
    recordings_count: int = 0
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class ProfileRecord:
    id: int
    user_id: int
    goal: Optional[str] = None
    goal_due_date: Optional[datetime] = None
    profile_image_url: Optional[str] = None
    gallery_images: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class TrackingSettingsRecord:
    id: int
    user_id: int
    shoulder_width_calibration: Optional[float] = None
    distance_calibration: Optional[float] = None
    camera_settings: Optional[dict[str, Any]] = None
    preferred_routines: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class RecordingRecord:
    id: int
    user_id: int
    file_url: str
    title: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class PageantRecord:
    id: int
    user_id: int
    name: str
    location: str
    date: datetime
    special_note: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class ReferenceMoveRecord:
    id: int
    move_id: int
    name: str
    category: str
    image_url: str
    joint_angles: Optional[dict[str, float]] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class EarlyAccessRecord:
    id: int
    email: str
    name: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class EmailRecord:
    """One immutable entry in the outbound email audit log."""

    id: int
    email: str
    status: str
    source: Optional[str] = None
    response_data: Optional[dict[str, Any]] = None
    sent_at: datetime = field(default_factory=utcnow)


@dataclass
class SessionRecord:
    sid: str
    user_id: int
    expires_at: datetime
    created_at: datetime = field(default_factory=utcnow)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            # SQLite drops tzinfo; stored values are always UTC.
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now


def normalize_string_list(value: Any) -> list[str]:
    """
    Coerce a list-ish input into a list of strings.

    ``None`` and empty values become ``[]``, a scalar becomes a one-element
    list, and lists or tuples are kept in order with each item stringified.
    """
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    if not value:
        return []
    return [str(value)]
