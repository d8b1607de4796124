"""
Pydantic schemas for the Runway AI API.

Request and response bodies use camelCase on the wire, matching the web
client; Python code works with the snake_case field names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Auth


# bcrypt only accepts secrets up to 72 bytes.
MAX_PASSWORD_BYTES = 72


class PasswordModel(CamelModel):
    password: str = Field(..., min_length=1)

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded"
            )
        return value


class RegisterRequest(PasswordModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: Optional[EmailStr] = None


class LoginRequest(PasswordModel):
    username: str = Field(..., min_length=1)


class UserResponse(CamelModel):
    id: int
    username: str
    email: Optional[str] = None
    last_practice_date: Optional[datetime] = None
    recordings_count: int = 0


# Early access


class EarlyAccessRequest(CamelModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=200)


class EarlyAccessResponse(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    created_at: datetime


# Profile and gallery


class ProfileRequest(CamelModel):
    goal: Optional[str] = None
    goal_due_date: Optional[datetime] = None
    profile_image_url: Optional[str] = None


class ProfileResponse(CamelModel):
    id: int
    user_id: int
    goal: Optional[str] = None
    goal_due_date: Optional[datetime] = None
    profile_image_url: Optional[str] = None
    gallery_images: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class GalleryImageRequest(CamelModel):
    image_url: str = Field(..., min_length=1)


class GalleryResponse(CamelModel):
    gallery_images: list[str]


# Tracking settings


class TrackingSettingsRequest(CamelModel):
    shoulder_width_calibration: Optional[float] = None
    distance_calibration: Optional[float] = None
    camera_settings: Optional[dict[str, Any]] = None
    preferred_routines: Optional[list[str]] = None


class TrackingSettingsResponse(CamelModel):
    id: int
    user_id: int
    shoulder_width_calibration: Optional[float] = None
    distance_calibration: Optional[float] = None
    camera_settings: Optional[dict[str, Any]] = None
    preferred_routines: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# Recordings


class RecordingRequest(CamelModel):
    file_url: str = Field(..., min_length=1)
    title: Optional[str] = None
    notes: Optional[str] = None


class RecordingResponse(CamelModel):
    id: int
    user_id: int
    file_url: str
    title: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# Reference moves


class ReferenceMoveRequest(CamelModel):
    move_id: int
    name: str
    category: str
    image_url: str
    joint_angles: Optional[dict[str, float]] = None


class ReferenceMoveResponse(CamelModel):
    id: int
    move_id: int
    name: str
    category: str
    image_url: str
    joint_angles: Optional[dict[str, float]] = None
    created_at: datetime
    updated_at: datetime


# Pageants


class PageantRequest(CamelModel):
    name: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    date: datetime
    special_note: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                raise ValueError("Invalid date") from None
        return value

    @field_validator("date")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class PageantResponse(CamelModel):
    id: int
    user_id: int
    name: str
    location: str
    date: datetime
    special_note: Optional[str] = None
    created_at: datetime


# Coaching


class ChatRequest(CamelModel):
    message: str = Field(..., min_length=1)


class ChatResponse(CamelModel):
    response: str


class AnalyzeResponseRequest(CamelModel):
    question: str = Field(..., min_length=1)
    response: str = Field(..., min_length=1)
    time_taken: Optional[float] = None


class FeedbackResponse(CamelModel):
    score: int = Field(..., ge=1, le=10)
    strengths: list[str]
    improvements: list[str]
    overall: str


# Email


class SendGuideRequest(CamelModel):
    email: Optional[str] = None


class MessageResponse(CamelModel):
    message: str
