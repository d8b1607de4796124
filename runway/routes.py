"""
HTTP routes for the Runway AI API.

Protected routes take the caller's identity from ``get_current_user`` and
inject it into every write; request bodies never carry a user id.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from runway.auth import get_current_user
from runway.db import Storage
from runway.dependencies import get_coach_client, get_email_client, get_storage
from runway.errors import UpstreamServiceError
from runway.gemini import CoachClient, clamp_score
from runway.mailer import (
    GUIDE_HTML,
    GUIDE_SOURCE,
    GUIDE_SUBJECT,
    EmailClient,
    send_tracked_email,
)
from runway.records import UserRecord
from runway.schemas import (
    AnalyzeResponseRequest,
    ChatRequest,
    ChatResponse,
    EarlyAccessRequest,
    EarlyAccessResponse,
    FeedbackResponse,
    GalleryImageRequest,
    GalleryResponse,
    MessageResponse,
    PageantRequest,
    PageantResponse,
    ProfileRequest,
    ProfileResponse,
    RecordingRequest,
    RecordingResponse,
    ReferenceMoveRequest,
    ReferenceMoveResponse,
    SendGuideRequest,
    TrackingSettingsRequest,
    TrackingSettingsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_RECORDING_TITLE = "Untitled Recording"
GUIDE_SENT_MESSAGE = "Setup guide sent successfully!"
GUIDE_FALLBACK_MESSAGE = "Email sending soon. Excited to have you here!"


# Early access (public)


@router.post(
    "/early-access",
    response_model=MessageResponse,
    status_code=201,
    responses={200: {"model": MessageResponse}},
)
def early_access_signup(
    payload: EarlyAccessRequest,
    response: Response,
    storage: Storage = Depends(get_storage),
):
    if storage.get_early_access_by_email(payload.email):
        response.status_code = 200
        return MessageResponse(
            message="Thank you! Your email is already registered for early access."
        )
    storage.save_early_access(email=payload.email, name=payload.name)
    return MessageResponse(
        message="Thank you for your interest! We'll notify you when early access is available."
    )


@router.get("/early-access", response_model=list[EarlyAccessResponse])
def list_early_access(storage: Storage = Depends(get_storage)):
    return storage.list_early_access_signups()


# Profile


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    profile = storage.get_user_profile(user.id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.post("/profile", response_model=ProfileResponse, status_code=201)
def save_profile(
    payload: ProfileRequest,
    response: Response,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Create the caller's profile (201) or patch the existing one (200)."""
    existed = storage.get_user_profile(user.id) is not None
    profile = storage.upsert_user_profile(
        user.id, payload.model_dump(exclude_unset=True)
    )
    if existed:
        response.status_code = 200
    return profile


# Tracking settings


@router.get("/tracking-settings", response_model=TrackingSettingsResponse)
def get_tracking_settings(
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    settings = storage.get_tracking_settings(user.id)
    if not settings:
        raise HTTPException(status_code=404, detail="Settings not found")
    return settings


@router.post(
    "/tracking-settings", response_model=TrackingSettingsResponse, status_code=201
)
def save_tracking_settings(
    payload: TrackingSettingsRequest,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return storage.save_tracking_settings(
        user.id, payload.model_dump(exclude_unset=True)
    )


# Gallery


@router.post("/gallery", response_model=GalleryResponse)
def add_gallery_image(
    payload: GalleryImageRequest,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    images = storage.add_gallery_image(user.id, payload.image_url)
    return GalleryResponse(gallery_images=images)


@router.delete("/gallery", response_model=GalleryResponse)
def remove_gallery_image(
    payload: GalleryImageRequest,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    images = storage.remove_gallery_image(user.id, payload.image_url)
    return GalleryResponse(gallery_images=images)


# Recordings


@router.get("/recordings", response_model=list[RecordingResponse])
def list_recordings(
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return storage.get_recordings(user.id)


@router.post("/recordings", response_model=RecordingResponse, status_code=201)
def save_recording(
    payload: RecordingRequest,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    # save_recording bumps the user's recordings counter itself.
    return storage.save_recording(
        user_id=user.id,
        file_url=payload.file_url,
        title=payload.title or DEFAULT_RECORDING_TITLE,
        notes=payload.notes or "",
    )


@router.delete("/recordings/{recording_id}", response_model=MessageResponse)
def delete_recording(
    recording_id: int,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    if not storage.delete_recording(recording_id, user.id):
        raise HTTPException(
            status_code=404,
            detail="Recording not found or you don't have permission to delete it",
        )
    return MessageResponse(message="Recording deleted successfully")


# Reference moves (public)


@router.post("/reference-moves", response_model=ReferenceMoveResponse)
def save_reference_move(
    payload: ReferenceMoveRequest, storage: Storage = Depends(get_storage)
):
    return storage.save_reference_move(
        move_id=payload.move_id,
        name=payload.name,
        category=payload.category,
        image_url=payload.image_url,
        joint_angles=payload.joint_angles,
    )


@router.get("/reference-moves", response_model=list[ReferenceMoveResponse])
def list_reference_moves(storage: Storage = Depends(get_storage)):
    return storage.get_all_reference_moves()


@router.get("/reference-moves/{move_id}", response_model=ReferenceMoveResponse)
def get_reference_move(move_id: int, storage: Storage = Depends(get_storage)):
    move = storage.get_reference_move(move_id)
    if not move:
        raise HTTPException(status_code=404, detail="Reference move not found")
    return move


# Coaching


@router.post("/ai-chat", response_model=ChatResponse)
def ai_chat(payload: ChatRequest, coach: CoachClient = Depends(get_coach_client)):
    try:
        reply = coach.chat(payload.message)
    except UpstreamServiceError:
        logger.exception("AI chat failed")
        raise HTTPException(status_code=500, detail="Failed to get AI response")
    return ChatResponse(response=reply)


@router.post("/analyze-response", response_model=FeedbackResponse)
def analyze_response(
    payload: AnalyzeResponseRequest,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    coach: CoachClient = Depends(get_coach_client),
):
    try:
        feedback = coach.analyze_response(
            payload.question, payload.response, payload.time_taken
        )
    except UpstreamServiceError:
        logger.exception("AI feedback failed")
        raise HTTPException(status_code=500, detail="Failed to analyze response")
    storage.update_user_last_practice(user.id)
    return FeedbackResponse(
        score=clamp_score(feedback.score),
        strengths=feedback.strengths,
        improvements=feedback.improvements,
        overall=feedback.overall,
    )


# Setup guide email (public)


@router.post("/send-guide", response_model=MessageResponse)
def send_guide(
    payload: SendGuideRequest,
    storage: Storage = Depends(get_storage),
    mailer: Optional[EmailClient] = Depends(get_email_client),
):
    """
    Email the setup guide. Delivery problems never fail the request: the
    attempt is logged and the caller gets a friendly message either way.
    """
    if not payload.email:
        raise HTTPException(status_code=400, detail="Email is required")
    status = send_tracked_email(
        storage,
        mailer,
        email=payload.email,
        subject=GUIDE_SUBJECT,
        html=GUIDE_HTML,
        source=GUIDE_SOURCE,
        downgrade_errors=True,
    )
    if status == "sent":
        return MessageResponse(message=GUIDE_SENT_MESSAGE)
    return MessageResponse(message=GUIDE_FALLBACK_MESSAGE)


# Pageants


@router.get("/pageants", response_model=list[PageantResponse])
def list_pageants(
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return storage.get_upcoming_pageants(user.id)


@router.post("/pageants", response_model=PageantResponse, status_code=201)
def save_pageant(
    payload: PageantRequest,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return storage.save_upcoming_pageant(
        user_id=user.id,
        name=payload.name,
        location=payload.location,
        date=payload.date,
        special_note=payload.special_note,
    )


@router.delete("/pageants/{pageant_id}", response_model=MessageResponse)
def delete_pageant(
    pageant_id: int,
    user: UserRecord = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    if not storage.delete_upcoming_pageant(pageant_id, user.id):
        raise HTTPException(status_code=404, detail="Pageant not found")
    return MessageResponse(message="Pageant deleted successfully")
