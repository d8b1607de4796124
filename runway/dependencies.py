"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from runway.config import get_settings
from runway.db import DatabaseStorage, InMemoryStorage, Storage
from runway.gemini import CoachClient, GeminiCoachClient
from runway.mailer import EmailClient, ResendEmailClient

logger = logging.getLogger(__name__)

_storage: Storage | None = None
_coach_client: CoachClient | None = None


def get_storage() -> Storage:
    """
    Return a singleton storage so the connection pool and session store are
    shared process-wide.
    """
    global _storage
    if _storage:
        return _storage

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory storage")
        _storage = InMemoryStorage()
    else:
        _storage = DatabaseStorage(settings.database_url)
    return _storage


def get_coach_client() -> CoachClient:
    global _coach_client
    if _coach_client:
        return _coach_client

    settings = get_settings()
    _coach_client = GeminiCoachClient(
        api_key=settings.gemini_api_key, model=settings.gemini_model
    )
    return _coach_client


def get_email_client() -> Optional[EmailClient]:
    """Return the email provider, or None when it is not configured."""
    settings = get_settings()
    if not settings.resend_api_key:
        return None
    return ResendEmailClient(
        api_key=settings.resend_api_key, sender=settings.email_sender
    )
