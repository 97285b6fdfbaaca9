from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import logging

import jwt

from ...config import Settings

logger = logging.getLogger(__name__)


def create_jwt_token(settings: Settings, uid: str, role: str, expires_in: timedelta = timedelta(hours=24)) -> str:
    """Create an HS256 access token carrying ``sub`` and ``role``."""
    if not settings.SECRET_KEY or settings.SECRET_KEY == "change-me-in-prod":
        raise ValueError("SECRET_KEY not properly configured")
    payload = {
        "sub": uid,
        "role": role,
        "type": "access",
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


class JwtTokenVerifier:
    """Decodes HS256 tokens signed with ``SECRET_KEY``; returns claims or None."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def __call__(self, token: str) -> Optional[Dict[str, Any]]:
        if not self._settings.SECRET_KEY or self._settings.SECRET_KEY == "change-me-in-prod":
            logger.error("SECRET_KEY not properly configured; rejecting token")
            return None
        try:
            payload = jwt.decode(token, self._settings.SECRET_KEY, algorithms=[self._settings.ALGORITHM])
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None
        if payload.get("type", "access") != "access":
            return None
        return payload
