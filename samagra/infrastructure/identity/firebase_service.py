from typing import Optional, Dict, Any
import logging
import os

import firebase_admin
from firebase_admin import credentials, exceptions as fb_exceptions, auth as fb_auth

from ...config import Settings


logger = logging.getLogger(__name__)


def _init_firebase_app(settings: Settings) -> Optional[firebase_admin.App]:
    try:
        if firebase_admin._apps:  # type: ignore[attr-defined]
            return firebase_admin.get_app()
        if os.environ.get("FIREBASE_AUTH_EMULATOR_HOST"):
            # the Admin SDK accepts unsigned emulator tokens on its own
            app = firebase_admin.initialize_app(options={"projectId": settings.FIREBASE_PROJECT_ID or "demo-samagra"})
            logger.info("Firebase app initialized against the auth emulator")
            return app
        if not settings.FIREBASE_CLIENT_EMAIL or not settings.FIREBASE_PRIVATE_KEY or not settings.FIREBASE_PROJECT_ID:
            logger.warning("Firebase credentials are not configured; skipping initialization")
            return None
        cred = credentials.Certificate({
            "type": "service_account",
            "project_id": settings.FIREBASE_PROJECT_ID,
            "private_key": settings.firebase_private_key,
            "client_email": settings.FIREBASE_CLIENT_EMAIL,
            "token_uri": "https://oauth2.googleapis.com/token",
        })
        app = firebase_admin.initialize_app(cred, {"projectId": settings.FIREBASE_PROJECT_ID})
        logger.info("Firebase app initialized")
        return app
    except (ValueError, fb_exceptions.FirebaseError) as e:
        logger.error(f"Failed to initialize Firebase app: {e}")
        return None


class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens; returns decoded claims or None."""

    def __init__(self, settings: Settings):
        self._settings = settings

    def __call__(self, id_token: str) -> Optional[Dict[str, Any]]:
        app = _init_firebase_app(self._settings)
        if app is None:
            return None
        try:
            return fb_auth.verify_id_token(id_token, app=app)
        except (ValueError, fb_auth.InvalidIdTokenError, fb_auth.ExpiredIdTokenError,
                fb_auth.RevokedIdTokenError, fb_auth.CertificateFetchError) as e:
            logger.warning(f"Firebase token verification failed: {e}")
            return None
