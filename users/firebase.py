"""Lazy Firebase Admin initialisation shared by sign-in and the Firestore quiz store."""
import logging

import firebase_admin
from firebase_admin import credentials
from django.conf import settings

logger = logging.getLogger(__name__)


def get_app():
    """Return the default Firebase app, initialising it on first use.

    Uses the service account at ``FIREBASE_CREDENTIALS_PATH`` when set and
    falls back to application default credentials otherwise.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()

    cred_path = settings.FIREBASE_CREDENTIALS_PATH
    if cred_path:
        cred = credentials.Certificate(cred_path)
    else:
        cred = credentials.ApplicationDefault()

    options = {}
    project_id = settings.FIREBASE_WEB_CONFIG.get("projectId")
    if project_id:
        options["projectId"] = project_id

    app = firebase_admin.initialize_app(cred, options or None)
    logger.info(f"Firebase app initialised for project {project_id or '<default>'}")
    return app
