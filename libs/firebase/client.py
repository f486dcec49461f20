import json
from functools import lru_cache

import firebase_admin
import structlog
from firebase_admin import credentials
from google.cloud.firestore_v1.async_client import AsyncClient

from libs.common.settings import get_settings

logger = structlog.get_logger(__name__)


def initialize_firebase_app():
    """
    Initializes the Firebase Admin SDK using settings from Pydantic.

    Credentials come from inline JSON or a service-account file; with
    neither, the SDK falls back to application default credentials
    (emulators, Cloud Run).
    """
    if firebase_admin._apps:
        return

    settings = get_settings()
    sdk_json_content = settings.firebase_admin_sdk_json
    sdk_json_path = settings.firebase_admin_sdk_path

    cred = None
    if sdk_json_content:
        try:
            cred = credentials.Certificate(json.loads(sdk_json_content))
        except json.JSONDecodeError:
            logger.error("COACHING_FIREBASE_ADMIN_SDK_JSON is not valid JSON")
            return
    elif sdk_json_path:
        try:
            cred = credentials.Certificate(sdk_json_path)
        except FileNotFoundError:
            logger.error("Firebase credentials file not found", path=sdk_json_path)
            return

    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    if cred:
        firebase_admin.initialize_app(cred, options)
        logger.info("Firebase app initialized", project_id=settings.firebase_project_id)
    else:
        logger.warning("No Firebase credentials found in settings. Assuming emulator or default credentials.")
        try:
            firebase_admin.initialize_app(options=options)
        except ValueError:
            # Already initialized, which is fine
            pass


@lru_cache
def get_firestore_async_client() -> AsyncClient:
    """
    Returns the process-wide asynchronous Firestore client.

    It relies on initialize_firebase_app() having been called to set up
    the necessary authentication context.
    """
    initialize_firebase_app()
    settings = get_settings()
    return AsyncClient(project=settings.firebase_project_id, database=settings.firestore_database)
