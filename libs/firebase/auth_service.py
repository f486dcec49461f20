"""Firebase Authentication adapter.

Wraps the Firebase Admin SDK calls the back office needs: creating and
deleting accounts, minting custom tokens for the apps, and verifying the
ID tokens presented to the API.
"""

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from firebase_admin import auth
from google.cloud.firestore_v1.async_client import AsyncClient

from libs.common.errors import AuthorizationError, ConflictError, InvalidRequestError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def create_account(email: str, password: str, display_name: str | None) -> str:
    """Create an identity account and return its uid.

    Raises:
        ConflictError: If the email is already registered
        InvalidRequestError: If the provider rejects the account data
    """
    try:
        user_record = auth.create_user(email=email, password=password, display_name=display_name)
    except auth.EmailAlreadyExistsError:
        logger.warning("Account creation for existing email", email=email)
        raise ConflictError("Email already exists")
    except ValueError as e:
        raise InvalidRequestError(str(e))

    logger.info("Firebase user created successfully", uid=user_record.uid, email=email)
    return user_record.uid


def delete_account(uid: str) -> None:
    """Delete an identity account."""
    auth.delete_user(uid)
    logger.info("Firebase user deleted", uid=uid)


def create_custom_token(uid: str) -> str:
    """Mint a custom sign-in token for the mobile and coach apps."""
    token = auth.create_custom_token(uid)
    return token.decode("utf-8") if isinstance(token, bytes) else token


async def create_account_with_profile(
    email: str,
    password: str,
    display_name: str | None,
    write_profile: Callable[[str], Awaitable[T]],
) -> tuple[str, T]:
    """Create an identity account and its Firestore profile atomically.

    The account is rolled back if writing the profile fails.

    Args:
        email: Account email
        password: Account password
        display_name: Name shown by the identity provider
        write_profile: Coroutine factory receiving the new uid

    Returns:
        Tuple of (uid, profile)
    """
    uid = create_account(email, password, display_name)
    try:
        profile = await write_profile(uid)
    except Exception as e:
        try:
            logger.warning("Rolling back Firebase user creation", uid=uid, error=str(e))
            auth.delete_user(uid)
            logger.info("Firebase user rollback successful", uid=uid)
        except Exception as rollback_error:
            logger.error(
                "Failed to rollback Firebase user",
                uid=uid,
                rollback_error=str(rollback_error),
                original_error=str(e),
            )
        raise
    return uid, profile


def verify_id_token(token: str) -> dict:
    """Verify a Firebase ID token.

    Raises:
        AuthorizationError: If the token is invalid, expired or revoked
    """
    try:
        return auth.verify_id_token(token)
    except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError) as e:
        logger.warning("ID token verification failed", error=str(e), error_type=type(e).__name__)
        raise AuthorizationError(f"Invalid authentication credentials: {e}")


async def is_admin(client: AsyncClient, uid: str) -> bool:
    """Whether ``uid`` has a document in the ``admins`` collection."""
    snapshot = await client.collection("admins").document(uid).get()
    return snapshot.exists
