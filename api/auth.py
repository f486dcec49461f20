from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from google.cloud.firestore_v1.async_client import AsyncClient
from pydantic import BaseModel

from api.dependencies import get_firestore
from libs.common.errors import AuthorizationError
from libs.firebase import auth_service


class User(BaseModel):
    uid: str
    email: str | None = None


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    if not token:
        raise AuthorizationError("Not authenticated")

    decoded_token = auth_service.verify_id_token(token)
    return User(uid=decoded_token["uid"], email=decoded_token.get("email"))


async def get_current_admin(
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> User:
    """The authenticated caller, provided they are listed in ``admins``."""
    if not await auth_service.is_admin(client, current_user.uid):
        raise AuthorizationError("Admin privileges required", forbidden=True)
    return current_user
