from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from mealplanner.exceptions import Unauthenticated
from mealplanner.utils.security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


class AuthenticatedUser(BaseModel):
    user_id: str
    email: str = ""


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> AuthenticatedUser:
    # User accounts live with the auth provider; the verified token is the identity
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Missing or invalid authorization header")

    payload = decode_access_token(credentials.credentials)
    return AuthenticatedUser(user_id=str(payload["sub"]), email=payload.get("email") or "")
