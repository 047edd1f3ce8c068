from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from mealplanner.config import ALGORITHM, SECRET_KEY
from mealplanner.exceptions import MealPlanError, Unauthenticated

# --- JWT Config ---
ACCESS_TOKEN_EXPIRE_MINUTES = 1440  # Session duration


def create_access_token(data: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    if not SECRET_KEY:
        raise MealPlanError("Server configuration error")
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verifies signature and expiry; raises Unauthenticated on any failure."""
    if not SECRET_KEY:
        raise MealPlanError("Server configuration error")
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        # This handles ExpiredSignatureError and other JWT issues
        raise Unauthenticated("Invalid or expired token") from e

    if not payload.get("sub"):
        raise Unauthenticated("Invalid or expired token")
    return payload
