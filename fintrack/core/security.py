from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from fintrack.core.config import Settings
from fintrack.core.errors import AuthenticationError

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def create_token(settings: Settings, user_id: str, email: str, token_type: str = ACCESS,
                 days: Optional[int] = None) -> str:
    """Sign a JWT for the user; refresh tokens use the refresh secret."""
    if days is None:
        days = settings.refresh_token_days if token_type == REFRESH else settings.access_token_days
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "type": token_type,
        "iat": now,
        "exp": now + timedelta(days=days),
    }
    secret = settings.refresh_secret if token_type == REFRESH else settings.jwt_secret
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_token(settings: Settings, token: str, token_type: str = ACCESS) -> dict:
    secret = settings.refresh_secret if token_type == REFRESH else settings.jwt_secret
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Authentication token has expired", "TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid authentication token", "INVALID_TOKEN")

    if payload.get("type") != token_type or not payload.get("sub"):
        raise AuthenticationError("Invalid authentication token", "INVALID_TOKEN")
    return payload
