from dataclasses import dataclass, field
from typing import Optional
import uuid

from fastapi import Depends, Request
from sqlalchemy.orm import Session
import structlog

from fintrack.core.config import Settings, get_settings
from fintrack.core.database import get_db
from fintrack.core.errors import AuthenticationError
from fintrack.core.security import ACCESS, decode_token
from fintrack.models.user import User


@dataclass
class RequestContext:
    """Everything a service needs for one request."""

    db: Session
    settings: Settings
    user: Optional[User] = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    client_host: Optional[str] = None
    user_agent: Optional[str] = None

    def require_user(self) -> User:
        if self.user is None:
            raise AuthenticationError("User not authenticated")
        return self.user


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def resolve_user(db: Session, settings: Settings, authorization: Optional[str]) -> Optional[User]:
    """Turn an ``Authorization: Bearer`` header into a user, or None when absent."""
    if not authorization:
        return None

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Invalid authentication token", "INVALID_TOKEN")

    payload = decode_token(settings, token.strip(), ACCESS)
    try:
        user_id = uuid.UUID(payload["sub"])
    except ValueError:
        raise AuthenticationError("Invalid authentication token", "INVALID_TOKEN")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AuthenticationError("Invalid or expired token", "INVALID_TOKEN")
    return user


def get_context(request: Request, db: Session = Depends(get_db)) -> RequestContext:
    settings = get_app_settings(request)
    user = resolve_user(db, settings, request.headers.get("Authorization"))

    ctx = RequestContext(
        db=db,
        settings=settings,
        user=user,
        request_id=getattr(request.state, "request_id", None) or uuid.uuid4().hex,
        client_host=request.client.host if request.client else None,
        user_agent=request.headers.get("User-Agent"),
    )
    structlog.contextvars.bind_contextvars(
        request_id=ctx.request_id,
        user_id=str(user.id) if user else None,
    )
    return ctx
