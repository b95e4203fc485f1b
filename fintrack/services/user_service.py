from sqlalchemy.orm import Session
from typing import Optional
import uuid
import structlog

from fintrack.core.context import RequestContext
from fintrack.core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from fintrack.core.schemas import RegisterRequest, LoginRequest, UserUpdate, PasswordChange
from fintrack.core.security import (
    ACCESS, REFRESH, create_token, decode_token, hash_password, verify_password,
)
from fintrack.core.validation import optional_text, require_text, validate_email, validate_password
from fintrack.models.family import Family, FamilyMember
from fintrack.models.user import User
from fintrack.services.permissions import FamilyAccess

logger = structlog.get_logger(__name__)

class UserService:
    def __init__(self, ctx: RequestContext):
        self.ctx = ctx
        self.db: Session = ctx.db

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    def _auth_payload(self, user: User, remember_me: bool = False) -> dict:
        settings = self.ctx.settings
        days = settings.remember_me_token_days if remember_me else settings.access_token_days
        return {
            "user": user,
            "token": create_token(settings, user.id, user.email, ACCESS, days=days),
            "refresh_token": create_token(settings, user.id, user.email, REFRESH),
        }

    def register(self, data: RegisterRequest) -> dict:
        name = require_text(data.name, "Name", 100)
        email = validate_email(data.email)
        password = validate_password(data.password)

        if self.get_user_by_email(self.db, email):
            raise ConflictError("User with this email already exists", "USER_EXISTS")

        user = User(name=name, email=email, password_hash=hash_password(password))
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)

        logger.info("user_registered", user_id=str(user.id))
        return self._auth_payload(user)

    def login(self, data: LoginRequest) -> dict:
        user = self.get_user_by_email(self.db, data.email or "")
        # Same message whether the email or the password is wrong
        if user is None or not verify_password(user.password_hash, data.password or ""):
            logger.warning("login_failed", email=(data.email or "").strip().lower())
            raise AuthenticationError("Invalid email or password", "INVALID_CREDENTIALS")

        logger.info("user_logged_in", user_id=str(user.id), remember_me=data.remember_me)
        return self._auth_payload(user, remember_me=data.remember_me)

    def refresh(self, refresh_token: str) -> dict:
        payload = decode_token(self.ctx.settings, refresh_token, REFRESH)
        try:
            user_id = uuid.UUID(payload["sub"])
        except ValueError:
            raise AuthenticationError("Invalid refresh token", "INVALID_TOKEN")

        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise AuthenticationError("Invalid refresh token", "INVALID_TOKEN")
        return self._auth_payload(user)

    def me(self) -> User:
        return self.ctx.require_user()

    def get_user(self, user_id: uuid.UUID) -> User:
        """A user is visible to themselves and to anyone they share a family with."""
        caller = self.ctx.require_user()
        if user_id == caller.id:
            return caller

        my_families = [m.family_id for m in self.db.query(FamilyMember).filter(FamilyMember.user_id == caller.id)]
        shared = self.db.query(FamilyMember).filter(
            FamilyMember.user_id == user_id,
            FamilyMember.family_id.in_(my_families),
        ).first()
        if shared is None:
            raise NotFoundError("User not found")
        return shared.user

    def update_profile(self, data: UserUpdate) -> User:
        user = self.ctx.require_user()
        update_data = data.model_dump(exclude_unset=True)

        if "name" in update_data:
            user.name = require_text(update_data["name"], "Name", 100)
        if "avatar" in update_data:
            user.avatar = optional_text(update_data["avatar"], "Avatar", 500)

        self.db.commit()
        self.db.refresh(user)
        return user

    def change_password(self, data: PasswordChange) -> bool:
        user = self.ctx.require_user()
        if not verify_password(user.password_hash, data.current_password or ""):
            raise ValidationError("Current password is incorrect")
        new_password = validate_password(data.new_password, "New password")
        if new_password == data.current_password:
            raise ValidationError("New password must be different from the current password")

        user.password_hash = hash_password(new_password)
        self.db.commit()
        logger.info("password_changed", user_id=str(user.id))
        return True

    def delete_account(self, password: str) -> bool:
        user = self.ctx.require_user()
        if not verify_password(user.password_hash, password or ""):
            raise ValidationError("Password is incorrect")

        memberships = self.db.query(FamilyMember).filter(FamilyMember.user_id == user.id).all()
        orphaned = []
        for membership in memberships:
            others = self.db.query(FamilyMember).filter(
                FamilyMember.family_id == membership.family_id,
                FamilyMember.user_id != user.id,
            ).count()
            if others == 0:
                orphaned.append(membership.family_id)
            else:
                FamilyAccess.ensure_not_last_admin(
                    self.db, membership, "Cannot delete the account while being the last admin of a family"
                )

        for family_id in orphaned:
            family = self.db.query(Family).filter(Family.id == family_id).first()
            self.db.delete(family)

        self.db.delete(user)
        self.db.commit()
        logger.info("account_deleted", user_id=str(user.id), families_removed=len(orphaned))
        return True
