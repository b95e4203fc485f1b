from sqlalchemy.orm import Session
from typing import Optional

from fintrack.core.errors import AccessDeniedError, ConflictError, NotFoundError
from fintrack.models.family import FamilyMember, FamilyRole, FamilyPermission

class FamilyAccess:
    """Membership lookups and permission checks for family-scoped rows."""

    @staticmethod
    def get_membership(db: Session, family_id, user_id) -> Optional[FamilyMember]:
        return db.query(FamilyMember).filter(
            FamilyMember.family_id == family_id,
            FamilyMember.user_id == user_id,
        ).first()

    @staticmethod
    def has_permission(db: Session, family_id, user_id, permission: FamilyPermission) -> bool:
        member = FamilyAccess.get_membership(db, family_id, user_id)
        return member is not None and member.has_permission(permission)

    @staticmethod
    def require_member(db: Session, family_id, user_id) -> FamilyMember:
        # A family the caller does not belong to looks exactly like a missing one
        member = FamilyAccess.get_membership(db, family_id, user_id)
        if member is None:
            raise NotFoundError("Family not found or access denied")
        return member

    @staticmethod
    def require_permission(db: Session, family_id, user_id, permission: FamilyPermission) -> FamilyMember:
        member = FamilyAccess.require_member(db, family_id, user_id)
        if not member.has_permission(permission):
            raise AccessDeniedError(f"You do not have permission to {_describe(permission)} in this family")
        return member

    @staticmethod
    def require_admin(db: Session, family_id, user_id) -> FamilyMember:
        member = FamilyAccess.require_member(db, family_id, user_id)
        if not member.is_admin:
            raise AccessDeniedError("Only family admins can perform this action")
        return member

    @staticmethod
    def admin_count(db: Session, family_id) -> int:
        return db.query(FamilyMember).filter(
            FamilyMember.family_id == family_id,
            FamilyMember.role == FamilyRole.admin,
        ).count()

    @staticmethod
    def ensure_not_last_admin(db: Session, member: FamilyMember,
                              message: str = "Cannot remove the last admin from the family"):
        """Refuse to take away the only remaining admin of a family."""
        if member.is_admin and FamilyAccess.admin_count(db, member.family_id) <= 1:
            raise ConflictError(message, "LAST_ADMIN")

def _describe(permission) -> str:
    value = getattr(permission, "value", permission)
    return value.lower().replace("_", " ")
