from sqlalchemy.orm import Session
from typing import List
import structlog

from fintrack.core.context import RequestContext
from fintrack.core.errors import ConflictError, NotFoundError, ValidationError
from fintrack.core.schemas import FamilyCreate, FamilyUpdate, InviteMember, MemberUpdate
from fintrack.core.validation import optional_text, require_text, validate_email, validate_permissions
from fintrack.models.family import Family, FamilyMember, FamilyRole, FamilyPermission, ADMIN_PERMISSIONS
from fintrack.models.user import User
from fintrack.services.permissions import FamilyAccess

logger = structlog.get_logger(__name__)

class FamilyService:
    def __init__(self, ctx: RequestContext):
        self.ctx = ctx
        self.db: Session = ctx.db

    def list_families(self) -> List[Family]:
        """Get all families where the user is a member."""
        user = self.ctx.require_user()
        return self.db.query(Family).join(FamilyMember).filter(
            FamilyMember.user_id == user.id
        ).order_by(Family.created_at.asc(), Family.name.asc()).all()

    def get_family(self, family_id) -> Family:
        user = self.ctx.require_user()
        FamilyAccess.require_member(self.db, family_id, user.id)
        return self.db.query(Family).filter(Family.id == family_id).first()

    def create_family(self, data: FamilyCreate) -> Family:
        """Create a new family and add the creator as admin."""
        user = self.ctx.require_user()
        family = Family(
            name=require_text(data.name, "Family name", 100),
            description=optional_text(data.description, "Description"),
            created_by=user.id,
        )
        self.db.add(family)
        self.db.flush()  # Get the family ID

        self.db.add(FamilyMember(
            family_id=family.id,
            user_id=user.id,
            role=FamilyRole.admin,
            permissions=list(ADMIN_PERMISSIONS),
        ))
        self.db.commit()
        self.db.refresh(family)
        logger.info("family_created", family_id=str(family.id))
        return family

    def update_family(self, family_id, data: FamilyUpdate) -> Family:
        user = self.ctx.require_user()
        FamilyAccess.require_admin(self.db, family_id, user.id)
        family = self.db.query(Family).filter(Family.id == family_id).first()

        update_data = data.model_dump(exclude_unset=True)
        if "name" in update_data:
            family.name = require_text(update_data["name"], "Family name", 100)
        if "description" in update_data:
            family.description = optional_text(update_data["description"], "Description")

        self.db.commit()
        self.db.refresh(family)
        return family

    def delete_family(self, family_id) -> bool:
        """Delete a family with its members, transactions, budgets and shopping lists."""
        user = self.ctx.require_user()
        FamilyAccess.require_admin(self.db, family_id, user.id)
        family = self.db.query(Family).filter(Family.id == family_id).first()
        self.db.delete(family)
        self.db.commit()
        logger.info("family_deleted", family_id=str(family_id))
        return True

    def invite_member(self, family_id, data: InviteMember) -> FamilyMember:
        user = self.ctx.require_user()
        FamilyAccess.require_permission(self.db, family_id, user.id, FamilyPermission.MANAGE_MEMBERS)

        email = validate_email(data.email)
        permissions = validate_permissions(data.permissions)

        invitee = self.db.query(User).filter(User.email == email).first()
        if invitee is None:
            raise NotFoundError("User with this email address not found", "USER_NOT_FOUND")
        if FamilyAccess.get_membership(self.db, family_id, invitee.id):
            raise ConflictError("User is already a member of this family", "ALREADY_MEMBER")

        member = FamilyMember(
            family_id=family_id,
            user_id=invitee.id,
            role=data.role,
            permissions=permissions,
        )
        self.db.add(member)
        self.db.commit()
        self.db.refresh(member)
        logger.info(
            "family_member_added",
            family_id=str(family_id),
            member_user_id=str(invitee.id),
            role=member.role.value,
        )
        return member

    def _member_in_family(self, family_id, member_id) -> FamilyMember:
        member = self.db.query(FamilyMember).filter(
            FamilyMember.id == member_id,
            FamilyMember.family_id == family_id,
        ).first()
        if member is None:
            raise NotFoundError("Family member not found")
        return member

    def update_member(self, family_id, member_id, data: MemberUpdate) -> FamilyMember:
        user = self.ctx.require_user()
        FamilyAccess.require_permission(self.db, family_id, user.id, FamilyPermission.MANAGE_MEMBERS)
        member = self._member_in_family(family_id, member_id)

        if member.user_id == user.id:
            raise ValidationError("Cannot modify your own role or permissions", "SELF_MODIFICATION")

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("role") is not None and update_data["role"] != member.role:
            if member.is_admin:
                FamilyAccess.ensure_not_last_admin(self.db, member, "Cannot demote the last admin of the family")
            member.role = update_data["role"]
        if update_data.get("permissions") is not None:
            member.permissions = validate_permissions(update_data["permissions"])

        self.db.commit()
        self.db.refresh(member)
        logger.info(
            "family_member_updated",
            family_id=str(family_id),
            member_user_id=str(member.user_id),
            role=member.role.value,
        )
        return member

    def remove_member(self, family_id, member_id) -> bool:
        """Users can remove themselves; removing anyone else needs MANAGE_MEMBERS."""
        user = self.ctx.require_user()
        FamilyAccess.require_member(self.db, family_id, user.id)
        member = self._member_in_family(family_id, member_id)

        if member.user_id != user.id:
            FamilyAccess.require_permission(self.db, family_id, user.id, FamilyPermission.MANAGE_MEMBERS)
        FamilyAccess.ensure_not_last_admin(self.db, member)

        self.db.delete(member)
        self.db.commit()
        logger.info("family_member_removed", family_id=str(family_id), member_user_id=str(member.user_id))
        return True

    def leave_family(self, family_id) -> bool:
        user = self.ctx.require_user()
        membership = FamilyAccess.get_membership(self.db, family_id, user.id)
        if membership is None:
            raise NotFoundError("You are not a member of this family")
        FamilyAccess.ensure_not_last_admin(
            self.db, membership, "Cannot leave family as the last admin. Transfer admin role first."
        )

        self.db.delete(membership)
        self.db.commit()
        logger.info("family_member_left", family_id=str(family_id), member_user_id=str(user.id))
        return True
