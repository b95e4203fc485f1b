from sqlalchemy import Column, String, DateTime, UUID, ForeignKey, Enum, JSON, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum
from fintrack.core.database import Base

class FamilyRole(enum.Enum):
    admin = "admin"      # Holds every permission regardless of the stored set
    member = "member"
    viewer = "viewer"

class FamilyPermission(str, enum.Enum):
    VIEW = "VIEW"
    ADD_TRANSACTIONS = "ADD_TRANSACTIONS"
    EDIT_TRANSACTIONS = "EDIT_TRANSACTIONS"
    DELETE_TRANSACTIONS = "DELETE_TRANSACTIONS"
    MANAGE_BUDGETS = "MANAGE_BUDGETS"
    MANAGE_SHOPPING_LISTS = "MANAGE_SHOPPING_LISTS"
    MANAGE_MEMBERS = "MANAGE_MEMBERS"
    VIEW_REPORTS = "VIEW_REPORTS"

DEFAULT_MEMBER_PERMISSIONS = [FamilyPermission.VIEW.value, FamilyPermission.ADD_TRANSACTIONS.value]
ADMIN_PERMISSIONS = [
    FamilyPermission.VIEW.value,
    FamilyPermission.ADD_TRANSACTIONS.value,
    FamilyPermission.EDIT_TRANSACTIONS.value,
    FamilyPermission.MANAGE_BUDGETS.value,
    FamilyPermission.MANAGE_MEMBERS.value,
]

class Family(Base):
    __tablename__ = "families"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    members = relationship("FamilyMember", back_populates="family", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="family", cascade="all")
    budgets = relationship("Budget", back_populates="family", cascade="all")
    shopping_lists = relationship("ShoppingList", back_populates="family", cascade="all")
    creator = relationship("User", foreign_keys=[created_by])

    def __repr__(self):
        return f"<Family {self.name}>"

class FamilyMember(Base):
    __tablename__ = "family_members"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    family_id = Column(UUID(as_uuid=True), ForeignKey("families.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(Enum(FamilyRole), nullable=False, default=FamilyRole.member)
    permissions = Column(JSON, nullable=False, default=list)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    family = relationship("Family", back_populates="members")
    user = relationship("User", back_populates="family_memberships")

    # A user can only be in a family once
    __table_args__ = (
        UniqueConstraint("family_id", "user_id", name="uq_family_members_family_user"),
    )

    def __repr__(self):
        return f"<FamilyMember {self.user_id} in {self.family_id} as {self.role.value}>"

    @property
    def is_admin(self) -> bool:
        return self.role == FamilyRole.admin

    def has_permission(self, permission: str) -> bool:
        """Admins hold every permission; everyone else needs it in the stored set."""
        if self.is_admin:
            return True
        return str(getattr(permission, "value", permission)) in (self.permissions or [])

    @property
    def user_name(self):
        return self.user.name if self.user else None

    @property
    def user_email(self):
        return self.user.email if self.user else None

    @property
    def user_avatar(self):
        return self.user.avatar if self.user else None
