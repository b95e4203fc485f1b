from sqlalchemy import Column, String, DateTime, UUID, Numeric, Boolean, ForeignKey, Enum, Text, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum
from fintrack.core.database import Base

class ItemPriority(enum.Enum):
    must_have = "must-have"
    nice_to_have = "nice-to-have"
    optional = "optional"

# Display order inside a list: must-have first
PRIORITY_RANK = {
    ItemPriority.must_have: 0,
    ItemPriority.nice_to_have: 1,
    ItemPriority.optional: 2,
}

class ShoppingList(Base):
    __tablename__ = "shopping_lists"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    family_id = Column(UUID(as_uuid=True), ForeignKey("families.id", ondelete="CASCADE"), nullable=True, index=True)
    shared = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="shopping_lists")
    family = relationship("Family", back_populates="shopping_lists")
    items = relationship("ShoppingListItem", back_populates="shopping_list", cascade="all, delete-orphan")
    shares = relationship("ShoppingListShare", back_populates="shopping_list", cascade="all, delete-orphan")

    @property
    def shared_with(self):
        return [share.email for share in self.shares]

class ShoppingListShare(Base):
    """One allow-listed email address for a shared list."""
    __tablename__ = "shopping_list_shares"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    list_id = Column(UUID(as_uuid=True), ForeignKey("shopping_lists.id", ondelete="CASCADE"), nullable=False)
    email = Column(String, nullable=False, index=True)

    shopping_list = relationship("ShoppingList", back_populates="shares")

    __table_args__ = (
        UniqueConstraint("list_id", "email", name="uq_shopping_list_shares_list_email"),
    )

class ShoppingListItem(Base):
    __tablename__ = "shopping_list_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    list_id = Column(UUID(as_uuid=True), ForeignKey("shopping_lists.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    estimated_price = Column(Numeric(12, 2), nullable=False)
    actual_price = Column(Numeric(12, 2))
    category_id = Column(UUID(as_uuid=True), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    priority = Column(Enum(ItemPriority), nullable=False, default=ItemPriority.nice_to_have)

    purchased = Column(Boolean, default=False, nullable=False)
    purchased_at = Column(DateTime(timezone=True))
    purchased_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Expense generated when the item was bought, if any
    transaction_id = Column(
        UUID(as_uuid=True), ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True, unique=True
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    shopping_list = relationship("ShoppingList", back_populates="items")
    category = relationship("Category", back_populates="shopping_items")
    transaction = relationship("Transaction", back_populates="shopping_item")

    __table_args__ = (
        Index("ix_shopping_list_items_list", "list_id"),
        Index("ix_shopping_list_items_category", "category_id"),
    )

    @property
    def category_name(self):
        return self.category.name if self.category else None

    @property
    def category_color(self):
        return self.category.color if self.category else None
