from sqlalchemy import Column, String, DateTime, UUID, Boolean, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from fintrack.core.database import Base
from fintrack.models.transaction import TransactionType

class Category(Base):
    __tablename__ = "categories"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False)
    color = Column(String(7), nullable=False)
    icon = Column(String)
    type = Column(Enum(TransactionType), nullable=False)

    # NULL = system default shared by everybody
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="categories")
    transactions = relationship("Transaction", back_populates="category")
    budgets = relationship("Budget", back_populates="category")
    shopping_items = relationship("ShoppingListItem", back_populates="category")

    __table_args__ = (
        UniqueConstraint("name", "user_id", "type", name="uq_categories_name_user_type"),
    )

    def __repr__(self):
        return f"<Category {self.name} ({self.type.value})>"
