from sqlalchemy import Column, DateTime, UUID, Numeric, Date, ForeignKey, Enum, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
import enum
from fintrack.core.database import Base

class BudgetPeriod(enum.Enum):
    monthly = "monthly"
    yearly = "yearly"

class BudgetStatus(enum.Enum):
    good = "good"
    warning = "warning"
    danger = "danger"

class Budget(Base):
    __tablename__ = "budgets"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    family_id = Column(UUID(as_uuid=True), ForeignKey("families.id", ondelete="CASCADE"), nullable=True)
    category_id = Column(UUID(as_uuid=True), ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)  # Spending limit
    period = Column(Enum(BudgetPeriod), nullable=False, default=BudgetPeriod.monthly)

    # Window is [start_date, end_date]; end_date is derived from start_date + period
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="budgets")
    family = relationship("Family", back_populates="budgets")
    category = relationship("Category", back_populates="budgets")

    __table_args__ = (
        UniqueConstraint(
            "category_id", "user_id", "family_id", "period", "start_date",
            name="uq_budgets_category_user_family_period_start",
        ),
        Index("ix_budgets_user_period", "user_id", "period"),
        Index("ix_budgets_family_period", "family_id", "period"),
    )
