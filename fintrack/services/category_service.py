from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from typing import Optional, List
import uuid
import structlog

from fintrack.core.context import RequestContext
from fintrack.core.errors import ConflictError, NotFoundError, ValidationError
from fintrack.core.schemas import CategoryCreate, CategoryUpdate
from fintrack.core.validation import require_text, sanitize_string, validate_hex_color
from fintrack.models.budget import Budget
from fintrack.models.category import Category
from fintrack.models.transaction import Transaction, TransactionType

logger = structlog.get_logger(__name__)

# (name, color, icon) per direction, seeded once as system defaults
DEFAULT_CATEGORIES = {
    TransactionType.expense: [
        ("Housing", "#8B5CF6", "🏠"),
        ("Food", "#F59E0B", "🍕"),
        ("Transportation", "#06B6D4", "🚗"),
        ("Entertainment", "#EC4899", "🎬"),
        ("Healthcare", "#EF4444", "⚕️"),
        ("Shopping", "#10B981", "🛒"),
        ("Utilities", "#6B7280", "⚡"),
        ("Insurance", "#7C3AED", "🛡️"),
        ("Education", "#059669", "📚"),
        ("Travel", "#DC2626", "✈️"),
        ("Fitness", "#0891B2", "💪"),
        ("Personal Care", "#BE185D", "💄"),
        ("Gifts", "#9333EA", "🎁"),
        ("Other", "#64748B", "📄"),
    ],
    TransactionType.income: [
        ("Salary", "#10B981", "💼"),
        ("Freelance", "#059669", "💻"),
        ("Investment", "#0D9488", "📈"),
        ("Rental Income", "#0F766E", "🏘️"),
        ("Business", "#047857", "🏪"),
        ("Bonus", "#065F46", "🎯"),
        ("Gift", "#34D399", "🎁"),
        ("Other", "#6EE7B7", "💰"),
    ],
}

def seed_default_categories(db: Session) -> int:
    """Insert any missing system categories. Returns how many were created."""
    created = 0
    for category_type, entries in DEFAULT_CATEGORIES.items():
        for name, color, icon in entries:
            exists = db.query(Category).filter(
                Category.user_id.is_(None),
                Category.is_default.is_(True),
                Category.name == name,
                Category.type == category_type,
            ).first()
            if exists:
                continue
            db.add(Category(name=name, color=color, icon=icon, type=category_type, is_default=True))
            created += 1
    db.commit()
    if created:
        logger.info("default_categories_seeded", count=created)
    return created

def visible_category_filter(user_id):
    return or_(Category.user_id == user_id, Category.is_default.is_(True))

class CategoryService:
    def __init__(self, ctx: RequestContext):
        self.ctx = ctx
        self.db: Session = ctx.db

    def get_visible_category(self, category_id) -> Category:
        user = self.ctx.require_user()
        category = self.db.query(Category).filter(
            Category.id == category_id, visible_category_filter(user.id)
        ).first()
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def list_categories(self, category_type: Optional[TransactionType] = None) -> List[Category]:
        user = self.ctx.require_user()
        query = self.db.query(Category).filter(visible_category_filter(user.id))
        if category_type:
            query = query.filter(Category.type == category_type)
        # Defaults first, then alphabetical
        return query.order_by(Category.is_default.desc(), Category.name.asc()).all()

    def get_category(self, category_id) -> Category:
        return self.get_visible_category(category_id)

    @staticmethod
    def default_categories(db: Session, category_type: Optional[TransactionType] = None) -> List[Category]:
        query = db.query(Category).filter(Category.is_default.is_(True))
        if category_type:
            query = query.filter(Category.type == category_type)
        return query.order_by(Category.name.asc()).all()

    def _ensure_unique_name(self, user_id, name: str, category_type: TransactionType, exclude_id=None):
        query = self.db.query(Category).filter(
            Category.user_id == user_id,
            Category.type == category_type,
            func.lower(Category.name) == name.lower(),
        )
        if exclude_id is not None:
            query = query.filter(Category.id != exclude_id)
        if query.first():
            raise ConflictError("A category with this name already exists", "CATEGORY_EXISTS")

    def _own_category(self, category_id, action: str) -> Category:
        user = self.ctx.require_user()
        # Defaults have no owner, so they are never matched here
        category = self.db.query(Category).filter(
            Category.id == category_id, Category.user_id == user.id
        ).first()
        if category is None:
            raise NotFoundError(f"Category not found or cannot be {action}")
        return category

    def create_category(self, data: CategoryCreate) -> Category:
        user = self.ctx.require_user()
        name = require_text(data.name, "Category name", 50)
        color = validate_hex_color(data.color)
        self._ensure_unique_name(user.id, name, data.type)

        category = Category(
            name=name,
            color=color,
            icon=sanitize_string(data.icon) if data.icon and data.icon.strip() else None,
            type=data.type,
            user_id=user.id,
            is_default=False,
        )
        self.db.add(category)
        self.db.commit()
        self.db.refresh(category)
        return category

    def update_category(self, category_id, data: CategoryUpdate) -> Category:
        category = self._own_category(category_id, "modified")
        update_data = data.model_dump(exclude_unset=True)

        if "name" in update_data:
            name = require_text(update_data["name"], "Category name", 50)
            self._ensure_unique_name(category.user_id, name, category.type, exclude_id=category.id)
            category.name = name
        if "color" in update_data:
            category.color = validate_hex_color(update_data["color"])
        if "icon" in update_data:
            icon = update_data["icon"]
            category.icon = sanitize_string(icon) if icon and icon.strip() else None

        self.db.commit()
        self.db.refresh(category)
        return category

    def delete_category(self, category_id, move_transactions_to: Optional[uuid.UUID] = None) -> bool:
        category = self._own_category(category_id, "deleted")

        if self.db.query(Budget).filter(Budget.category_id == category.id).count():
            raise ConflictError(
                "Cannot delete a category that has budgets. Delete its budgets first.",
                "CATEGORY_HAS_BUDGETS",
            )

        transaction_count = self.db.query(Transaction).filter(Transaction.category_id == category.id).count()
        if transaction_count:
            if not move_transactions_to:
                raise ValidationError(
                    f"Cannot delete category with {transaction_count} transactions. "
                    "Please specify a category to move transactions to.",
                    "CATEGORY_HAS_TRANSACTIONS",
                )
            target = self.db.query(Category).filter(
                Category.id == move_transactions_to,
                Category.id != category.id,
                Category.type == category.type,
                visible_category_filter(category.user_id),
            ).first()
            if target is None:
                raise NotFoundError("Target category not found or incompatible")

            self.db.query(Transaction).filter(Transaction.category_id == category.id).update(
                {Transaction.category_id: target.id}, synchronize_session=False
            )

        self.db.delete(category)
        self.db.commit()
        return True
