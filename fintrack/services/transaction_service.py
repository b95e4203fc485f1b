from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional
from decimal import Decimal
from datetime import date
import structlog

from fintrack.core.context import RequestContext
from fintrack.core.errors import AccessDeniedError, NotFoundError, ValidationError
from fintrack.core.schemas import TransactionCreate, TransactionUpdate, TransactionFilters
from fintrack.core.validation import require_text, validate_amount
from fintrack.models.category import Category
from fintrack.models.family import FamilyPermission
from fintrack.models.transaction import Transaction, TransactionType
from fintrack.services.category_service import visible_category_filter
from fintrack.services.permissions import FamilyAccess

logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 100

def escape_like(value: str) -> str:
    """Make % and _ match literally inside a LIKE pattern."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

class TransactionService:
    def __init__(self, ctx: RequestContext):
        self.ctx = ctx
        self.db: Session = ctx.db

    def _scoped_query(self, family_id=None):
        """Own transactions, or every transaction of a family the caller can view."""
        user = self.ctx.require_user()
        query = self.db.query(Transaction)
        if family_id:
            FamilyAccess.require_permission(self.db, family_id, user.id, FamilyPermission.VIEW)
            return query.filter(Transaction.family_id == family_id)
        return query.filter(Transaction.user_id == user.id)

    def _visible_category(self, category_id) -> Category:
        user = self.ctx.require_user()
        category = self.db.query(Category).filter(
            Category.id == category_id, visible_category_filter(user.id)
        ).first()
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def list_transactions(self, page: int = 1, limit: int = 50,
                          filters: Optional[TransactionFilters] = None) -> dict:
        if page < 1:
            raise ValidationError("Page must be 1 or greater")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")

        filters = filters or TransactionFilters()
        query = self._scoped_query(filters.family_id)

        if filters.start_date:
            query = query.filter(Transaction.date >= filters.start_date)
        if filters.end_date:
            query = query.filter(Transaction.date <= filters.end_date)
        if filters.category_ids:
            query = query.filter(Transaction.category_id.in_(filters.category_ids))
        if filters.transaction_type:
            query = query.filter(Transaction.type == filters.transaction_type)
        if filters.min_amount is not None:
            query = query.filter(Transaction.amount >= filters.min_amount)
        if filters.max_amount is not None:
            query = query.filter(Transaction.amount <= filters.max_amount)
        if filters.search:
            query = query.filter(Transaction.description.ilike(f"%{escape_like(filters.search.strip())}%", escape="\\"))

        total = query.count()
        skip = (page - 1) * limit
        transactions = query.order_by(
            Transaction.date.desc(), Transaction.created_at.desc()
        ).offset(skip).limit(limit).all()

        return {
            "transactions": transactions,
            "total": total,
            "page": page,
            "limit": limit,
            "has_next": skip + limit < total,
            "has_prev": page > 1,
        }

    def get_transaction(self, transaction_id) -> Transaction:
        user = self.ctx.require_user()
        transaction = self.db.query(Transaction).filter(Transaction.id == transaction_id).first()
        if transaction is None:
            raise NotFoundError("Transaction not found")
        if transaction.user_id == user.id:
            return transaction
        if transaction.family_id and FamilyAccess.has_permission(
            self.db, transaction.family_id, user.id, FamilyPermission.VIEW
        ):
            return transaction
        raise NotFoundError("Transaction not found")

    def _writable(self, transaction_id, permission: FamilyPermission) -> Transaction:
        """Own rows are always writable; other members' family rows need the permission."""
        user = self.ctx.require_user()
        transaction = self.get_transaction(transaction_id)
        if transaction.user_id != user.id:
            if not FamilyAccess.has_permission(self.db, transaction.family_id, user.id, permission):
                raise AccessDeniedError("You do not have permission to modify this transaction")
        return transaction

    def create_transaction(self, data: TransactionCreate) -> Transaction:
        user = self.ctx.require_user()
        amount = validate_amount(data.amount)
        description = require_text(data.description, "Description", 200)
        self._visible_category(data.category_id)

        if data.family_id:
            FamilyAccess.require_permission(self.db, data.family_id, user.id, FamilyPermission.ADD_TRANSACTIONS)

        transaction = Transaction(
            amount=amount,
            description=description,
            type=data.type,
            date=data.date,
            category_id=data.category_id,
            user_id=user.id,
            family_id=data.family_id,
        )
        self.db.add(transaction)
        self.db.commit()
        self.db.refresh(transaction)
        return transaction

    def update_transaction(self, transaction_id, data: TransactionUpdate) -> Transaction:
        transaction = self._writable(transaction_id, FamilyPermission.EDIT_TRANSACTIONS)
        update_data = data.model_dump(exclude_unset=True)

        if update_data.get("amount") is not None:
            transaction.amount = validate_amount(update_data["amount"])
        if "description" in update_data:
            transaction.description = require_text(update_data["description"], "Description", 200)
        if update_data.get("type") is not None:
            transaction.type = update_data["type"]
        if update_data.get("date") is not None:
            transaction.date = update_data["date"]
        if update_data.get("category_id") is not None:
            transaction.category_id = self._visible_category(update_data["category_id"]).id

        self.db.commit()
        self.db.refresh(transaction)
        return transaction

    def delete_transaction(self, transaction_id) -> bool:
        transaction = self._writable(transaction_id, FamilyPermission.DELETE_TRANSACTIONS)
        self.db.delete(transaction)
        self.db.commit()
        return True

    def get_stats(self, start_date: Optional[date] = None, end_date: Optional[date] = None,
                  family_id=None) -> dict:
        """Income, expenses, balance and per-category expense totals over a date range."""
        query = self._scoped_query(family_id)
        if start_date:
            query = query.filter(Transaction.date >= start_date)
        if end_date:
            query = query.filter(Transaction.date <= end_date)

        totals = query.with_entities(
            Transaction.type, func.sum(Transaction.amount)
        ).group_by(Transaction.type).all()
        by_type = {t: Decimal(str(total or 0)) for t, total in totals}
        income = by_type.get(TransactionType.income, Decimal("0.00"))
        expenses = by_type.get(TransactionType.expense, Decimal("0.00"))

        rows = query.filter(Transaction.type == TransactionType.expense).join(
            Category, Transaction.category_id == Category.id
        ).with_entities(
            Category.id, Category.name, func.sum(Transaction.amount).label("total")
        ).group_by(Category.id, Category.name).order_by(func.sum(Transaction.amount).desc()).all()

        return {
            "income": income.quantize(Decimal("0.01")),
            "expenses": expenses.quantize(Decimal("0.01")),
            "balance": (income - expenses).quantize(Decimal("0.01")),
            "by_category": [
                {"category_id": cid, "category_name": name, "amount": Decimal(str(total)).quantize(Decimal("0.01"))}
                for cid, name, total in rows
            ],
        }
