"""
Budget aggregation and CRUD.

Spent/remaining/percentage/status are never stored: every read sums the
matching expense transactions again. The window of a budget is derived from
its start date and period, and two budgets of the same category, owner,
family and period may not have overlapping windows.
"""

from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Optional, List
from decimal import Decimal, ROUND_HALF_UP
from datetime import date
import calendar
import structlog

from fintrack.core.context import RequestContext
from fintrack.core.errors import ConflictError, NotFoundError
from fintrack.core.schemas import BudgetCreate, BudgetUpdate
from fintrack.core.validation import validate_amount
from fintrack.models.budget import Budget, BudgetPeriod, BudgetStatus
from fintrack.models.category import Category
from fintrack.models.family import FamilyPermission
from fintrack.models.transaction import Transaction, TransactionType
from fintrack.models.user import User
from fintrack.services.category_service import visible_category_filter
from fintrack.services.permissions import FamilyAccess

logger = structlog.get_logger(__name__)

WARNING_THRESHOLD = Decimal("80")
DANGER_THRESHOLD = Decimal("100")
CENTS = Decimal("0.01")

def period_end(start_date: date, period: BudgetPeriod) -> date:
    """Last day of the start month (monthly) or 31 December of the start year (yearly)."""
    if period == BudgetPeriod.yearly:
        return date(start_date.year, 12, 31)
    last_day = calendar.monthrange(start_date.year, start_date.month)[1]
    return date(start_date.year, start_date.month, last_day)

def windows_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    return start_a <= end_b and end_a >= start_b

def exact_percentage(spent: Decimal, amount: Decimal) -> Decimal:
    if not amount:
        return Decimal("0")
    return Decimal(spent) / Decimal(amount) * 100

def percentage_of(spent: Decimal, amount: Decimal) -> Decimal:
    """Reported percentage, rounded to cents."""
    return exact_percentage(spent, amount).quantize(CENTS, rounding=ROUND_HALF_UP)

def status_for(percentage: Decimal) -> BudgetStatus:
    # Grade the unrounded value: 99.999% is still under the limit
    if percentage >= DANGER_THRESHOLD:
        return BudgetStatus.danger
    if percentage >= WARNING_THRESHOLD:
        return BudgetStatus.warning
    return BudgetStatus.good

def calculate_spent(db: Session, budget: Budget) -> Decimal:
    """Sum of the owner's expenses in the budget's category, family scope and window."""
    query = db.query(func.sum(Transaction.amount)).filter(
        Transaction.type == TransactionType.expense,
        Transaction.category_id == budget.category_id,
        Transaction.user_id == budget.user_id,
        Transaction.date >= budget.start_date,
        Transaction.date <= budget.end_date,
    )
    if budget.family_id is None:
        query = query.filter(Transaction.family_id.is_(None))
    else:
        query = query.filter(Transaction.family_id == budget.family_id)

    total = query.scalar()
    return Decimal(str(total)).quantize(CENTS) if total is not None else Decimal("0.00")

def budget_with_usage(db: Session, budget: Budget) -> dict:
    spent = calculate_spent(db, budget)
    amount = Decimal(budget.amount)
    percentage = percentage_of(spent, amount)
    return {
        "id": budget.id,
        "category_id": budget.category_id,
        "category_name": budget.category.name if budget.category else None,
        "amount": amount,
        "period": budget.period,
        "start_date": budget.start_date,
        "end_date": budget.end_date,
        "user_id": budget.user_id,
        "family_id": budget.family_id,
        "created_at": budget.created_at,
        "updated_at": budget.updated_at,
        "spent": spent,
        "remaining": (amount - spent).quantize(CENTS),
        "percentage": percentage,
        "status": status_for(exact_percentage(spent, amount)),
    }

def find_overlapping_budget(db: Session, category_id, user_id, family_id, period: BudgetPeriod,
                            start_date: date, end_date: date, exclude_id=None) -> Optional[Budget]:
    query = db.query(Budget).filter(
        Budget.category_id == category_id,
        Budget.user_id == user_id,
        Budget.period == period,
        Budget.start_date <= end_date,
        Budget.end_date >= start_date,
    )
    if family_id is None:
        query = query.filter(Budget.family_id.is_(None))
    else:
        query = query.filter(Budget.family_id == family_id)
    if exclude_id is not None:
        query = query.filter(Budget.id != exclude_id)
    return query.first()

def _overlap_message(existing: Budget) -> str:
    return (
        "A budget for this category and period already exists "
        f"({existing.start_date:%b %Y} - {existing.end_date:%b %Y})"
    )

class BudgetService:
    def __init__(self, ctx: RequestContext):
        self.ctx = ctx
        self.db: Session = ctx.db

    def _scoped_query(self, family_id=None, period: Optional[BudgetPeriod] = None):
        user = self.ctx.require_user()
        query = self.db.query(Budget)
        if family_id:
            FamilyAccess.require_permission(self.db, family_id, user.id, FamilyPermission.VIEW)
            query = query.filter(Budget.family_id == family_id)
        else:
            query = query.filter(Budget.user_id == user.id)
        if period:
            query = query.filter(Budget.period == period)
        return query

    def _lock_owner(self, user_id):
        # Serializes check-then-insert for one owner; SQLite ignores FOR UPDATE
        self.db.query(User).filter(User.id == user_id).with_for_update().first()

    def _get_visible(self, budget_id) -> Budget:
        user = self.ctx.require_user()
        budget = self.db.query(Budget).filter(Budget.id == budget_id).first()
        if budget is None:
            raise NotFoundError("Budget not found")
        if budget.user_id == user.id:
            return budget
        if budget.family_id and FamilyAccess.has_permission(
            self.db, budget.family_id, user.id, FamilyPermission.VIEW
        ):
            return budget
        raise NotFoundError("Budget not found")

    def _get_writable(self, budget_id) -> Budget:
        user = self.ctx.require_user()
        budget = self._get_visible(budget_id)
        if budget.family_id:
            FamilyAccess.require_permission(self.db, budget.family_id, user.id, FamilyPermission.MANAGE_BUDGETS)
        elif budget.user_id != user.id:
            raise NotFoundError("Budget not found")
        return budget

    def list_budgets(self, period: Optional[BudgetPeriod] = None, family_id=None) -> List[dict]:
        budgets = self._scoped_query(family_id, period).join(
            Category, Budget.category_id == Category.id
        ).order_by(Category.name.asc(), Budget.period.asc(), Budget.start_date.asc()).all()
        return [budget_with_usage(self.db, b) for b in budgets]

    def get_budget(self, budget_id) -> dict:
        return budget_with_usage(self.db, self._get_visible(budget_id))

    def create_budget(self, data: BudgetCreate) -> dict:
        user = self.ctx.require_user()
        amount = validate_amount(data.amount, "Budget amount")

        category = self.db.query(Category).filter(
            Category.id == data.category_id, visible_category_filter(user.id)
        ).first()
        if category is None:
            raise NotFoundError("Category not found")

        if data.family_id:
            FamilyAccess.require_permission(self.db, data.family_id, user.id, FamilyPermission.MANAGE_BUDGETS)

        end_date = period_end(data.start_date, data.period)

        self._lock_owner(user.id)
        existing = find_overlapping_budget(
            self.db, data.category_id, user.id, data.family_id, data.period, data.start_date, end_date
        )
        if existing:
            raise ConflictError(_overlap_message(existing), "BUDGET_EXISTS")

        budget = Budget(
            category_id=data.category_id,
            amount=amount,
            period=data.period,
            start_date=data.start_date,
            end_date=end_date,
            user_id=user.id,
            family_id=data.family_id,
        )
        self.db.add(budget)
        self.db.commit()
        self.db.refresh(budget)
        logger.info("budget_created", budget_id=str(budget.id), period=budget.period.value)
        return budget_with_usage(self.db, budget)

    def update_budget(self, budget_id, data: BudgetUpdate) -> dict:
        budget = self._get_writable(budget_id)
        update_data = data.model_dump(exclude_unset=True)

        if update_data.get("amount") is not None:
            budget.amount = validate_amount(update_data["amount"], "Budget amount")

        period = update_data.get("period") or budget.period
        start_date = update_data.get("start_date") or budget.start_date
        if period != budget.period or start_date != budget.start_date:
            end_date = period_end(start_date, period)
            self._lock_owner(budget.user_id)
            existing = find_overlapping_budget(
                self.db, budget.category_id, budget.user_id, budget.family_id,
                period, start_date, end_date, exclude_id=budget.id,
            )
            if existing:
                raise ConflictError(_overlap_message(existing), "BUDGET_EXISTS")
            budget.period = period
            budget.start_date = start_date
            budget.end_date = end_date

        self.db.commit()
        self.db.refresh(budget)
        return budget_with_usage(self.db, budget)

    def delete_budget(self, budget_id) -> bool:
        budget = self._get_writable(budget_id)
        self.db.delete(budget)
        self.db.commit()
        return True

    def get_summary(self, period: Optional[BudgetPeriod] = None, family_id=None) -> dict:
        budgets = self._scoped_query(family_id, period).all()

        total_budget = Decimal("0.00")
        total_spent = Decimal("0.00")
        over_budget = 0
        near_limit = 0
        for budget in budgets:
            usage = budget_with_usage(self.db, budget)
            total_budget += usage["amount"]
            total_spent += usage["spent"]
            if usage["status"] == BudgetStatus.danger:
                over_budget += 1
            elif usage["status"] == BudgetStatus.warning:
                near_limit += 1

        return {
            "total_budget": total_budget,
            "total_spent": total_spent,
            "total_remaining": total_budget - total_spent,
            "overall_percentage": percentage_of(total_spent, total_budget),
            "categories_over_budget": over_budget,
            "categories_near_limit": near_limit,
        }
