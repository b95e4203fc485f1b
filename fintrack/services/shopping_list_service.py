from sqlalchemy.orm import Session
from sqlalchemy import or_, select
from typing import List
from decimal import Decimal
from datetime import date, datetime, timezone
import structlog

from fintrack.core.context import RequestContext
from fintrack.core.errors import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from fintrack.core.schemas import (
    ShoppingListCreate, ShoppingListUpdate, ShoppingListItemCreate, ShoppingListItemUpdate, MarkItemPurchased,
)
from fintrack.core.validation import optional_text, require_text, validate_amount, validate_email
from fintrack.models.category import Category
from fintrack.models.family import FamilyPermission
from fintrack.models.shopping_list import ShoppingList, ShoppingListItem, ShoppingListShare, PRIORITY_RANK
from fintrack.models.transaction import Transaction, TransactionType
from fintrack.services.category_service import visible_category_filter
from fintrack.services.permissions import FamilyAccess

logger = structlog.get_logger(__name__)

def sorted_items(items) -> List[ShoppingListItem]:
    """Unpurchased first, then by priority, then oldest first."""
    return sorted(
        items,
        key=lambda item: (
            item.purchased,
            PRIORITY_RANK.get(item.priority, len(PRIORITY_RANK)),
            item.created_at.timestamp() if item.created_at else 0,
        ),
    )

def shopping_list_with_totals(shopping_list: ShoppingList) -> dict:
    items = sorted_items(shopping_list.items)
    purchased = [item for item in items if item.purchased]
    return {
        "id": shopping_list.id,
        "name": shopping_list.name,
        "description": shopping_list.description,
        "user_id": shopping_list.user_id,
        "family_id": shopping_list.family_id,
        "shared": shopping_list.shared,
        "shared_with": shopping_list.shared_with,
        "items": items,
        "created_at": shopping_list.created_at,
        "updated_at": shopping_list.updated_at,
        "total_estimated": sum((Decimal(i.estimated_price) for i in items), Decimal("0.00")),
        "total_actual": sum((Decimal(i.actual_price or 0) for i in purchased), Decimal("0.00")),
        "total_items": len(items),
        "purchased_items": len(purchased),
    }

class ShoppingListService:
    def __init__(self, ctx: RequestContext):
        self.ctx = ctx
        self.db: Session = ctx.db

    # Access rules

    def _is_shared_with_me(self, shopping_list: ShoppingList) -> bool:
        user = self.ctx.require_user()
        return shopping_list.shared and user.email in shopping_list.shared_with

    def _can_view(self, shopping_list: ShoppingList) -> bool:
        user = self.ctx.require_user()
        if shopping_list.user_id == user.id or self._is_shared_with_me(shopping_list):
            return True
        return bool(shopping_list.family_id) and FamilyAccess.has_permission(
            self.db, shopping_list.family_id, user.id, FamilyPermission.VIEW
        )

    def _get_visible(self, list_id) -> ShoppingList:
        shopping_list = self.db.query(ShoppingList).filter(ShoppingList.id == list_id).first()
        if shopping_list is None or not self._can_view(shopping_list):
            raise NotFoundError("Shopping list not found or access denied")
        return shopping_list

    def _require_list_manager(self, shopping_list: ShoppingList):
        """Owners manage their lists; family lists also accept MANAGE_SHOPPING_LISTS."""
        user = self.ctx.require_user()
        if shopping_list.user_id == user.id:
            return
        if shopping_list.family_id:
            FamilyAccess.require_permission(
                self.db, shopping_list.family_id, user.id, FamilyPermission.MANAGE_SHOPPING_LISTS
            )
            return
        raise AccessDeniedError("Only the owner can modify this shopping list")

    def _require_item_editor(self, shopping_list: ShoppingList):
        user = self.ctx.require_user()
        if shopping_list.user_id == user.id or self._is_shared_with_me(shopping_list):
            return
        if shopping_list.family_id:
            FamilyAccess.require_permission(
                self.db, shopping_list.family_id, user.id, FamilyPermission.MANAGE_SHOPPING_LISTS
            )
            return
        raise AccessDeniedError("Access denied to shopping list item")

    def _get_item(self, item_id) -> ShoppingListItem:
        item = self.db.query(ShoppingListItem).filter(ShoppingListItem.id == item_id).first()
        if item is None or not self._can_view(item.shopping_list):
            raise NotFoundError("Shopping list item not found")
        self._require_item_editor(item.shopping_list)
        return item

    def _visible_category_id(self, category_id, shopping_list: ShoppingList):
        """The category must be visible to the editor and to the list owner."""
        if category_id is None:
            return None
        user = self.ctx.require_user()
        for user_id in {user.id, shopping_list.user_id}:
            if not self._category_visible_to(category_id, user_id):
                raise NotFoundError("Category not found")
        return category_id

    def _category_visible_to(self, category_id, user_id) -> bool:
        return self.db.query(Category.id).filter(
            Category.id == category_id, visible_category_filter(user_id)
        ).first() is not None

    def _clean_shared_with(self, emails) -> List[str]:
        """Validate, de-duplicate (keeping order) and drop the owner's own address."""
        user = self.ctx.require_user()
        cleaned = []
        for email in emails or []:
            email = validate_email(email)
            if email != user.email and email not in cleaned:
                cleaned.append(email)
        return cleaned

    def _set_shares(self, shopping_list: ShoppingList, emails: List[str]):
        # Keep existing rows for retained addresses so the (list, email) key never collides on flush
        existing = {share.email: share for share in shopping_list.shares}
        shopping_list.shares = [existing.get(email) or ShoppingListShare(email=email) for email in emails]

    # Lists

    def list_shopping_lists(self, family_id=None) -> List[dict]:
        user = self.ctx.require_user()
        query = self.db.query(ShoppingList)
        if family_id:
            FamilyAccess.require_permission(self.db, family_id, user.id, FamilyPermission.VIEW)
            query = query.filter(ShoppingList.family_id == family_id)
        else:
            shared_ids = select(ShoppingListShare.list_id).where(ShoppingListShare.email == user.email)
            query = query.filter(or_(
                ShoppingList.user_id == user.id,
                (ShoppingList.id.in_(shared_ids)) & ShoppingList.shared.is_(True),
            ))
        lists = query.order_by(ShoppingList.updated_at.desc(), ShoppingList.created_at.desc()).all()
        return [shopping_list_with_totals(sl) for sl in lists]

    def get_shopping_list(self, list_id) -> dict:
        return shopping_list_with_totals(self._get_visible(list_id))

    def create_shopping_list(self, data: ShoppingListCreate) -> dict:
        user = self.ctx.require_user()
        name = require_text(data.name, "Shopping list name", 100)
        description = optional_text(data.description, "Description")

        if data.family_id:
            FamilyAccess.require_permission(
                self.db, data.family_id, user.id, FamilyPermission.MANAGE_SHOPPING_LISTS
            )

        shopping_list = ShoppingList(
            name=name,
            description=description,
            user_id=user.id,
            family_id=data.family_id,
            shared=data.shared,
        )
        if data.shared:
            self._set_shares(shopping_list, self._clean_shared_with(data.shared_with))

        self.db.add(shopping_list)
        self.db.commit()
        self.db.refresh(shopping_list)
        return shopping_list_with_totals(shopping_list)

    def update_shopping_list(self, list_id, data: ShoppingListUpdate) -> dict:
        shopping_list = self._get_visible(list_id)
        self._require_list_manager(shopping_list)
        update_data = data.model_dump(exclude_unset=True)

        if "name" in update_data:
            shopping_list.name = require_text(update_data["name"], "Shopping list name", 100)
        if "description" in update_data:
            shopping_list.description = optional_text(update_data["description"], "Description")
        if update_data.get("shared") is not None:
            shopping_list.shared = update_data["shared"]
        if update_data.get("shared_with") is not None:
            self._set_shares(shopping_list, self._clean_shared_with(update_data["shared_with"]))
        if not shopping_list.shared:
            self._set_shares(shopping_list, [])

        self.db.commit()
        self.db.refresh(shopping_list)
        return shopping_list_with_totals(shopping_list)

    def delete_shopping_list(self, list_id) -> bool:
        shopping_list = self._get_visible(list_id)
        self._require_list_manager(shopping_list)
        self.db.delete(shopping_list)
        self.db.commit()
        return True

    # Items

    def add_item(self, list_id, data: ShoppingListItemCreate) -> ShoppingListItem:
        shopping_list = self._get_visible(list_id)
        self._require_item_editor(shopping_list)

        item = ShoppingListItem(
            list_id=shopping_list.id,
            name=require_text(data.name, "Item name", 100),
            estimated_price=validate_amount(data.estimated_price, "Estimated price", allow_zero=True),
            category_id=self._visible_category_id(data.category_id, shopping_list),
            priority=data.priority,
        )
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def update_item(self, item_id, data: ShoppingListItemUpdate) -> ShoppingListItem:
        item = self._get_item(item_id)
        update_data = data.model_dump(exclude_unset=True)

        if "name" in update_data:
            item.name = require_text(update_data["name"], "Item name", 100)
        if update_data.get("estimated_price") is not None:
            item.estimated_price = validate_amount(update_data["estimated_price"], "Estimated price", allow_zero=True)
        if "category_id" in update_data:
            item.category_id = self._visible_category_id(update_data["category_id"], item.shopping_list)
        if update_data.get("priority") is not None:
            item.priority = update_data["priority"]

        self.db.commit()
        self.db.refresh(item)
        return item

    def remove_item(self, item_id) -> bool:
        item = self._get_item(item_id)
        self.db.delete(item)
        self.db.commit()
        return True

    def mark_item_purchased(self, item_id, data: MarkItemPurchased) -> ShoppingListItem:
        """
        Record the purchase of an item.

        The actual price defaults to the estimate. With ``create_transaction``
        and a category on the item, one expense is created in the list's
        family scope and linked to the item.
        """
        user = self.ctx.require_user()
        item = self._get_item(item_id)
        if item.purchased:
            raise ConflictError("Item is already marked as purchased", "ALREADY_PURCHASED")

        if data.actual_price is not None:
            actual_price = validate_amount(data.actual_price, "Actual price", allow_zero=True)
        else:
            actual_price = Decimal(item.estimated_price)

        family_id = item.shopping_list.family_id
        create_transaction = data.create_transaction and item.category_id is not None
        if create_transaction:
            # The expense belongs to the buyer, so the buyer must be able to see its category
            if not self._category_visible_to(item.category_id, user.id):
                raise ValidationError(
                    "Cannot create an expense in a category you do not have access to",
                    "CATEGORY_NOT_VISIBLE",
                )
            if family_id:
                FamilyAccess.require_permission(self.db, family_id, user.id, FamilyPermission.ADD_TRANSACTIONS)
            if actual_price <= 0:
                create_transaction = False

        item.purchased = True
        item.purchased_at = datetime.now(timezone.utc)
        item.purchased_by = user.id
        item.actual_price = actual_price

        if create_transaction:
            transaction = Transaction(
                amount=actual_price,
                description=f"Shopping: {item.name}"[:200],
                type=TransactionType.expense,
                date=date.today(),
                category_id=item.category_id,
                user_id=user.id,
                family_id=family_id,
            )
            self.db.add(transaction)
            self.db.flush()
            item.transaction_id = transaction.id

        self.db.commit()
        self.db.refresh(item)
        logger.info(
            "shopping_item_purchased",
            item_id=str(item.id),
            transaction_id=str(item.transaction_id) if item.transaction_id else None,
        )
        return item
