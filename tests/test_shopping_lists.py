"""Tests for shopping lists: sharing, item ordering and purchase-to-expense."""

import pytest
from decimal import Decimal

from fintrack.core.errors import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from fintrack.core.schemas import (
    CategoryCreate, FamilyCreate, InviteMember, MarkItemPurchased, ShoppingListCreate, ShoppingListItemCreate,
    ShoppingListItemUpdate, ShoppingListUpdate,
)
from fintrack.models import ItemPriority, Transaction, TransactionType
from fintrack.services.category_service import CategoryService
from fintrack.services.family_service import FamilyService
from fintrack.services.shopping_list_service import ShoppingListService
from fintrack.services.user_service import UserService


def new_list(ctx, name="Weekly shop", **kwargs):
    return ShoppingListService(ctx).create_shopping_list(ShoppingListCreate(name=name, **kwargs))


def add_item(ctx, list_id, name="Milk", price="3.50", category=None, priority=ItemPriority.nice_to_have):
    return ShoppingListService(ctx).add_item(list_id, ShoppingListItemCreate(
        name=name,
        estimated_price=Decimal(price),
        category_id=category.id if category else None,
        priority=priority,
    ))


class TestShoppingListBasics:
    def test_create_and_totals(self, ctx_for, alice):
        ctx = ctx_for(alice)
        shopping_list = new_list(ctx)
        add_item(ctx, shopping_list["id"], "Milk", "3.50")
        add_item(ctx, shopping_list["id"], "Bread", "2.25")

        result = ShoppingListService(ctx).get_shopping_list(shopping_list["id"])
        assert result["total_items"] == 2
        assert result["purchased_items"] == 0
        assert result["total_estimated"] == Decimal("5.75")
        assert result["total_actual"] == Decimal("0")

    def test_name_is_required(self, ctx_for, alice):
        with pytest.raises(ValidationError):
            new_list(ctx_for(alice), name="  ")

    def test_negative_price_rejected(self, ctx_for, alice):
        ctx = ctx_for(alice)
        shopping_list = new_list(ctx)
        with pytest.raises(ValidationError):
            add_item(ctx, shopping_list["id"], price="-1.00")

    def test_free_item_allowed(self, ctx_for, alice):
        ctx = ctx_for(alice)
        shopping_list = new_list(ctx)
        assert add_item(ctx, shopping_list["id"], "Sample", "0").estimated_price == Decimal("0.00")

    def test_items_ordered_by_status_then_priority(self, ctx_for, alice):
        ctx = ctx_for(alice)
        shopping_list = new_list(ctx)
        optional = add_item(ctx, shopping_list["id"], "Candy", priority=ItemPriority.optional)
        must = add_item(ctx, shopping_list["id"], "Rice", priority=ItemPriority.must_have)
        nice = add_item(ctx, shopping_list["id"], "Cheese", priority=ItemPriority.nice_to_have)
        ShoppingListService(ctx).mark_item_purchased(must.id, MarkItemPurchased())

        items = ShoppingListService(ctx).get_shopping_list(shopping_list["id"])["items"]
        assert [item.id for item in items] == [nice.id, optional.id, must.id]

    def test_update_and_remove_item(self, ctx_for, alice, food):
        ctx = ctx_for(alice)
        shopping_list = new_list(ctx)
        item = add_item(ctx, shopping_list["id"])
        service = ShoppingListService(ctx)

        updated = service.update_item(item.id, ShoppingListItemUpdate(
            name="Oat milk", category_id=food.id, priority=ItemPriority.must_have,
        ))
        assert updated.name == "Oat milk"
        assert updated.category_name == "Food"
        assert updated.priority == ItemPriority.must_have

        assert service.remove_item(item.id)
        assert service.get_shopping_list(shopping_list["id"])["total_items"] == 0

    def test_delete_list(self, ctx_for, alice):
        ctx = ctx_for(alice)
        shopping_list = new_list(ctx)
        add_item(ctx, shopping_list["id"])
        assert ShoppingListService(ctx).delete_shopping_list(shopping_list["id"])
        with pytest.raises(NotFoundError):
            ShoppingListService(ctx).get_shopping_list(shopping_list["id"])


class TestMarkPurchased:
    def test_creates_exactly_one_linked_expense(self, db, ctx_for, alice, food):
        ctx = ctx_for(alice)
        shopping_list = new_list(ctx)
        item = add_item(ctx, shopping_list["id"], "Milk", "3.50", category=food)

        purchased = ShoppingListService(ctx).mark_item_purchased(
            item.id, MarkItemPurchased(create_transaction=True)
        )
        assert purchased.purchased is True
        assert purchased.purchased_by == alice.id
        assert purchased.purchased_at is not None
        assert purchased.actual_price == Decimal("3.50")

        transactions = db.query(Transaction).filter(Transaction.description == "Shopping: Milk").all()
        assert len(transactions) == 1
        transaction = transactions[0]
        assert purchased.transaction_id == transaction.id
        assert transaction.amount == Decimal("3.50")
        assert transaction.type == TransactionType.expense
        assert transaction.category_id == food.id
        assert transaction.user_id == alice.id

    def test_actual_price_overrides_estimate(self, ctx_for, alice, food):
        ctx = ctx_for(alice)
        shopping_list = new_list(ctx)
        item = add_item(ctx, shopping_list["id"], "Cheese", "8.00", category=food)
        purchased = ShoppingListService(ctx).mark_item_purchased(
            item.id, MarkItemPurchased(actual_price=Decimal("6.40"), create_transaction=True)
        )
        assert purchased.actual_price == Decimal("6.40")
        assert purchased.transaction.amount == Decimal("6.40")

        result = ShoppingListService(ctx).get_shopping_list(shopping_list["id"])
        assert result["total_actual"] == Decimal("6.40")
        assert result["purchased_items"] == 1

    def test_no_transaction_without_category(self, db, ctx_for, alice):
        ctx = ctx_for(alice)
        shopping_list = new_list(ctx)
        item = add_item(ctx, shopping_list["id"], "Mystery")
        purchased = ShoppingListService(ctx).mark_item_purchased(
            item.id, MarkItemPurchased(create_transaction=True)
        )
        assert purchased.transaction_id is None
        assert db.query(Transaction).count() == 0

    def test_no_transaction_unless_requested(self, db, ctx_for, alice, food):
        ctx = ctx_for(alice)
        shopping_list = new_list(ctx)
        item = add_item(ctx, shopping_list["id"], category=food)
        ShoppingListService(ctx).mark_item_purchased(item.id, MarkItemPurchased())
        assert db.query(Transaction).count() == 0

    def test_cannot_purchase_twice(self, db, ctx_for, alice, food):
        ctx = ctx_for(alice)
        shopping_list = new_list(ctx)
        item = add_item(ctx, shopping_list["id"], category=food)
        service = ShoppingListService(ctx)
        service.mark_item_purchased(item.id, MarkItemPurchased(create_transaction=True))

        with pytest.raises(ConflictError):
            service.mark_item_purchased(item.id, MarkItemPurchased(create_transaction=True))
        assert db.query(Transaction).count() == 1

    def test_family_list_expense_lands_in_family(self, ctx_for, alice, food):
        ctx = ctx_for(alice)
        family = FamilyService(ctx).create_family(FamilyCreate(name="Home"))
        shopping_list = new_list(ctx, family_id=family.id)
        item = add_item(ctx, shopping_list["id"], category=food)
        purchased = ShoppingListService(ctx).mark_item_purchased(
            item.id, MarkItemPurchased(create_transaction=True)
        )
        assert purchased.transaction.family_id == family.id


class TestSharing:
    def test_shared_with_is_cleaned(self, ctx_for, alice):
        shopping_list = new_list(
            ctx_for(alice),
            shared=True,
            shared_with=["Bob@Example.com", "bob@example.com", "alice@example.com", "carol@example.com"],
        )
        assert shopping_list["shared_with"] == ["bob@example.com", "carol@example.com"]

    def test_invalid_shared_email(self, ctx_for, alice):
        with pytest.raises(ValidationError):
            new_list(ctx_for(alice), shared=True, shared_with=["not-an-email"])

    def test_shared_user_sees_list(self, ctx_for, alice, bob, carol):
        shopping_list = new_list(ctx_for(alice), shared=True, shared_with=[bob.email])

        assert [sl["id"] for sl in ShoppingListService(ctx_for(bob)).list_shopping_lists()] == [shopping_list["id"]]
        assert ShoppingListService(ctx_for(carol)).list_shopping_lists() == []
        with pytest.raises(NotFoundError):
            ShoppingListService(ctx_for(carol)).get_shopping_list(shopping_list["id"])

    def test_shared_user_can_add_items_but_not_delete_list(self, ctx_for, alice, bob):
        shopping_list = new_list(ctx_for(alice), shared=True, shared_with=[bob.email])
        item = add_item(ctx_for(bob), shopping_list["id"], "Apples")
        assert item.list_id == shopping_list["id"]
        with pytest.raises(AccessDeniedError):
            ShoppingListService(ctx_for(bob)).delete_shopping_list(shopping_list["id"])

    def test_unsharing_revokes_access(self, ctx_for, alice, bob):
        shopping_list = new_list(ctx_for(alice), shared=True, shared_with=[bob.email])
        updated = ShoppingListService(ctx_for(alice)).update_shopping_list(
            shopping_list["id"], ShoppingListUpdate(shared=False)
        )
        assert updated["shared_with"] == []
        with pytest.raises(NotFoundError):
            ShoppingListService(ctx_for(bob)).get_shopping_list(shopping_list["id"])

    def test_update_keeps_retained_addresses(self, ctx_for, alice):
        ctx = ctx_for(alice)
        shopping_list = new_list(ctx, shared=True, shared_with=["bob@example.com"])
        updated = ShoppingListService(ctx).update_shopping_list(
            shopping_list["id"], ShoppingListUpdate(shared_with=["bob@example.com", "dave@example.com"])
        )
        assert updated["shared_with"] == ["bob@example.com", "dave@example.com"]


class TestFamilyLists:
    @pytest.fixture
    def family(self, ctx_for, alice, bob):
        service = FamilyService(ctx_for(alice))
        family = service.create_family(FamilyCreate(name="Home"))
        service.invite_member(family.id, InviteMember(email=bob.email))
        return family

    def test_member_with_view_can_read(self, ctx_for, alice, bob, family):
        shopping_list = new_list(ctx_for(alice), family_id=family.id)
        lists = ShoppingListService(ctx_for(bob)).list_shopping_lists(family_id=family.id)
        assert [sl["id"] for sl in lists] == [shopping_list["id"]]

    def test_member_needs_manage_permission_to_edit(self, ctx_for, alice, bob, family):
        shopping_list = new_list(ctx_for(alice), family_id=family.id)
        with pytest.raises(AccessDeniedError):
            add_item(ctx_for(bob), shopping_list["id"])
        with pytest.raises(AccessDeniedError):
            new_list(ctx_for(bob), family_id=family.id)

    def test_non_member_cannot_list(self, ctx_for, carol, family):
        with pytest.raises(NotFoundError):
            ShoppingListService(ctx_for(carol)).list_shopping_lists(family_id=family.id)


class TestItemCategories:
    def test_shared_user_cannot_attach_private_category(self, db, ctx_for, alice, bob):
        bobs = CategoryService(ctx_for(bob)).create_category(
            CategoryCreate(name="Bob only", color="#123456", type=TransactionType.expense)
        )
        shopping_list = new_list(ctx_for(alice), shared=True, shared_with=[bob.email])

        with pytest.raises(NotFoundError):
            add_item(ctx_for(bob), shopping_list["id"], category=bobs)
        item = add_item(ctx_for(bob), shopping_list["id"])
        with pytest.raises(NotFoundError):
            ShoppingListService(ctx_for(bob)).update_item(item.id, ShoppingListItemUpdate(category_id=bobs.id))

        # Nothing of Bob's ends up referenced by Alice's rows, so his account can go
        assert UserService(ctx_for(bob)).delete_account("secret123")
        assert db.query(Transaction).count() == 0

    def test_buyer_must_see_category(self, db, ctx_for, alice, bob):
        alices = CategoryService(ctx_for(alice)).create_category(
            CategoryCreate(name="Alice only", color="#654321", type=TransactionType.expense)
        )
        shopping_list = new_list(ctx_for(alice), shared=True, shared_with=[bob.email])
        item = add_item(ctx_for(alice), shopping_list["id"], category=alices)

        with pytest.raises(ValidationError) as exc_info:
            ShoppingListService(ctx_for(bob)).mark_item_purchased(
                item.id, MarkItemPurchased(create_transaction=True)
            )
        assert exc_info.value.error_code == "CATEGORY_NOT_VISIBLE"
        assert db.query(Transaction).count() == 0

        purchased = ShoppingListService(ctx_for(alice)).mark_item_purchased(
            item.id, MarkItemPurchased(create_transaction=True)
        )
        assert purchased.transaction.category_id == alices.id
