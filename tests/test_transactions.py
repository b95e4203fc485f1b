"""Tests for transactions: validation, pagination, filters and family visibility."""

import pytest
from datetime import date
from decimal import Decimal

from fintrack.core.errors import AccessDeniedError, NotFoundError, ValidationError
from fintrack.core.schemas import (
    CategoryCreate, FamilyCreate, InviteMember, MemberUpdate, TransactionCreate, TransactionFilters,
    TransactionUpdate,
)
from fintrack.models import TransactionType
from fintrack.services.category_service import CategoryService
from fintrack.services.family_service import FamilyService
from fintrack.services.permissions import FamilyAccess
from fintrack.services.transaction_service import TransactionService


def create(ctx, category, amount="10.00", description="Coffee", day=date(2024, 1, 1),
           tx_type=TransactionType.expense, family_id=None):
    return TransactionService(ctx).create_transaction(TransactionCreate(
        amount=Decimal(amount),
        description=description,
        type=tx_type,
        date=day,
        category_id=category.id,
        family_id=family_id,
    ))


class TestCreateTransaction:
    def test_round_trip(self, ctx_for, alice, food):
        ctx = ctx_for(alice)
        created = create(ctx, food, amount="12.34", description="  Lunch   with  team ")
        fetched = TransactionService(ctx).get_transaction(created.id)

        assert fetched.amount == Decimal("12.34")
        assert fetched.description == "Lunch with team"
        assert fetched.date == date(2024, 1, 1)
        assert fetched.user_id == alice.id
        assert fetched.family_id is None

    def test_exactly_one_row_per_create(self, ctx_for, alice, food):
        ctx = ctx_for(alice)
        create(ctx, food)
        assert TransactionService(ctx).list_transactions()["total"] == 1

    def test_rejects_bad_amounts(self, ctx_for, alice, food):
        ctx = ctx_for(alice)
        for amount in ("0", "-5", "1.234"):
            with pytest.raises(ValidationError):
                create(ctx, food, amount=amount)

    def test_rejects_empty_description(self, ctx_for, alice, food):
        with pytest.raises(ValidationError):
            create(ctx_for(alice), food, description="   ")

    def test_rejects_long_description(self, ctx_for, alice, food):
        with pytest.raises(ValidationError):
            create(ctx_for(alice), food, description="x" * 201)

    def test_rejects_invisible_category(self, ctx_for, alice, bob):
        bobs = CategoryService(ctx_for(bob)).create_category(
            CategoryCreate(name="Bob only", color="#000000", type=TransactionType.expense)
        )
        with pytest.raises(NotFoundError):
            create(ctx_for(alice), bobs)


class TestPagination:
    def test_pages_and_flags(self, ctx_for, alice, food):
        ctx = ctx_for(alice)
        for day in range(1, 6):
            create(ctx, food, description=f"Day {day}", day=date(2024, 1, day))
        service = TransactionService(ctx)

        first = service.list_transactions(page=1, limit=2)
        assert first["total"] == 5
        assert [t.description for t in first["transactions"]] == ["Day 5", "Day 4"]
        assert first["has_next"] is True
        assert first["has_prev"] is False

        last = service.list_transactions(page=3, limit=2)
        assert [t.description for t in last["transactions"]] == ["Day 1"]
        assert last["has_next"] is False
        assert last["has_prev"] is True

    def test_invalid_page_arguments(self, ctx_for, alice):
        service = TransactionService(ctx_for(alice))
        with pytest.raises(ValidationError):
            service.list_transactions(page=0)
        with pytest.raises(ValidationError):
            service.list_transactions(limit=0)


class TestFilters:
    @pytest.fixture
    def seeded(self, ctx_for, alice, food, salary, default_category):
        ctx = ctx_for(alice)
        create(ctx, food, "15.00", "Pizza night", date(2024, 1, 5))
        create(ctx, food, "80.00", "Weekly groceries", date(2024, 1, 12))
        create(ctx, default_category("Travel"), "300.00", "Train tickets", date(2024, 2, 1))
        create(ctx, salary, "2500.00", "January salary", date(2024, 1, 31), tx_type=TransactionType.income)
        return TransactionService(ctx)

    def descriptions(self, service, **filters):
        page = service.list_transactions(filters=TransactionFilters(**filters))
        return sorted(t.description for t in page["transactions"])

    def test_by_type(self, seeded):
        assert self.descriptions(seeded, transaction_type=TransactionType.income) == ["January salary"]

    def test_by_date_range(self, seeded):
        assert self.descriptions(seeded, start_date=date(2024, 1, 10), end_date=date(2024, 1, 31)) == [
            "January salary", "Weekly groceries",
        ]

    def test_by_category(self, seeded, food):
        assert self.descriptions(seeded, category_ids=[food.id]) == ["Pizza night", "Weekly groceries"]

    def test_by_amount(self, seeded):
        assert self.descriptions(seeded, min_amount=Decimal("50"), max_amount=Decimal("300")) == [
            "Train tickets", "Weekly groceries",
        ]

    def test_search_is_case_insensitive(self, seeded):
        assert self.descriptions(seeded, search="PIZZA") == ["Pizza night"]

    def test_search_wildcards_are_literal(self, ctx_for, alice, food):
        ctx = ctx_for(alice)
        create(ctx, food, description="50% off shoes")
        create(ctx, food, description="500 apples")
        create(ctx, food, description="snack_bar")
        create(ctx, food, description="snack bar")
        service = TransactionService(ctx)

        assert self.descriptions(service, search="50%") == ["50% off shoes"]
        assert self.descriptions(service, search="snack_") == ["snack_bar"]


class TestUpdateAndDelete:
    def test_update_fields(self, ctx_for, alice, food, default_category):
        ctx = ctx_for(alice)
        transaction = create(ctx, food)
        travel = default_category("Travel")
        updated = TransactionService(ctx).update_transaction(transaction.id, TransactionUpdate(
            amount=Decimal("99.99"), description="Taxi", category_id=travel.id,
        ))
        assert updated.amount == Decimal("99.99")
        assert updated.description == "Taxi"
        assert updated.category_id == travel.id

    def test_update_validates_amount(self, ctx_for, alice, food):
        ctx = ctx_for(alice)
        transaction = create(ctx, food)
        with pytest.raises(ValidationError):
            TransactionService(ctx).update_transaction(transaction.id, TransactionUpdate(amount=Decimal("0")))

    def test_delete(self, ctx_for, alice, food):
        ctx = ctx_for(alice)
        transaction = create(ctx, food)
        assert TransactionService(ctx).delete_transaction(transaction.id)
        with pytest.raises(NotFoundError):
            TransactionService(ctx).get_transaction(transaction.id)

    def test_other_users_transaction_is_not_found(self, ctx_for, alice, bob, food):
        transaction = create(ctx_for(alice), food)
        with pytest.raises(NotFoundError):
            TransactionService(ctx_for(bob)).get_transaction(transaction.id)
        with pytest.raises(NotFoundError):
            TransactionService(ctx_for(bob)).delete_transaction(transaction.id)


class TestFamilyTransactions:
    @pytest.fixture
    def family(self, ctx_for, alice, bob):
        service = FamilyService(ctx_for(alice))
        family = service.create_family(FamilyCreate(name="Home"))
        service.invite_member(family.id, InviteMember(email=bob.email))
        return family

    def test_members_see_family_transactions(self, ctx_for, alice, bob, food, family):
        shared = create(ctx_for(bob), food, description="Family dinner", family_id=family.id)
        create(ctx_for(bob), food, description="Bob private")

        page = TransactionService(ctx_for(alice)).list_transactions(filters=TransactionFilters(family_id=family.id))
        assert [t.description for t in page["transactions"]] == ["Family dinner"]
        assert TransactionService(ctx_for(alice)).get_transaction(shared.id).id == shared.id

    def test_non_member_cannot_list_family(self, ctx_for, carol, family):
        with pytest.raises(NotFoundError):
            TransactionService(ctx_for(carol)).list_transactions(filters=TransactionFilters(family_id=family.id))

    def test_create_needs_add_transactions(self, db, ctx_for, alice, bob, food, family):
        membership = FamilyAccess.get_membership(db, family.id, bob.id)
        FamilyService(ctx_for(alice)).update_member(family.id, membership.id, MemberUpdate(permissions=["VIEW"]))
        with pytest.raises(AccessDeniedError):
            create(ctx_for(bob), food, family_id=family.id)

    def test_editing_others_needs_edit_permission(self, ctx_for, alice, bob, food, family):
        alices = create(ctx_for(alice), food, family_id=family.id)
        with pytest.raises(AccessDeniedError):
            TransactionService(ctx_for(bob)).update_transaction(alices.id, TransactionUpdate(description="Mine now"))
        with pytest.raises(AccessDeniedError):
            TransactionService(ctx_for(bob)).delete_transaction(alices.id)

        # Admins hold every permission
        bobs = create(ctx_for(bob), food, family_id=family.id)
        updated = TransactionService(ctx_for(alice)).update_transaction(bobs.id, TransactionUpdate(description="Fixed"))
        assert updated.description == "Fixed"


class TestStats:
    def test_income_expenses_and_breakdown(self, ctx_for, alice, food, salary, default_category):
        ctx = ctx_for(alice)
        create(ctx, salary, "3000.00", "Salary", date(2024, 1, 31), tx_type=TransactionType.income)
        create(ctx, food, "100.00", "Groceries", date(2024, 1, 10))
        create(ctx, food, "50.50", "Dinner", date(2024, 1, 11))
        create(ctx, default_category("Travel"), "400.00", "Flights", date(2024, 1, 20))
        create(ctx, food, "999.00", "Out of range", date(2024, 2, 1))

        stats = TransactionService(ctx).get_stats(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        assert stats["income"] == Decimal("3000.00")
        assert stats["expenses"] == Decimal("550.50")
        assert stats["balance"] == Decimal("2449.50")
        assert [(c["category_name"], c["amount"]) for c in stats["by_category"]] == [
            ("Travel", Decimal("400.00")),
            ("Food", Decimal("150.50")),
        ]

    def test_empty_stats(self, ctx_for, alice):
        stats = TransactionService(ctx_for(alice)).get_stats()
        assert stats["income"] == Decimal("0")
        assert stats["balance"] == Decimal("0")
        assert stats["by_category"] == []
