from .user import User
from .transaction import Transaction, TransactionType
from .category import Category
from .budget import Budget, BudgetPeriod, BudgetStatus
from .family import Family, FamilyMember, FamilyRole, FamilyPermission
from .shopping_list import ShoppingList, ShoppingListItem, ShoppingListShare, ItemPriority

__all__ = [
    "User", "Transaction", "TransactionType", "Category",
    "Budget", "BudgetPeriod", "BudgetStatus",
    "Family", "FamilyMember", "FamilyRole", "FamilyPermission",
    "ShoppingList", "ShoppingListItem", "ShoppingListShare", "ItemPriority",
]
