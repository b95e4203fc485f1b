from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date
from decimal import Decimal
from uuid import UUID
from fintrack.models.transaction import TransactionType
from fintrack.models.family import FamilyRole, DEFAULT_MEMBER_PERMISSIONS
from fintrack.models.budget import BudgetPeriod, BudgetStatus
from fintrack.models.shopping_list import ItemPriority

# User / auth schemas
class UserBase(BaseModel):
    email: str
    name: str
    avatar: Optional[str] = None

class User(UserBase):
    id: UUID
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str

class LoginRequest(BaseModel):
    email: str
    password: str
    remember_me: bool = False

class RefreshRequest(BaseModel):
    refresh_token: str

class AuthResponse(BaseModel):
    user: User
    token: str
    refresh_token: str

class UserUpdate(BaseModel):
    name: Optional[str] = None
    avatar: Optional[str] = None

class PasswordChange(BaseModel):
    current_password: str
    new_password: str

class AccountDelete(BaseModel):
    password: str

# Category schemas
class CategoryBase(BaseModel):
    name: str
    color: str
    icon: Optional[str] = None
    type: TransactionType

class CategoryCreate(CategoryBase):
    pass

class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None

class Category(CategoryBase):
    id: UUID
    user_id: Optional[UUID] = None
    is_default: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Transaction schemas
class TransactionBase(BaseModel):
    amount: Decimal
    description: str
    type: TransactionType
    date: date
    category_id: UUID

class TransactionCreate(TransactionBase):
    family_id: Optional[UUID] = None  # NULL = personal transaction

class TransactionUpdate(BaseModel):
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    type: Optional[TransactionType] = None
    date: Optional[date] = None
    category_id: Optional[UUID] = None

class Transaction(TransactionBase):
    id: UUID
    user_id: UUID
    family_id: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class TransactionFilters(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    category_ids: Optional[List[UUID]] = None
    transaction_type: Optional[TransactionType] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    search: Optional[str] = None
    family_id: Optional[UUID] = None

class TransactionPage(BaseModel):
    transactions: List[Transaction]
    total: int
    page: int
    limit: int
    has_next: bool
    has_prev: bool

class CategoryTotal(BaseModel):
    category_id: UUID
    category_name: str
    amount: Decimal

class TransactionStats(BaseModel):
    income: Decimal
    expenses: Decimal
    balance: Decimal
    by_category: List[CategoryTotal]

# Budget schemas
class BudgetCreate(BaseModel):
    category_id: UUID
    amount: Decimal
    period: BudgetPeriod = BudgetPeriod.monthly
    start_date: date
    family_id: Optional[UUID] = None

class BudgetUpdate(BaseModel):
    amount: Optional[Decimal] = None
    period: Optional[BudgetPeriod] = None
    start_date: Optional[date] = None

class Budget(BaseModel):
    id: UUID
    category_id: UUID
    category_name: Optional[str] = None
    amount: Decimal
    period: BudgetPeriod
    start_date: date
    end_date: date
    user_id: UUID
    family_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Derived on every read
    spent: Decimal
    remaining: Decimal
    percentage: Decimal
    status: BudgetStatus

class BudgetSummary(BaseModel):
    total_budget: Decimal
    total_spent: Decimal
    total_remaining: Decimal
    overall_percentage: Decimal
    categories_over_budget: int
    categories_near_limit: int

# Family schemas
class FamilyBase(BaseModel):
    name: str
    description: Optional[str] = None

class FamilyCreate(FamilyBase):
    pass

class FamilyUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None

class Family(FamilyBase):
    id: UUID
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class FamilyMember(BaseModel):
    id: UUID
    family_id: UUID
    user_id: UUID
    role: FamilyRole
    permissions: List[str]
    joined_at: datetime
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_avatar: Optional[str] = None

    class Config:
        from_attributes = True

class FamilyWithMembers(Family):
    members: List[FamilyMember]

class InviteMember(BaseModel):
    email: str
    role: FamilyRole = FamilyRole.member
    permissions: List[str] = Field(default_factory=lambda: list(DEFAULT_MEMBER_PERMISSIONS))

class MemberUpdate(BaseModel):
    role: Optional[FamilyRole] = None
    permissions: Optional[List[str]] = None

# Shopping list schemas
class ShoppingListCreate(BaseModel):
    name: str
    description: Optional[str] = None
    shared: bool = False
    shared_with: List[str] = Field(default_factory=list)
    family_id: Optional[UUID] = None

class ShoppingListUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    shared: Optional[bool] = None
    shared_with: Optional[List[str]] = None

class ShoppingListItemCreate(BaseModel):
    name: str
    estimated_price: Decimal
    category_id: Optional[UUID] = None
    priority: ItemPriority = ItemPriority.nice_to_have

class ShoppingListItemUpdate(BaseModel):
    name: Optional[str] = None
    estimated_price: Optional[Decimal] = None
    category_id: Optional[UUID] = None
    priority: Optional[ItemPriority] = None

class MarkItemPurchased(BaseModel):
    actual_price: Optional[Decimal] = None
    create_transaction: bool = False

class ShoppingListItem(BaseModel):
    id: UUID
    list_id: UUID
    name: str
    estimated_price: Decimal
    actual_price: Optional[Decimal] = None
    category_id: Optional[UUID] = None
    category_name: Optional[str] = None
    category_color: Optional[str] = None
    priority: ItemPriority
    purchased: bool
    purchased_at: Optional[datetime] = None
    purchased_by: Optional[UUID] = None
    transaction_id: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ShoppingList(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    user_id: UUID
    family_id: Optional[UUID] = None
    shared: bool
    shared_with: List[str]
    items: List[ShoppingListItem]
    created_at: datetime
    updated_at: Optional[datetime] = None

    total_estimated: Decimal
    total_actual: Decimal
    total_items: int
    purchased_items: int

# Health
class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime: float
    version: str
    database: str

class MessageResponse(BaseModel):
    message: str
