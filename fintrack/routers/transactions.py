from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from datetime import date
from decimal import Decimal
from uuid import UUID

from fintrack.core.context import RequestContext, get_context
from fintrack.core.schemas import (
    Transaction, TransactionCreate, TransactionUpdate, TransactionFilters, TransactionPage, TransactionStats,
    MessageResponse,
)
from fintrack.models.transaction import TransactionType
from fintrack.services.transaction_service import TransactionService

router = APIRouter(prefix="/transactions", tags=["transactions"])

def get_transaction_service(ctx: RequestContext = Depends(get_context)) -> TransactionService:
    return TransactionService(ctx)

@router.get("/", response_model=TransactionPage)
def read_transactions(
    page: int = 1,
    limit: int = 50,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    category_ids: Optional[List[UUID]] = Query(None),
    transaction_type: Optional[TransactionType] = Query(None),
    min_amount: Optional[Decimal] = Query(None),
    max_amount: Optional[Decimal] = Query(None),
    search: Optional[str] = Query(None),
    family_id: Optional[UUID] = Query(None),
    service: TransactionService = Depends(get_transaction_service),
):
    filters = TransactionFilters(
        start_date=start_date,
        end_date=end_date,
        category_ids=category_ids,
        transaction_type=transaction_type,
        min_amount=min_amount,
        max_amount=max_amount,
        search=search,
        family_id=family_id,
    )
    return service.list_transactions(page=page, limit=limit, filters=filters)

@router.get("/stats", response_model=TransactionStats)
def read_transaction_stats(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    family_id: Optional[UUID] = Query(None),
    service: TransactionService = Depends(get_transaction_service),
):
    return service.get_stats(start_date=start_date, end_date=end_date, family_id=family_id)

@router.get("/{transaction_id}", response_model=Transaction)
def read_transaction(transaction_id: UUID, service: TransactionService = Depends(get_transaction_service)):
    return service.get_transaction(transaction_id)

@router.post("/", response_model=Transaction, status_code=201)
def create_transaction(data: TransactionCreate, service: TransactionService = Depends(get_transaction_service)):
    return service.create_transaction(data)

@router.put("/{transaction_id}", response_model=Transaction)
def update_transaction(transaction_id: UUID, data: TransactionUpdate,
                       service: TransactionService = Depends(get_transaction_service)):
    return service.update_transaction(transaction_id, data)

@router.delete("/{transaction_id}", response_model=MessageResponse)
def delete_transaction(transaction_id: UUID, service: TransactionService = Depends(get_transaction_service)):
    service.delete_transaction(transaction_id)
    return {"message": "Transaction deleted successfully"}
