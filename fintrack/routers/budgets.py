from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from uuid import UUID

from fintrack.core.context import RequestContext, get_context
from fintrack.core.schemas import Budget, BudgetCreate, BudgetUpdate, BudgetSummary, MessageResponse
from fintrack.models.budget import BudgetPeriod
from fintrack.services.budget_service import BudgetService

router = APIRouter(prefix="/budgets", tags=["budgets"])

def get_budget_service(ctx: RequestContext = Depends(get_context)) -> BudgetService:
    return BudgetService(ctx)

@router.get("/", response_model=List[Budget])
def read_budgets(
    period: Optional[BudgetPeriod] = Query(None),
    family_id: Optional[UUID] = Query(None),
    service: BudgetService = Depends(get_budget_service),
):
    return service.list_budgets(period=period, family_id=family_id)

@router.get("/summary", response_model=BudgetSummary)
def read_budget_summary(
    period: Optional[BudgetPeriod] = Query(None),
    family_id: Optional[UUID] = Query(None),
    service: BudgetService = Depends(get_budget_service),
):
    return service.get_summary(period=period, family_id=family_id)

@router.get("/{budget_id}", response_model=Budget)
def read_budget(budget_id: UUID, service: BudgetService = Depends(get_budget_service)):
    return service.get_budget(budget_id)

@router.post("/", response_model=Budget, status_code=201)
def create_budget(data: BudgetCreate, service: BudgetService = Depends(get_budget_service)):
    return service.create_budget(data)

@router.put("/{budget_id}", response_model=Budget)
def update_budget(budget_id: UUID, data: BudgetUpdate, service: BudgetService = Depends(get_budget_service)):
    return service.update_budget(budget_id, data)

@router.delete("/{budget_id}", response_model=MessageResponse)
def delete_budget(budget_id: UUID, service: BudgetService = Depends(get_budget_service)):
    service.delete_budget(budget_id)
    return {"message": "Budget deleted successfully"}
