from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from fintrack.core.context import RequestContext, get_context
from fintrack.core.database import get_db
from fintrack.core.schemas import Category, CategoryCreate, CategoryUpdate, MessageResponse
from fintrack.models.transaction import TransactionType
from fintrack.services.category_service import CategoryService

router = APIRouter(prefix="/categories", tags=["categories"])

def get_category_service(ctx: RequestContext = Depends(get_context)) -> CategoryService:
    return CategoryService(ctx)

@router.get("/", response_model=List[Category])
def read_categories(
    type: Optional[TransactionType] = Query(None),
    service: CategoryService = Depends(get_category_service),
):
    return service.list_categories(type)

@router.get("/defaults", response_model=List[Category])
def read_default_categories(type: Optional[TransactionType] = Query(None), db: Session = Depends(get_db)):
    # Public: no authentication needed
    return CategoryService.default_categories(db, type)

@router.get("/{category_id}", response_model=Category)
def read_category(category_id: UUID, service: CategoryService = Depends(get_category_service)):
    return service.get_category(category_id)

@router.post("/", response_model=Category, status_code=201)
def create_category(data: CategoryCreate, service: CategoryService = Depends(get_category_service)):
    return service.create_category(data)

@router.put("/{category_id}", response_model=Category)
def update_category(category_id: UUID, data: CategoryUpdate,
                    service: CategoryService = Depends(get_category_service)):
    return service.update_category(category_id, data)

@router.delete("/{category_id}", response_model=MessageResponse)
def delete_category(
    category_id: UUID,
    move_transactions_to: Optional[UUID] = Query(None),
    service: CategoryService = Depends(get_category_service),
):
    service.delete_category(category_id, move_transactions_to)
    return {"message": "Category deleted successfully"}
