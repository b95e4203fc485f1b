from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from uuid import UUID

from fintrack.core.context import RequestContext, get_context
from fintrack.core.schemas import (
    ShoppingList, ShoppingListCreate, ShoppingListUpdate,
    ShoppingListItem, ShoppingListItemCreate, ShoppingListItemUpdate, MarkItemPurchased,
    MessageResponse,
)
from fintrack.services.shopping_list_service import ShoppingListService

router = APIRouter(prefix="/shopping-lists", tags=["shopping-lists"])

def get_shopping_list_service(ctx: RequestContext = Depends(get_context)) -> ShoppingListService:
    return ShoppingListService(ctx)

@router.get("/", response_model=List[ShoppingList])
def read_shopping_lists(
    family_id: Optional[UUID] = Query(None),
    service: ShoppingListService = Depends(get_shopping_list_service),
):
    return service.list_shopping_lists(family_id=family_id)

# Item routes are declared before "/{list_id}" so "items" is never parsed as a list id

@router.put("/items/{item_id}", response_model=ShoppingListItem)
def update_item(item_id: UUID, data: ShoppingListItemUpdate,
                service: ShoppingListService = Depends(get_shopping_list_service)):
    return service.update_item(item_id, data)

@router.delete("/items/{item_id}", response_model=MessageResponse)
def remove_item(item_id: UUID, service: ShoppingListService = Depends(get_shopping_list_service)):
    service.remove_item(item_id)
    return {"message": "Item removed successfully"}

@router.post("/items/{item_id}/purchase", response_model=ShoppingListItem)
def mark_item_purchased(item_id: UUID, data: MarkItemPurchased,
                        service: ShoppingListService = Depends(get_shopping_list_service)):
    return service.mark_item_purchased(item_id, data)

@router.get("/{list_id}", response_model=ShoppingList)
def read_shopping_list(list_id: UUID, service: ShoppingListService = Depends(get_shopping_list_service)):
    return service.get_shopping_list(list_id)

@router.post("/", response_model=ShoppingList, status_code=201)
def create_shopping_list(data: ShoppingListCreate,
                         service: ShoppingListService = Depends(get_shopping_list_service)):
    return service.create_shopping_list(data)

@router.put("/{list_id}", response_model=ShoppingList)
def update_shopping_list(list_id: UUID, data: ShoppingListUpdate,
                         service: ShoppingListService = Depends(get_shopping_list_service)):
    return service.update_shopping_list(list_id, data)

@router.delete("/{list_id}", response_model=MessageResponse)
def delete_shopping_list(list_id: UUID, service: ShoppingListService = Depends(get_shopping_list_service)):
    service.delete_shopping_list(list_id)
    return {"message": "Shopping list deleted successfully"}

@router.post("/{list_id}/items", response_model=ShoppingListItem, status_code=201)
def add_item(list_id: UUID, data: ShoppingListItemCreate,
             service: ShoppingListService = Depends(get_shopping_list_service)):
    return service.add_item(list_id, data)
