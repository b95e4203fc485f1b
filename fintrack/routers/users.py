from fastapi import APIRouter, Depends
from uuid import UUID

from fintrack.core.schemas import User, UserUpdate, PasswordChange, AccountDelete, MessageResponse
from fintrack.routers.auth import get_user_service
from fintrack.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])

@router.get("/me", response_model=User)
def read_me(service: UserService = Depends(get_user_service)):
    return service.me()

@router.put("/me", response_model=User)
def update_me(data: UserUpdate, service: UserService = Depends(get_user_service)):
    return service.update_profile(data)

@router.post("/me/password", response_model=MessageResponse)
def change_password(data: PasswordChange, service: UserService = Depends(get_user_service)):
    service.change_password(data)
    return {"message": "Password changed successfully"}

@router.delete("/me", response_model=MessageResponse)
def delete_account(data: AccountDelete, service: UserService = Depends(get_user_service)):
    service.delete_account(data.password)
    return {"message": "Account deleted successfully"}

@router.get("/{user_id}", response_model=User)
def read_user(user_id: UUID, service: UserService = Depends(get_user_service)):
    return service.get_user(user_id)
