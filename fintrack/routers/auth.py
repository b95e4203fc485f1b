from fastapi import APIRouter, Depends

from fintrack.core.context import RequestContext, get_context
from fintrack.core.schemas import AuthResponse, RegisterRequest, LoginRequest, RefreshRequest
from fintrack.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])

def get_user_service(ctx: RequestContext = Depends(get_context)) -> UserService:
    return UserService(ctx)

@router.post("/register", response_model=AuthResponse, status_code=201)
def register(data: RegisterRequest, service: UserService = Depends(get_user_service)):
    return service.register(data)

@router.post("/login", response_model=AuthResponse)
def login(data: LoginRequest, service: UserService = Depends(get_user_service)):
    return service.login(data)

@router.post("/refresh", response_model=AuthResponse)
def refresh(data: RefreshRequest, service: UserService = Depends(get_user_service)):
    return service.refresh(data.refresh_token)
