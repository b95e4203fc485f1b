from fastapi import APIRouter, Depends
from typing import List
from uuid import UUID

from fintrack.core.context import RequestContext, get_context
from fintrack.core.schemas import (
    FamilyCreate, FamilyUpdate, FamilyWithMembers, FamilyMember, InviteMember, MemberUpdate, MessageResponse,
)
from fintrack.services.family_service import FamilyService

router = APIRouter(prefix="/families", tags=["families"])

def get_family_service(ctx: RequestContext = Depends(get_context)) -> FamilyService:
    return FamilyService(ctx)

@router.get("/", response_model=List[FamilyWithMembers])
def read_families(service: FamilyService = Depends(get_family_service)):
    return service.list_families()

@router.get("/{family_id}", response_model=FamilyWithMembers)
def read_family(family_id: UUID, service: FamilyService = Depends(get_family_service)):
    return service.get_family(family_id)

@router.post("/", response_model=FamilyWithMembers, status_code=201)
def create_family(data: FamilyCreate, service: FamilyService = Depends(get_family_service)):
    return service.create_family(data)

@router.put("/{family_id}", response_model=FamilyWithMembers)
def update_family(family_id: UUID, data: FamilyUpdate, service: FamilyService = Depends(get_family_service)):
    return service.update_family(family_id, data)

@router.delete("/{family_id}", response_model=MessageResponse)
def delete_family(family_id: UUID, service: FamilyService = Depends(get_family_service)):
    service.delete_family(family_id)
    return {"message": "Family deleted successfully"}

@router.post("/{family_id}/members", response_model=FamilyMember, status_code=201)
def invite_member(family_id: UUID, data: InviteMember, service: FamilyService = Depends(get_family_service)):
    return service.invite_member(family_id, data)

@router.put("/{family_id}/members/{member_id}", response_model=FamilyMember)
def update_member(family_id: UUID, member_id: UUID, data: MemberUpdate,
                  service: FamilyService = Depends(get_family_service)):
    return service.update_member(family_id, member_id, data)

@router.delete("/{family_id}/members/{member_id}", response_model=MessageResponse)
def remove_member(family_id: UUID, member_id: UUID, service: FamilyService = Depends(get_family_service)):
    service.remove_member(family_id, member_id)
    return {"message": "Member removed successfully"}

@router.post("/{family_id}/leave", response_model=MessageResponse)
def leave_family(family_id: UUID, service: FamilyService = Depends(get_family_service)):
    service.leave_family(family_id)
    return {"message": "You have left the family"}
