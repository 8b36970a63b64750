from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.users.schemas import UserResponse
from app.modules.users.service import UserService
from app.core.dependencies import get_current_user_id
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


@router.get("/me", response_model=UserResponse)
async def get_me(
    user_data: Dict = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Current user's profile, including whether a GitHub account is linked"""
    return service.get_user_by_id(user_data["id"])
