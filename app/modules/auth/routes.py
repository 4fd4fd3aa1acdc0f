from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_user
from typing import Dict

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me")
async def get_me(user_data: Dict = Depends(get_current_user)):
    """Dashboard user and the Roblox account linked to it"""
    return user_data
