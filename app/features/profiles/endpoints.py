from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, status

from app.common.deps import get_current_user, CurrentUser
from .schemas import Profile as ProfileSchema
from .service import get_profile

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me", response_model=ProfileSchema)
async def read_current_profile(current_user: CurrentUser = Depends(get_current_user)) -> ProfileSchema:
    """Authenticated user: their own profile row."""
    prof = await get_profile(current_user.id)
    if not prof:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return ProfileSchema(**prof)
