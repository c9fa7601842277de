from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class Profile(BaseModel):
    id: str
    user_id: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileWithRoles(Profile):
    roles: List[str] = []

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


class PublicProfile(BaseModel):
    user_id: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
