from pydantic import BaseModel
from datetime import datetime
from typing import Literal, Optional

RoleName = Literal["admin", "editor", "viewer"]


class PermissionsOut(BaseModel):
    can_view: bool
    can_modify: bool
    can_manage_users: bool


class ProfileOut(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MeOut(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: str
    has_profile: bool  # False -> transient viewer until the profile row exists
    permissions: PermissionsOut


class RoleUpdate(BaseModel):
    role: RoleName
