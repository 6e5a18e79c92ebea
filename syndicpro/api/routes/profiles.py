from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from syndicpro.api.deps import get_db, get_store
from syndicpro.core.audit import log_audit
from syndicpro.core.auth import User, get_current_profile, get_current_user, require_admin, resolve_profile
from syndicpro.core.exceptions import EntityNotFoundError, PermissionDeniedError, SelfModificationError
from syndicpro.core.permissions import Role, ensure_can_change_profile
from syndicpro.schemas.profile import MeOut, PermissionsOut, ProfileOut, RoleUpdate
from syndicpro.services.store import DataStore

router = APIRouter(prefix="/profiles", tags=["profiles"])


def _me(user: User) -> MeOut:
    perms = user.permissions
    return MeOut(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=user.role,
        has_profile=user.has_profile,
        permissions=PermissionsOut(
            can_view=perms.can_view,
            can_modify=perms.can_modify,
            can_manage_users=perms.can_manage_users,
        ),
    )


def _ensure_not_self(current_user: User, profile_id: str, verb: str) -> None:
    try:
        ensure_can_change_profile(current_user.id, current_user.role, profile_id)
    except SelfModificationError:
        raise HTTPException(status_code=400, detail=f"You cannot {verb} your own account")
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.get("/me", response_model=MeOut)
def get_me(current_user: User = Depends(get_current_profile)):
    """Own profile and the capabilities derived from its role."""
    return _me(current_user)


@router.get("", response_model=List[ProfileOut])
def list_profiles(
    store: DataStore = Depends(get_store),
    current_user: User = Depends(require_admin),
):
    return store.list_profiles()


@router.patch("/{profile_id}/role", response_model=ProfileOut)
def update_role(
    profile_id: str,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    store: DataStore = Depends(get_store),
    current_user: User = Depends(require_admin),
):
    _ensure_not_self(current_user, profile_id, "change the role of")
    try:
        profile = store.update_role(profile_id, Role(payload.role))
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Profile not found")

    log_audit(
        db,
        actor=current_user,
        action="role_changed",
        entity_type="profile",
        entity_id=profile.id,
        status=profile.role,
        description=f"Role of {profile.email or profile.id} set to {profile.role}",
    )
    return profile


@router.delete("/{profile_id}", status_code=204)
def delete_profile(
    profile_id: str,
    db: Session = Depends(get_db),
    store: DataStore = Depends(get_store),
    current_user: User = Depends(require_admin),
):
    """
    Remove a user's profile. The Supabase auth user is not deleted; without a
    profile the user falls back to viewer on next sign-in.
    """
    _ensure_not_self(current_user, profile_id, "delete")
    try:
        profile = store.delete_profile(profile_id)
    except EntityNotFoundError:
        raise HTTPException(status_code=404, detail="Profile not found")

    log_audit(
        db,
        actor=current_user,
        action="deleted",
        entity_type="profile",
        entity_id=profile_id,
        description=f"Profile removed: {profile.email or profile_id}",
    )
    return None


@router.post("/bootstrap-admin", response_model=MeOut, status_code=201)
def bootstrap_admin(
    db: Session = Depends(get_db),
    store: DataStore = Depends(get_store),
    identity: User = Depends(get_current_user),
):
    """
    First-run setup: make the caller an admin when the building has none yet.
    Once an admin exists, roles are only changed through PATCH /profiles/{id}/role.
    """
    current = resolve_profile(db, identity)
    if current.role == Role.ADMIN.value:
        return _me(current)
    if store.count_admins() > 0:
        raise HTTPException(status_code=409, detail="An admin already exists")

    store.upsert_profile(identity.id, identity.email, Role.ADMIN)
    admin = resolve_profile(db, identity)
    log_audit(
        db,
        actor=admin,
        action="created",
        entity_type="profile",
        entity_id=admin.id,
        status=admin.role,
        source="system",
        description=f"Initial admin created: {admin.email or admin.id}",
        risk_level="high",
    )
    return _me(admin)
