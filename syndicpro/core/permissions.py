"""
Role-based access control.

Capabilities are a pure function of the role. There is no stored permissions
object: the three booleans below are recomputed from `role` every time.

    viewer  -> can view
    editor  -> can view, can modify apartments/payments/expenses
    admin   -> everything, including settings and user management
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from syndicpro.core.exceptions import PermissionDeniedError, SelfModificationError


class Role(str, Enum):
    VIEWER = "viewer"
    EDITOR = "editor"
    ADMIN = "admin"


ROLE_PERMISSIONS = {
    Role.VIEWER: {"can_view": True, "can_modify": False, "can_manage_users": False},
    Role.EDITOR: {"can_view": True, "can_modify": True, "can_manage_users": False},
    Role.ADMIN: {"can_view": True, "can_modify": True, "can_manage_users": True},
}


@dataclass(frozen=True)
class Permissions:
    can_view: bool
    can_modify: bool
    can_manage_users: bool


def parse_role(value: Optional[str]) -> Role:
    """Unknown or missing roles fall back to viewer."""
    try:
        return Role((value or "").strip().lower())
    except ValueError:
        return Role.VIEWER


def permissions_for(role) -> Permissions:
    if not isinstance(role, Role):
        role = parse_role(role)
    return Permissions(**ROLE_PERMISSIONS[role])


def can_view(authenticated: bool) -> bool:
    # Any signed-in identity may view, even before its profile has loaded
    return bool(authenticated)


def can_modify(role) -> bool:
    return permissions_for(role).can_modify


def can_manage_users(role) -> bool:
    return permissions_for(role).can_manage_users


def can_change_profile(actor_id: str, actor_role, target_id: str) -> bool:
    """Only admins change other profiles; nobody changes their own."""
    return can_manage_users(actor_role) and actor_id != target_id


def ensure_can_change_profile(actor_id: str, actor_role, target_id: str) -> None:
    if not can_manage_users(actor_role):
        raise PermissionDeniedError("Only admins can manage users")
    if actor_id == target_id:
        raise SelfModificationError("Admins cannot change or delete their own profile")


# --- Protected actions --------------------------------------------------------

class Requirement(str, Enum):
    VIEW = "view"
    MODIFY = "modify"
    ADMIN = "admin"


class DenyPolicy(str, Enum):
    DISABLE = "disable"
    HIDE = "hide"


class ActionState(str, Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    HIDDEN = "hidden"


DEFAULT_DENIED_TOOLTIP = "You do not have permission to perform this action"


@dataclass(frozen=True)
class ActionDecision:
    state: ActionState
    tooltip: Optional[str] = None


def resolve_action(
    requires: Requirement,
    *,
    authenticated: bool,
    role=None,
    loading: bool = False,
    policy: DenyPolicy = DenyPolicy.DISABLE,
    tooltip: str = DEFAULT_DENIED_TOOLTIP,
) -> ActionDecision:
    """
    Decide how a permission-gated action is presented.

    While the profile is still loading the action is left enabled; the store
    enforces the real check when the action is submitted.
    """
    if loading:
        return ActionDecision(ActionState.ENABLED)

    if requires is Requirement.ADMIN:
        allowed = authenticated and can_manage_users(role)
    elif requires is Requirement.MODIFY:
        allowed = authenticated and can_modify(role)
    else:
        allowed = can_view(authenticated)

    if allowed:
        return ActionDecision(ActionState.ENABLED)
    if policy is DenyPolicy.HIDE:
        return ActionDecision(ActionState.HIDDEN)
    return ActionDecision(ActionState.DISABLED, tooltip=tooltip)
