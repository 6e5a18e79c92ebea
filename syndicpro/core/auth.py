"""
Authentication utilities for Supabase JWT verification.

The frontend signs in with supabase.auth.signInWithPassword() and sends the JWT
in the Authorization header. This module verifies the JWT, extracts the identity
and resolves the caller's profile (role) from the profiles table.
"""
import logging
from typing import Optional

import requests
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from syndicpro.api.deps import get_db
from syndicpro.core.config import settings
from syndicpro.core.permissions import Role, parse_role, permissions_for
from syndicpro.models.profile import Profile

logger = logging.getLogger(__name__)

# Security scheme for Bearer token
security = HTTPBearer()


class User:
    """Authenticated identity, optionally enriched with its profile role."""
    def __init__(
        self,
        user_id: str,
        email: Optional[str],
        role: Optional[str] = None,
        display_name: Optional[str] = None,
        has_profile: bool = False,
    ):
        self.id = user_id
        self.email = email
        self.role = parse_role(role).value
        self.display_name = display_name
        # False while the profile row has not been created yet
        self.has_profile = has_profile

    @property
    def permissions(self):
        return permissions_for(self.role)


# Cache for JWKS keys (to avoid fetching on every request)
_jwks_cache = None


def get_supabase_jwks():
    """
    Fetch Supabase's JSON Web Key Set (JWKS) for JWT verification.

    Returns:
        dict: JWKS containing public keys for token verification
    """
    global _jwks_cache

    if _jwks_cache is not None:
        return _jwks_cache

    try:
        jwks_url = f"{settings.SUPABASE_URL}/auth/v1/.well-known/jwks.json"
        response = requests.get(jwks_url, timeout=10)
        response.raise_for_status()
        _jwks_cache = response.json()
        return _jwks_cache
    except requests.RequestException as e:
        logger.exception("Failed to fetch JWKS from %s", settings.SUPABASE_URL)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch JWKS from Supabase: {str(e)}",
        )


def verify_token(token: str) -> dict:
    """
    Verify a Supabase JWT and return the decoded payload.

    Supabase uses ES256 for newer projects and RS256 for older ones; both are
    verified with the public keys from the JWKS endpoint. Legacy projects sign
    with HS256 and the shared SUPABASE_JWT_SECRET.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        header = jwt.get_unverified_header(token)
        if header.get("alg") == "HS256" and settings.SUPABASE_JWT_SECRET:
            key, algorithms = settings.SUPABASE_JWT_SECRET, ["HS256"]
        else:
            key, algorithms = get_supabase_jwks(), ["ES256", "RS256"]
        payload = jwt.decode(
            token,
            key,
            algorithms=algorithms,
            audience="authenticated",
            options={"verify_aud": True}
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def user_from_token(token: str) -> User:
    payload = verify_token(token)

    # Supabase JWT structure: {"sub": "user_id", "email": "user@example.com", ...}
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return User(user_id=user_id, email=payload.get("email"))


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> User:
    """
    FastAPI dependency returning the identity behind the bearer token.
    The role is not resolved here; see get_current_profile.
    """
    return user_from_token(credentials.credentials)


def resolve_profile(db: Session, user: User) -> User:
    """
    Attach the profile role to an identity.

    The profile row may lag behind the identity (first login); until it exists
    the caller is treated as a viewer.
    """
    profile = db.query(Profile).filter(Profile.id == user.id).first()
    if profile is None:
        logger.info("No profile for user %s yet, using transient viewer", user.id)
        return User(user_id=user.id, email=user.email, role=Role.VIEWER.value)
    return User(
        user_id=profile.id,
        email=profile.email or user.email,
        role=profile.role,
        display_name=profile.display_name,
        has_profile=True,
    )


def get_current_profile(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    return resolve_profile(db, current_user)


def require_modify(current_user: User = Depends(get_current_profile)) -> User:
    """Editors and admins may create, update and delete building data."""
    if not current_user.permissions.can_modify:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions. Required role: editor",
        )
    return current_user


def require_admin(current_user: User = Depends(get_current_profile)) -> User:
    """Only admins change settings and manage users."""
    if not current_user.permissions.can_manage_users:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions. Required role: admin",
        )
    return current_user
