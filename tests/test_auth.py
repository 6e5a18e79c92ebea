"""Tests for token verification and profile resolution."""

import time

import pytest
from fastapi import HTTPException
from jose import jwt

from syndicpro.core.auth import User, require_admin, require_modify, resolve_profile, user_from_token

SECRET = "test-jwt-secret"


def make_token(claims: dict, secret: str = SECRET) -> str:
    base = {"aud": "authenticated", "exp": int(time.time()) + 3600}
    base.update(claims)
    return jwt.encode(base, secret, algorithm="HS256")


class TestUserFromToken:
    """Tests for user_from_token()."""

    def test_valid_token(self) -> None:
        user = user_from_token(make_token({"sub": "u-1", "email": "u1@syndic.test"}))
        assert user.id == "u-1"
        assert user.email == "u1@syndic.test"
        assert user.role == "viewer"
        assert user.has_profile is False

    def test_expired_token(self) -> None:
        token = make_token({"sub": "u-1", "exp": int(time.time()) - 60})
        with pytest.raises(HTTPException) as exc_info:
            user_from_token(token)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"

    def test_wrong_secret(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            user_from_token(make_token({"sub": "u-1"}, secret="someone-else"))
        assert exc_info.value.status_code == 401

    def test_wrong_audience(self) -> None:
        with pytest.raises(HTTPException):
            user_from_token(make_token({"sub": "u-1", "aud": "anon"}))

    def test_missing_subject(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            user_from_token(make_token({"email": "nobody@syndic.test"}))
        assert exc_info.value.detail == "Could not validate user"


class TestResolveProfile:
    """Tests for resolve_profile() and the role guards."""

    def test_profile_row_sets_role(self, db, profiles) -> None:
        user = resolve_profile(db, User(user_id="editor-1", email=None))
        assert user.role == "editor"
        assert user.email == "editor@syndic.test"
        assert user.display_name == "editor"
        assert user.has_profile is True

    def test_missing_profile_is_viewer(self, db) -> None:
        user = resolve_profile(db, User(user_id="ghost", email="ghost@syndic.test"))
        assert user.role == "viewer"
        assert user.has_profile is False
        assert user.permissions.can_view is True

    def test_guards(self) -> None:
        editor = User(user_id="e", email=None, role="editor")
        viewer = User(user_id="v", email=None, role="viewer")

        assert require_modify(editor) is editor
        with pytest.raises(HTTPException) as exc_info:
            require_modify(viewer)
        assert exc_info.value.status_code == 403
        with pytest.raises(HTTPException):
            require_admin(editor)
