"""Identities shared by the API and session tests."""

from syndicpro.core.auth import User

ADMIN = User(user_id="admin-1", email="admin@syndic.test")
EDITOR = User(user_id="editor-1", email="editor@syndic.test")
VIEWER = User(user_id="viewer-1", email="viewer@syndic.test")
# Signed in, but no profile row yet
STRANGER = User(user_id="newcomer-1", email="newcomer@syndic.test")
