"""
Tests for users, sessions and bearer tokens
"""

import jwt
import pytest

from client_intake.audit import AuditEventType, AuditTrail
from client_intake.rbac import (
    AccessManager, AdminAccessRequiredError, AuthenticationRequiredError
)
from client_intake.storage import InMemoryStorage


JWT_SECRET = "test-secret-key-with-at-least-32-bytes"


@pytest.fixture
def audit_trail():
    return AuditTrail(InMemoryStorage())


@pytest.fixture
def access_manager(audit_trail):
    return AccessManager(audit_trail.storage, audit_trail, jwt_secret=JWT_SECRET)


@pytest.fixture
def admin(access_manager):
    return access_manager.create_user("admin", "admin@example.com", "admin-password", is_admin=True)


@pytest.fixture
def clerk(access_manager):
    return access_manager.create_user("clerk", "clerk@example.com", "clerk-password")


class TestUsers:

    def test_create_user(self, access_manager, audit_trail):
        user = access_manager.create_user("Maria", "maria@example.com", "secret-password")
        assert user.username == "maria"
        assert user.password_hash and user.password_hash != "secret-password"
        assert access_manager.get_user_by_username("MARIA").id == user.id
        assert len(audit_trail.get_events_by_type(AuditEventType.USER_CREATED)) == 1

    def test_duplicate_username(self, access_manager, clerk):
        with pytest.raises(ValueError, match="already exists"):
            access_manager.create_user("CLERK", "other@example.com", "another-password")

    def test_short_password(self, access_manager):
        with pytest.raises(ValueError, match="at least 8"):
            access_manager.create_user("bob", "bob@example.com", "short")

    def test_ensure_admin_is_idempotent(self, access_manager):
        first = access_manager.ensure_admin("root", "root-password")
        second = access_manager.ensure_admin("root", "different-password")
        assert first.id == second.id
        assert first.is_admin


class TestAuthentication:

    def test_login(self, access_manager, clerk):
        session = access_manager.authenticate("clerk", "clerk-password", "10.0.0.1")
        assert session.user_id == clerk.id
        assert session.ip_address == "10.0.0.1"
        assert access_manager.validate_session(session.id) is not None

    def test_wrong_password(self, access_manager, clerk, audit_trail):
        with pytest.raises(AuthenticationRequiredError, match="Invalid credentials"):
            access_manager.authenticate("clerk", "wrong-password")
        assert access_manager.get_user(clerk.id).failed_login_attempts == 1
        assert len(audit_trail.get_events_by_type(AuditEventType.LOGIN_FAILED)) == 1

    def test_unknown_user(self, access_manager):
        with pytest.raises(AuthenticationRequiredError, match="Invalid credentials"):
            access_manager.authenticate("nobody", "whatever-password")

    def test_lockout_after_repeated_failures(self, access_manager, clerk):
        for _ in range(5):
            with pytest.raises(AuthenticationRequiredError):
                access_manager.authenticate("clerk", "wrong-password")
        assert access_manager.get_user(clerk.id).is_locked
        with pytest.raises(AuthenticationRequiredError, match="not available"):
            access_manager.authenticate("clerk", "clerk-password")

    def test_success_resets_failure_count(self, access_manager, clerk):
        with pytest.raises(AuthenticationRequiredError):
            access_manager.authenticate("clerk", "wrong-password")
        access_manager.authenticate("clerk", "clerk-password")
        assert access_manager.get_user(clerk.id).failed_login_attempts == 0

    def test_logout_invalidates_session(self, access_manager, clerk):
        session = access_manager.authenticate("clerk", "clerk-password")
        assert access_manager.logout(session.id)
        assert access_manager.validate_session(session.id) is None
        assert not access_manager.logout("missing-session")


class TestTokens:

    def test_token_resolves_to_session(self, access_manager, clerk):
        session = access_manager.authenticate("clerk", "clerk-password")
        token = access_manager.issue_token(session)
        assert access_manager.resolve_token(token).id == session.id

    def test_missing_token(self, access_manager):
        assert access_manager.resolve_token(None) is None
        with pytest.raises(AuthenticationRequiredError) as exc_info:
            access_manager.require_session(None)
        assert exc_info.value.status_code == 401
        assert str(exc_info.value) == "Authentication required"

    def test_forged_token(self, access_manager, clerk):
        session = access_manager.authenticate("clerk", "clerk-password")
        forged = jwt.encode(
            {"sub": clerk.id, "sid": session.id}, "another-secret-key-of-32-bytes-length", algorithm="HS256"
        )
        assert access_manager.resolve_token(forged) is None

    def test_garbage_token(self, access_manager):
        assert access_manager.resolve_token("not-a-jwt") is None

    def test_revoked_session_token(self, access_manager, clerk):
        session = access_manager.authenticate("clerk", "clerk-password")
        token = access_manager.issue_token(session)
        access_manager.logout(session.id)
        assert access_manager.resolve_token(token) is None

    def test_token_stops_working_when_user_is_locked(self, access_manager, clerk):
        session = access_manager.authenticate("clerk", "clerk-password")
        token = access_manager.issue_token(session)
        user = access_manager.get_user(clerk.id)
        user.is_locked = True
        access_manager.storage.save(access_manager.USERS_TABLE, user.id, user.to_dict())
        assert access_manager.resolve_token(token) is None


class TestAdminCheck:

    def test_admin(self, access_manager, admin):
        session = access_manager.authenticate("admin", "admin-password")
        assert access_manager.is_admin(session)
        assert access_manager.require_admin(access_manager.issue_token(session)).id == session.id

    def test_non_admin(self, access_manager, clerk):
        session = access_manager.authenticate("clerk", "clerk-password")
        assert not access_manager.is_admin(session)
        with pytest.raises(AdminAccessRequiredError) as exc_info:
            access_manager.require_admin(access_manager.issue_token(session))
        assert exc_info.value.status_code == 403
        assert str(exc_info.value) == "Admin access required"

    def test_require_admin_without_token(self, access_manager):
        with pytest.raises(AuthenticationRequiredError):
            access_manager.require_admin(None)
