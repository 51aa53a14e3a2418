# Overview: Pytest coverage for bearer-token sessions and account management.

"""
Session Token Tests

Tokens are stored hashed, expire, and can be revoked; a deactivated user's
tokens stop resolving immediately.
"""

from datetime import timedelta

import pytest
from stockbill.errors import NotFoundError
from stockbill.models import SessionToken, User
from stockbill.services import session_service, user_service
from stockbill.time_utils import utcnow
from stockbill.validation import ConflictError, ValidationError


class TestSessions:

    def test_token_is_stored_hashed(self, db_session, owner):
        session, token = session_service.create_session(owner.id)

        assert len(token) == 64
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token

    def test_validate_returns_context(self, db_session, owner):
        _, token = session_service.create_session(owner.id)
        context = session_service.validate_session(token)

        assert context is not None
        assert context.user_id == owner.id
        assert context.is_admin is False

    def test_unknown_token(self, db_session, owner):
        assert session_service.validate_session("not-a-token") is None
        assert session_service.validate_session("") is None

    def test_expired_token(self, db_session, owner):
        session, token = session_service.create_session(owner.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert session_service.validate_session(token) is None

    def test_revoked_token(self, db_session, owner):
        _, token = session_service.create_session(owner.id)
        assert session_service.revoke_session(token, reason="test") is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session("unknown") is False

    def test_revoke_all(self, db_session, owner):
        _, first = session_service.create_session(owner.id)
        _, second = session_service.create_session(owner.id)

        assert session_service.revoke_all_user_sessions(owner.id) == 2
        assert session_service.validate_session(first) is None
        assert session_service.validate_session(second) is None

    def test_deactivated_user(self, db_session, owner):
        _, token = session_service.create_session(owner.id)
        owner.is_active = False
        db_session.commit()

        assert session_service.validate_session(token) is None

    def test_cleanup_expired(self, db_session, owner):
        expired, _ = session_service.create_session(owner.id)
        session_service.create_session(owner.id)
        expired.expires_at = utcnow() - timedelta(hours=1)
        db_session.commit()

        assert session_service.cleanup_expired_sessions() == 1
        assert db_session.query(SessionToken).count() == 1

    def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            session_service.create_session(99999)


class TestUserService:

    def test_create_user(self, db_session):
        user = user_service.create_user("Jane", "  Jane@Example.com ", subscription_end_date=utcnow() + timedelta(days=5))
        assert user.email == "jane@example.com"
        assert user.subscription_status == "active"
        assert user_service.get_user_by_email("JANE@example.com").id == user.id

    def test_without_subscription_is_inactive(self, db_session):
        assert user_service.create_user("Jane", "jane@example.com").subscription_status == "inactive"

    def test_duplicate_email(self, db_session, owner):
        with pytest.raises(ConflictError):
            user_service.create_user("Copy", owner.email)

    @pytest.mark.parametrize("name,email,role", [
        ("", "x@example.com", "user"),
        ("X", "not-an-email", "user"),
        ("X", "x@example.com", "superuser"),
    ])
    def test_invalid_input(self, db_session, name, email, role):
        with pytest.raises(ValidationError):
            user_service.create_user(name, email, role=role)


class TestUserManagement:

    def test_update_role_and_subscription(self, db_session, owner):
        user = user_service.update_user(owner.id, {"role": "admin", "subscription_status": "expired"})
        assert user.is_admin
        assert user.subscription_status == "expired"

    def test_end_date_without_status_is_reconciled(self, db_session, owner):
        user = user_service.update_user(owner.id, {"subscription_end_date": utcnow() - timedelta(days=1)})
        assert user.subscription_status == "expired"

        user = user_service.update_user(owner.id, {"subscription_end_date": utcnow() + timedelta(days=10)})
        assert user.subscription_status == "active"

    def test_email_is_normalized_and_unique(self, db_session, owner, other_owner):
        assert user_service.update_user(owner.id, {"email": " New@Example.com "}).email == "new@example.com"
        with pytest.raises(ConflictError):
            user_service.update_user(owner.id, {"email": other_owner.email})

    @pytest.mark.parametrize("patch", [
        {"role": "root"},
        {"subscription_status": "paused"},
        {"email": "nope"},
        {"password_hash": "x"},
    ])
    def test_invalid_updates(self, db_session, owner, patch):
        with pytest.raises(ValidationError):
            user_service.update_user(owner.id, patch)
        assert db_session.get(User, owner.id).role == "user"

    def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            user_service.update_user(99999, {"name": "Ghost"})
        with pytest.raises(NotFoundError):
            user_service.deactivate_user(99999)

    def test_deactivation_revokes_tokens(self, db_session, owner):
        _, token = session_service.create_session(owner.id)
        session_service.create_session(owner.id)

        assert user_service.deactivate_user(owner.id) == 2
        assert owner.is_active is False
        assert session_service.validate_session(token) is None

    def test_update_deactivation_revokes_tokens(self, db_session, owner):
        _, token = session_service.create_session(owner.id)
        user_service.update_user(owner.id, {"is_active": False})
        assert db_session.query(SessionToken).filter_by(user_id=owner.id, is_revoked=False).count() == 0
        assert session_service.validate_session(token) is None

    def test_cannot_deactivate_self(self, db_session, admin):
        with pytest.raises(ConflictError):
            user_service.deactivate_user(admin.id, acting_user=admin)
        with pytest.raises(ConflictError):
            user_service.update_user(admin.id, {"is_active": False}, acting_user=admin)
        assert admin.is_active is True
