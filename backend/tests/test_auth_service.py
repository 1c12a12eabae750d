"""
Authentication, session and company user management tests.
"""

from datetime import timedelta

import pytest

from stockdesk.errors import Conflict, NotFound, Unauthorized
from stockdesk.models import CreditTransaction, OrderRequest, SessionToken, User
from stockdesk.services import auth_service, credit_service, session_service
from stockdesk.services.auth_service import PasswordValidationError
from stockdesk.time_utils import utcnow

from conftest import PASSWORD


class TestPasswords:

    @pytest.mark.parametrize("password", ["Short1!", "alllower123!", "ALLUPPER123!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_verify_password(self):
        hashed = auth_service.hash_password(PASSWORD)
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("Wrong123!", hashed)
        assert not auth_service.verify_password(PASSWORD, "not-a-hash")


class TestAuthenticate:

    def test_valid_credentials(self, db_session, user_a):
        user = auth_service.authenticate("  SELLER@acme.test ", PASSWORD)
        assert user.id == user_a.id
        assert user.last_login_at is not None

    def test_wrong_password(self, db_session, user_a):
        assert auth_service.authenticate(user_a.email, "Wrong123!") is None

    def test_inactive_company_blocks_login(self, db_session, user_a, company_a):
        company_a.is_active = False
        db_session.commit()
        assert auth_service.authenticate(user_a.email, PASSWORD) is None

    def test_admin_logs_in_without_company(self, db_session, admin):
        assert auth_service.authenticate(admin.email, PASSWORD).id == admin.id


class TestSessions:

    def test_idle_session_is_revoked(self, app, db_session, user_a):
        session, token = session_service.create_session(user_a.id)
        session.last_used_at = utcnow() - timedelta(hours=app.config["SESSION_IDLE_TIMEOUT_HOURS"], minutes=1)
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_expired_session_rejected(self, db_session, user_a):
        session, token = session_service.create_session(user_a.id)
        session.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        assert session_service.validate_session(token) is None

    def test_cleanup_removes_old_revoked_sessions(self, db_session, user_a):
        old, old_token = session_service.create_session(user_a.id)
        _, fresh_token = session_service.create_session(user_a.id)
        session_service.revoke_session(old_token)
        old.created_at = utcnow() - timedelta(days=31)
        db_session.commit()

        assert session_service.cleanup_expired_sessions() == 1
        assert session_service.validate_session(fresh_token) is not None

    def test_non_admin_without_company_cannot_open_session(self, db_session):
        orphan = User(name="Orphan", email="orphan@x.test", password_hash="x", role="USER")
        db_session.add(orphan)
        db_session.commit()
        with pytest.raises(ValueError):
            session_service.create_session(orphan.id)


class TestCompanyUsers:

    def test_director_creates_user(self, db_session, director_a):
        user = auth_service.create_company_user(
            director_a, name="New Seller", email="New@Acme.test", password=PASSWORD, credit_limit_cents=5_000,
        )
        assert user.company_id == director_a.company_id
        assert user.role == "USER"
        assert user.email == "new@acme.test"
        assert user.credit_limit_cents == 5_000

    def test_duplicate_email_conflicts(self, db_session, director_a, user_b):
        with pytest.raises(Conflict):
            auth_service.create_company_user(director_a, name="Dup", email=user_b.email, password=PASSWORD)

    def test_user_cannot_create_users(self, db_session, user_a):
        with pytest.raises(Unauthorized):
            auth_service.create_company_user(user_a, name="X", email="x@acme.test", password=PASSWORD)

    def test_list_is_company_scoped(self, db_session, director_a, user_a, user_b):
        assert [u.id for u in auth_service.list_company_users(director_a)] == [user_a.id]

    def test_deactivation_revokes_sessions(self, db_session, director_a, user_a):
        _, token = session_service.create_session(user_a.id)

        auth_service.update_company_user(director_a, user_a.id, {"is_active": False})

        assert session_service.validate_session(token) is None
        assert auth_service.authenticate(user_a.email, PASSWORD) is None

    def test_foreign_user_not_found(self, db_session, director_b, user_a):
        with pytest.raises(NotFound):
            auth_service.update_company_user(director_b, user_a.id, {"name": "Renamed"})

    def test_delete_without_history_removes_user(self, db_session, director_a, user_a):
        session_service.create_session(user_a.id)

        assert auth_service.delete_company_user(director_a, user_a.id) == "deleted"
        assert db_session.get(User, user_a.id) is None
        assert db_session.query(SessionToken).count() == 0

    def test_delete_with_history_deactivates(self, db_session, director_a, user_a, product_a):
        db_session.add(OrderRequest(user_id=user_a.id, company_id=user_a.company_id, total_amount_cents=0))
        db_session.commit()

        assert auth_service.delete_company_user(director_a, user_a.id) == "deactivated"
        assert db_session.get(User, user_a.id).is_active is False

    def test_delete_with_credit_history_keeps_audit_rows(self, db_session, director_a, user_a):
        credit_service.set_credit_limit(director_a, user_a.id, 50_000, "Opening limit")

        assert auth_service.delete_company_user(director_a, user_a.id) == "deactivated"
        assert db_session.get(User, user_a.id).is_active is False
        grants = db_session.query(CreditTransaction).filter_by(user_id=user_a.id).all()
        assert [t.type for t in grants] == ["GRANTED"]
