"""
Credit and finance tests.

Verifies:
- Setting a limit appends a GRANTED audit row and leaves credit_used alone
- Credit payments pay drawn credit first and split the remainder
- Plain payments and expenses require positive amounts
"""

import pytest

from stockdesk.errors import InvalidAmount, InvalidInput, NotFound, Unauthorized
from stockdesk.models import CreditTransaction, Payment, User
from stockdesk.models.finance import CREDIT_GRANTED, CREDIT_PAYMENT
from stockdesk.services import credit_service, finance_service


class TestCreditLimit:

    def test_limit_change_is_audited(self, db_session, director_a, user_a):
        user, txn = credit_service.set_credit_limit(director_a, user_a.id, 50_000)

        assert user.credit_limit_cents == 50_000
        assert user.credit_available_cents == 50_000
        assert txn.type == CREDIT_GRANTED
        assert txn.amount_cents == 50_000
        assert txn.company_id == director_a.company_id

        credit_service.set_credit_limit(director_a, user_a.id, 20_000, description="Reduced")
        rows = credit_service.list_credit_transactions(user_a.id, director_a.company_id)
        assert len(rows) == 2
        assert "Reduced" in [r.description for r in rows]

    def test_lowering_below_used_keeps_used(self, db_session, director_a, user_a):
        user_a.credit_used_cents = 30_000
        db_session.commit()

        user, _ = credit_service.set_credit_limit(director_a, user_a.id, 10_000)

        assert user.credit_used_cents == 30_000
        assert user.credit_available_cents == 0

    def test_negative_limit_rejected(self, db_session, director_a, user_a):
        with pytest.raises(InvalidAmount):
            credit_service.set_credit_limit(director_a, user_a.id, -1)
        assert db_session.query(CreditTransaction).count() == 0

    def test_only_directors(self, db_session, user_a, user_a2):
        with pytest.raises(Unauthorized):
            credit_service.set_credit_limit(user_a, user_a2.id, 100)

    def test_other_company_user_not_found(self, db_session, director_b, user_a):
        with pytest.raises(NotFound):
            credit_service.set_credit_limit(director_b, user_a.id, 100)

    def test_overview_totals(self, db_session, director_a, user_a, user_a2):
        credit_service.set_credit_limit(director_a, user_a.id, 1_000)
        credit_service.set_credit_limit(director_a, user_a2.id, 2_500)

        overview = credit_service.list_credit_overview(director_a.company_id)

        assert overview["total_credit_limit_cents"] == 3_500
        assert {row["user_id"] for row in overview["users"]} == {user_a.id, user_a2.id}
        assert all(len(row["recent_transactions"]) == 1 for row in overview["users"])


class TestCreditPayment:

    def test_payment_pays_credit_first(self, db_session, user_a):
        user_a.credit_limit_cents = 50_000
        user_a.credit_used_cents = 30_000
        db_session.commit()

        result = credit_service.apply_credit_payment(user_a, 40_000, description="Weekly settlement")

        assert result["credit_paid_cents"] == 30_000
        assert result["regular_amount_cents"] == 10_000
        assert result["credit_used_cents"] == 0

        payment = result["payment"]
        assert payment.amount_cents == 40_000
        assert payment.is_from_credit is True
        assert payment.credit_amount_cents == 30_000

        txn = db_session.query(CreditTransaction).filter_by(user_id=user_a.id, type=CREDIT_PAYMENT).one()
        assert txn.amount_cents == 30_000
        assert txn.payment_id == payment.id
        assert db_session.get(User, user_a.id).credit_used_cents == 0

    def test_partial_payoff(self, db_session, user_a):
        user_a.credit_used_cents = 30_000
        db_session.commit()

        result = credit_service.apply_credit_payment(user_a, 10_000)

        assert result["credit_paid_cents"] == 10_000
        assert result["regular_amount_cents"] == 0
        assert db_session.get(User, user_a.id).credit_used_cents == 20_000

    def test_no_credit_drawn_is_plain_payment(self, db_session, user_a):
        result = credit_service.apply_credit_payment(user_a, 5_000)

        assert result["credit_paid_cents"] == 0
        assert result["payment"].is_from_credit is False
        assert db_session.query(CreditTransaction).count() == 0

    @pytest.mark.parametrize("amount", [0, -100])
    def test_non_positive_rejected(self, db_session, user_a, amount):
        with pytest.raises(InvalidAmount):
            credit_service.apply_credit_payment(user_a, amount)
        assert db_session.query(Payment).count() == 0


class TestPaymentsAndExpenses:

    def test_user_sees_only_own_payments(self, db_session, director_a, user_a, user_a2):
        finance_service.record_payment(user_a, 1_000)
        finance_service.record_payment(user_a2, 2_000)

        assert [p.amount_cents for p in finance_service.list_payments(user_a)] == [1_000]
        assert len(finance_service.list_payments(director_a)) == 2
        assert len(finance_service.list_payments(director_a, user_id=user_a2.id)) == 1

    def test_expense_requires_description(self, db_session, user_a):
        with pytest.raises(InvalidInput):
            finance_service.record_expense(user_a, 500, "  ")

    def test_expense_amount_must_be_positive(self, db_session, user_a):
        with pytest.raises(InvalidAmount):
            finance_service.record_expense(user_a, 0, "Fuel")

    def test_admin_has_no_finance_records(self, db_session, admin):
        with pytest.raises(Unauthorized):
            finance_service.record_payment(admin, 100)
