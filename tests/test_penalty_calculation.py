from datetime import date
from decimal import Decimal

from sigb.extensions import db, mail
from sigb.models.loan import Loan
from sigb.models.penalty import Penalty
from sigb.services.loan_service import LoanService
from sigb.services.payment_service import PaymentService
from sigb.services.penalty_service import PenaltyService
from sigb.services.rate_service import RateService

from conftest import TODAY


def test_fine_after_grace_period(make_user, make_loan, make_setting):
    make_setting("book", daily_rate=100, max_penalty=5000, grace_period_days=1)
    loan = make_loan(make_user(), date(2025, 1, 1))

    result = PenaltyService.calculate_all(today=TODAY)

    loan = db.session.get(Loan, loan.id)
    assert result["updated"] == 1
    assert result["errors"] == []
    assert loan.fine_amount == Decimal("800")
    assert loan.daily_fine_rate == Decimal("100")
    assert loan.status == "overdue"
    assert loan.fine_calculated_date is not None


def test_fine_is_capped(make_user, make_loan, make_setting):
    make_setting("book", daily_rate=700, max_penalty=5000, grace_period_days=1)
    loan = make_loan(make_user(), date(2025, 1, 1))

    PenaltyService.calculate_all(today=TODAY)

    assert db.session.get(Loan, loan.id).fine_amount == Decimal("5000")


def test_no_fine_inside_grace_period(make_user, make_loan, make_setting):
    make_setting("book", daily_rate=100, max_penalty=5000, grace_period_days=3)
    loan = make_loan(make_user(), date(2025, 1, 7))

    result = PenaltyService.calculate_all(today=TODAY)

    loan = db.session.get(Loan, loan.id)
    assert result["updated"] == 0
    assert loan.fine_amount == Decimal("0")
    assert Penalty.query.count() == 0


def test_unchanged_fine_is_not_rewritten(make_user, make_loan, make_setting):
    make_setting("book")
    loan = make_loan(make_user(), date(2025, 1, 1))

    PenaltyService.calculate_all(today=TODAY)
    first_stamp = db.session.get(Loan, loan.id).fine_calculated_date
    second = PenaltyService.calculate_all(today=TODAY)

    assert second["updated"] == 0
    assert db.session.get(Loan, loan.id).fine_calculated_date == first_stamp


def test_fine_grows_until_cap(make_user, make_loan, make_setting):
    make_setting("book", daily_rate=1000, max_penalty=5000, grace_period_days=1)
    loan = make_loan(make_user(), date(2025, 1, 1))

    PenaltyService.calculate_all(today=date(2025, 1, 4))
    assert db.session.get(Loan, loan.id).fine_amount == Decimal("2000")

    PenaltyService.calculate_all(today=date(2025, 1, 20))
    assert db.session.get(Loan, loan.id).fine_amount == Decimal("5000")
    assert Penalty.query.filter_by(loan_id=loan.id).one().amount_fcfa == Decimal("5000")

    # already at the cap: nothing to write
    assert PenaltyService.calculate_all(today=date(2025, 1, 21))["updated"] == 0


def test_returned_and_future_loans_are_skipped(make_user, make_loan):
    user = make_user()
    returned = make_loan(user, date(2025, 1, 1), status="returned", return_date=date(2025, 1, 5))
    future = make_loan(user, date(2025, 1, 20))

    result = PenaltyService.calculate_all(today=TODAY)

    assert result["processed"] == 0
    assert db.session.get(Loan, returned.id).fine_amount == Decimal("0")
    assert db.session.get(Loan, future.id).fine_amount == Decimal("0")


def test_one_failing_loan_does_not_stop_the_batch(monkeypatch, make_user, make_loan, make_academic, make_setting):
    make_setting("book")
    user = make_user()
    thesis = make_academic("thesis", "Analyse numérique", "K. Fotso")
    broken = make_loan(user, date(2024, 12, 20), document_type="thesis", document=thesis)
    healthy = make_loan(user, date(2025, 1, 1))

    original = RateService.resolve

    def resolve(self, document_type):
        if document_type == "thesis":
            raise RuntimeError("settings table unreachable")
        return original(self, document_type)

    monkeypatch.setattr(RateService, "resolve", resolve)

    result = PenaltyService.calculate_all(today=TODAY)

    assert result["errors"] == [{"loan_id": broken.id, "error": "settings table unreachable"}]
    assert result["processed"] == 1
    assert db.session.get(Loan, healthy.id).fine_amount == Decimal("800")
    assert db.session.get(Loan, broken.id).fine_amount == Decimal("0")


def test_stats_view_reflects_fines(make_user, make_loan, make_setting):
    make_setting("book")
    user = make_user()
    make_loan(user, date(2025, 1, 1))   # 800
    make_loan(user, date(2025, 1, 6))   # 300
    paid = make_loan(user, date(2024, 12, 1), status="returned", return_date=date(2024, 12, 5), fine_amount=300)
    paid.fine_paid = True
    db.session.commit()

    result = PenaltyService.calculate_all(today=TODAY)
    stats = result["stats"]

    assert stats["total_fines_count"] == 3
    assert stats["total_fines_amount"] == 1400.0
    assert stats["paid_fines_count"] == 1
    assert stats["paid_fines_amount"] == 300.0
    assert stats["unpaid_fines_count"] == 2
    assert stats["unpaid_fines_amount"] == 1100.0
    assert round(stats["average_fine_amount"], 2) == round(1400 / 3, 2)

    amounts = [item["fine_amount"] for item in result["loans_with_penalties"]]
    assert amounts == [800.0, 300.0, 300.0]


def test_stats_are_zero_without_fines(app):
    stats = PenaltyService.stats()

    assert stats["total_fines_count"] == 0
    assert stats["total_fines_amount"] == 0.0
    assert stats["average_fine_amount"] == 0.0


def test_overdue_loan_is_charged_before_return(make_user, make_loan, make_setting):
    make_setting("book", daily_rate=100, max_penalty=5000, grace_period_days=1)
    user = make_user()
    loan = make_loan(user, date(2025, 1, 1))

    LoanService.mark_overdue(today=TODAY)
    with mail.record_messages() as outbox:
        result = PenaltyService.calculate_all(today=TODAY)

    assert result["penalties_created"] == 1
    penalty = Penalty.query.filter_by(loan_id=loan.id).one()
    assert penalty.user_id == user.id
    assert penalty.penalty_type == "late_return"
    assert penalty.status == "unpaid"
    assert penalty.amount_fcfa == Decimal("800")
    assert penalty.penalty_date == TODAY
    assert len(outbox) == 1
    assert outbox[0].recipients == [user.email]

    again = PenaltyService.calculate_all(today=TODAY)
    assert again["penalties_created"] == 0
    assert Penalty.query.filter_by(loan_id=loan.id).count() == 1


def test_accrued_penalty_can_be_paid(make_user, make_loan, make_setting):
    make_setting("book")
    loan = make_loan(make_user(), date(2025, 1, 1))
    PenaltyService.calculate_all(today=TODAY)
    penalty = Penalty.query.filter_by(loan_id=loan.id).one()

    result = PaymentService.pay([penalty.id], 800, today=TODAY)

    assert result["penalties_paid"][0]["status"] == "paid"
    assert db.session.get(Loan, loan.id).fine_paid is True


def test_unpaid_penalty_follows_the_fine(make_user, make_loan, make_setting):
    make_setting("book")
    loan = make_loan(make_user(), date(2025, 1, 1))

    PenaltyService.calculate_all(today=TODAY)
    PenaltyService.calculate_all(today=date(2025, 1, 12))

    penalty = Penalty.query.filter_by(loan_id=loan.id).one()
    assert penalty.amount_fcfa == Decimal("1000")
    assert "11 day(s)" in penalty.description


def test_partially_paid_penalty_keeps_its_amount(make_user, make_loan, make_setting):
    make_setting("book")
    loan = make_loan(make_user(), date(2025, 1, 1))
    PenaltyService.calculate_all(today=TODAY)
    penalty = Penalty.query.filter_by(loan_id=loan.id).one()
    PaymentService.pay([penalty.id], 100, today=TODAY)

    result = PenaltyService.calculate_all(today=date(2025, 1, 12))

    assert result["updated"] == 1
    assert db.session.get(Loan, loan.id).fine_amount == Decimal("1000")
    penalty = db.session.get(Penalty, penalty.id)
    assert penalty.status == "partial"
    assert penalty.amount_fcfa == Decimal("800")
