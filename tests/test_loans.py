from datetime import date, timedelta
from decimal import Decimal

import pytest

from sigb.extensions import db, mail
from sigb.models.book import Book
from sigb.models.loan import Loan
from sigb.models.notification_log import NotificationLog
from sigb.models.penalty import Penalty
from sigb.services.loan_service import LoanService
from sigb.services.penalty_service import PenaltyService
from sigb.services.rate_service import RateService
from sigb.utils.errors import ConflictError, NotFoundError, ValidationError

from conftest import TODAY


def test_borrow_book_takes_a_copy(make_user, make_book):
    user = make_user()
    book = make_book(copies=1)

    loan = LoanService.borrow(user.id, "book", book.id, days=14, today=TODAY)

    assert loan.status == "active"
    assert loan.due_date == TODAY + timedelta(days=14)
    assert db.session.get(Book, book.id).available_copies == 0

    with pytest.raises(ConflictError):
        LoanService.borrow(user.id, "book", book.id, today=TODAY)


def test_borrow_academic_document(make_user, make_academic):
    user = make_user()
    memoir = make_academic("memoir", "Paludisme en zone rurale", "A. Tchoumi")

    loan = LoanService.borrow(user.id, "memoir", memoir.id, days=7, today=TODAY)

    assert loan.academic_document_id == memoir.id
    assert loan.book_id is None


def test_borrow_validation(make_user, make_book):
    user = make_user()
    book = make_book()

    with pytest.raises(ValidationError):
        LoanService.borrow(user.id, "dvd", book.id, today=TODAY)
    with pytest.raises(ValidationError):
        LoanService.borrow(user.id, "book", book.id, days=0, today=TODAY)
    with pytest.raises(NotFoundError):
        LoanService.borrow(user.id, "thesis", 12345, today=TODAY)
    with pytest.raises(NotFoundError):
        LoanService.borrow(9999, "book", book.id, today=TODAY)


def test_late_return_opens_a_penalty(make_user, make_loan, make_book, make_setting):
    make_setting("book", daily_rate=100, max_penalty=5000, grace_period_days=1)
    user = make_user()
    book = make_book(title="L'Aventure ambiguë", author="Cheikh Hamidou Kane", copies=1)
    book.available_copies = 0
    db.session.commit()
    loan = make_loan(user, date(2025, 1, 1), document=book, status="overdue")

    with mail.record_messages() as outbox:
        returned, penalty = LoanService.return_loan(loan.id, today=TODAY)

    assert returned.status == "returned"
    assert returned.return_date == TODAY
    assert returned.fine_amount == Decimal("800")
    assert db.session.get(Book, book.id).available_copies == 1

    assert penalty.status == "unpaid"
    assert penalty.penalty_type == "late_return"
    assert penalty.amount_fcfa == Decimal("800")
    assert penalty.penalty_date == TODAY
    assert penalty.due_date == TODAY + timedelta(days=30)
    assert "9 day(s)" in penalty.description
    assert "8 day(s) billed" in penalty.description

    assert len(outbox) == 1
    assert "L'Aventure ambiguë" in outbox[0].body
    assert NotificationLog.query.filter_by(type="penalty_created").count() == 1


def test_return_inside_grace_period_has_no_penalty(make_user, make_loan, make_setting):
    make_setting("book", grace_period_days=2)
    loan = make_loan(make_user(), date(2025, 1, 8))

    returned, penalty = LoanService.return_loan(loan.id, today=TODAY)

    assert penalty is None
    assert returned.fine_amount == Decimal("0")
    assert Penalty.query.count() == 0


def test_return_twice_is_rejected(make_user, make_loan):
    loan = make_loan(make_user(), date(2025, 1, 20))
    LoanService.return_loan(loan.id, today=TODAY)

    with pytest.raises(ConflictError):
        LoanService.return_loan(loan.id, today=TODAY)
    with pytest.raises(NotFoundError):
        LoanService.return_loan(4242, today=TODAY)


def test_late_penalty_is_created_once_per_loan(make_user, make_loan, make_penalty):
    user = make_user()
    loan = make_loan(user, date(2025, 1, 1))
    make_penalty(user, 800, loan=loan, penalty_type="late_return")
    rate = RateService().resolve("book")

    assert PenaltyService.create_late_penalty(db.session.get(Loan, loan.id), 9, TODAY, rate) is None
    assert Penalty.query.filter_by(loan_id=loan.id).count() == 1


def test_return_after_accrual_reuses_the_penalty(make_user, make_loan, make_setting):
    make_setting("book", daily_rate=100, max_penalty=5000, grace_period_days=1)
    loan = make_loan(make_user(), date(2025, 1, 1))
    PenaltyService.calculate_all(today=TODAY)
    opened = Penalty.query.filter_by(loan_id=loan.id).one()

    with mail.record_messages() as outbox:
        _returned, penalty = LoanService.return_loan(loan.id, today=date(2025, 1, 12))

    assert penalty.id == opened.id
    assert penalty.amount_fcfa == Decimal("1000")
    assert Penalty.query.filter_by(loan_id=loan.id).count() == 1
    assert outbox == []
