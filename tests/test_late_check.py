from datetime import date
from decimal import Decimal

from sigb.extensions import db
from sigb.models.loan import Loan
from sigb.models.penalty import Penalty
from sigb.models.penalty_setting import PenaltySetting
from sigb.services.setting_service import SettingService
from sigb.tasks.late_check import run_late_check_job
from sigb.tasks.scheduler import start_scheduler

from conftest import TODAY


def test_late_check_marks_and_accrues(app, make_user, make_loan, make_setting):
    make_setting("book", daily_rate=100, max_penalty=5000, grace_period_days=1)
    user = make_user()
    late = make_loan(user, date(2025, 1, 1))
    make_loan(user, date(2025, 2, 1))

    result = run_late_check_job(app, today=TODAY)

    assert result == {
        "marked_overdue": 1,
        "total_overdue": 1,
        "fines_updated": 1,
        "penalties_created": 1,
        "errors": [],
    }
    db.session.expire_all()
    loan = db.session.get(Loan, late.id)
    assert loan.status == "overdue"
    assert loan.fine_amount == Decimal("800")
    assert Penalty.query.filter_by(loan_id=late.id).count() == 1


def test_scheduler_disabled_in_tests(app):
    assert start_scheduler(app) is None
    assert "apscheduler" not in app.extensions


def test_seed_fills_missing_document_types(make_setting):
    make_setting("book", daily_rate=50, max_penalty=1000, grace_period_days=0)

    assert SettingService.seed() == 3
    assert SettingService.seed() == 0

    book = PenaltySetting.query.filter_by(document_type="book").one()
    assert book.daily_rate == Decimal("50")
    thesis = PenaltySetting.query.filter_by(document_type="thesis").one()
    assert (thesis.daily_rate, thesis.max_penalty, thesis.grace_period_days) == (
        Decimal("200"), Decimal("10000"), 2
    )


def test_cli_commands(app):
    runner = app.test_cli_runner()

    seeded = runner.invoke(args=["seed-penalty-settings"])
    assert seeded.exit_code == 0
    assert "4 penalty setting(s) created" in seeded.output

    checked = runner.invoke(args=["late-check"])
    assert checked.exit_code == 0
    assert "marked_overdue=0" in checked.output
