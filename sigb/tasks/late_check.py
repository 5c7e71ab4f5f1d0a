# sigb/tasks/late_check.py
from __future__ import annotations

from datetime import date

from sigb.extensions import db
from sigb.services.loan_service import LoanService
from sigb.services.penalty_service import PenaltyService


def run_late_check_job(app, today: date | None = None) -> dict:
    """
    Periodic pass: flag past-due loans as overdue, then recompute their fines.
    Per-loan failures are reported by the calculator; anything else is logged here.
    """
    with app.app_context():
        try:
            scan = LoanService.mark_overdue(today=today)
            accrual = PenaltyService.calculate_all(today=today)

            app.logger.info(
                f"[late_check] marked_overdue={scan['updated_count']} total_overdue={scan['total_overdue']} "
                f"fines_updated={accrual['updated']} penalties_created={accrual['penalties_created']} "
                f"failed={len(accrual['errors'])}"
            )
            return {
                "marked_overdue": scan["updated_count"],
                "total_overdue": scan["total_overdue"],
                "fines_updated": accrual["updated"],
                "penalties_created": accrual["penalties_created"],
                "errors": accrual["errors"],
            }

        except Exception as e:
            db.session.rollback()
            app.logger.exception(f"[late_check] Error: {e}")
            raise
