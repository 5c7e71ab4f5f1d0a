# sigb/services/loan_service.py
from __future__ import annotations

from datetime import date, datetime, timedelta

from flask import current_app

from sigb.extensions import db
from sigb.models.academic import Memoir, StageReport, Thesis
from sigb.models.book import Book
from sigb.models.loan import DOCUMENT_TYPES, Loan
from sigb.repositories.loan_repo import LoanRepo
from sigb.repositories.user_repo import UserRepo
from sigb.services.penalty_service import PenaltyService
from sigb.services.rate_service import (
    RateService,
    capped_fine,
    days_overdue,
    effective_days_overdue,
)
from sigb.utils.errors import ConflictError, NotFoundError, ValidationError
from sigb.utils.serializers import loan_row_to_dict

ACADEMIC_MODELS = {"thesis": Thesis, "memoir": Memoir, "internship_report": StageReport}


class LoanService:
    # -----------------------------
    # Overdue scanner
    # -----------------------------
    @staticmethod
    def _overdue_items(rows, today: date, rates: RateService) -> list[dict]:
        resolved = rates.resolve_many(row[0].document_type for row in rows)
        items = []
        for row in rows:
            loan = row[0]
            rate = resolved[loan.document_type or "book"]
            days = days_overdue(loan.due_date, today)
            item = loan_row_to_dict(row)
            item["days_overdue"] = days
            item["grace_period_days"] = rate.grace_period_days
            item["effective_days_overdue"] = effective_days_overdue(days, rate.grace_period_days)
            items.append(item)
        return items

    @staticmethod
    def mark_overdue(today: date | None = None, rates: RateService | None = None) -> dict:
        """Flags past-due active loans as overdue and lists every overdue loan."""
        today = today or date.today()
        rates = rates or RateService()

        try:
            updated = LoanRepo.mark_overdue(today, datetime.utcnow())
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        if updated:
            current_app.logger.info(f"[loans] {updated} loan(s) marked overdue")

        items = LoanService._overdue_items(LoanRepo.list_marked_overdue(), today, rates)
        return {
            "updated_count": updated,
            "overdue_loans": items,
            "total_overdue": len(items),
            "effective_overdue": sum(1 for i in items if i["effective_days_overdue"] > 0),
        }

    @staticmethod
    def list_overdue(today: date | None = None, rates: RateService | None = None) -> dict:
        """Same listing without touching statuses; includes active loans not yet flagged."""
        today = today or date.today()
        rates = rates or RateService()

        items = LoanService._overdue_items(LoanRepo.list_overdue_or_pending(today), today, rates)
        already_marked = sum(1 for i in items if i["status"] == "overdue")
        return {
            "data": items,
            "meta": {
                "total_overdue": len(items),
                "already_marked": already_marked,
                "pending_update": len(items) - already_marked,
                "effective_overdue": sum(1 for i in items if i["effective_days_overdue"] > 0),
            },
        }

    # -----------------------------
    # Borrow / return
    # -----------------------------
    @staticmethod
    def borrow(user_id: int, document_type: str, document_id: int, days: int = 14,
               today: date | None = None) -> Loan:
        today = today or date.today()

        if document_type not in DOCUMENT_TYPES:
            raise ValidationError(f"document_type must be one of: {', '.join(DOCUMENT_TYPES)}")
        if days <= 0:
            raise ValidationError("days must be positive")
        if UserRepo.get_by_id(user_id) is None:
            raise NotFoundError("User not found")

        try:
            loan = Loan(
                user_id=user_id,
                document_type=document_type,
                loan_date=today,
                due_date=today + timedelta(days=days),
                status="active",
                fine_amount=0,
                fine_paid=False,
            )

            if document_type == "book":
                book = Book.query.filter(Book.id == document_id).with_for_update().first()
                if not book:
                    raise NotFoundError("Book not found")
                if book.available_copies is None or book.available_copies < 1:
                    raise ConflictError("This book is not available right now")
                book.available_copies -= 1
                loan.book_id = book.id
            else:
                if db.session.get(ACADEMIC_MODELS[document_type], document_id) is None:
                    raise NotFoundError("Document not found")
                loan.academic_document_id = document_id

            LoanRepo.create(loan)
            LoanRepo.commit()
        except Exception:
            db.session.rollback()
            raise

        return loan

    @staticmethod
    def return_loan(loan_id: int, today: date | None = None, rates: RateService | None = None):
        """
        Closes a loan. A late return stores the capped fine on the loan and
        opens the late_return penalty, or re-prices it when the accrual
        already opened it and it is still unpaid. Returns (loan, penalty_or_None).
        """
        today = today or date.today()
        rates = rates or RateService()
        penalty = None
        created = False
        days = 0

        try:
            loan = LoanRepo.get_for_update(loan_id)
            if loan is None:
                raise NotFoundError("Loan not found")
            if loan.return_date is not None:
                raise ConflictError("This loan has already been returned")

            loan.return_date = today
            loan.status = "returned"

            if loan.document_type == "book" and loan.book_id:
                book = Book.query.filter(Book.id == loan.book_id).with_for_update().first()
                if book:
                    book.available_copies = min(book.total_copies, (book.available_copies or 0) + 1)

            days = days_overdue(loan.due_date, today)
            if days > 0:
                rate = rates.resolve(loan.document_type)
                fine = capped_fine(days, rate)
                if fine > 0:
                    loan.fine_amount = fine
                    loan.daily_fine_rate = rate.daily_rate
                    loan.fine_calculated_date = datetime.utcnow()
                    penalty, created = PenaltyService.sync_late_penalty(loan, days, today, rate)

            LoanRepo.commit()
        except Exception:
            db.session.rollback()
            raise

        if created:
            PenaltyService.notify_created(penalty, days)

        return loan, penalty
