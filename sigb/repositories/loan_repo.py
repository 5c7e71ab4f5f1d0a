# sigb/repositories/loan_repo.py
from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import and_, case, or_

from sigb.extensions import db
from sigb.models.academic import Memoir, StageReport, Thesis
from sigb.models.book import Book
from sigb.models.loan import Loan
from sigb.models.user import User


def _document_title():
    return case(
        (Loan.document_type == "book", Book.title),
        (Loan.document_type == "thesis", Thesis.title),
        (Loan.document_type == "memoir", Memoir.title),
        (Loan.document_type == "internship_report", StageReport.title),
        else_=None,
    ).label("document_title")


def _document_author():
    return case(
        (Loan.document_type == "book", Book.main_author),
        (Loan.document_type == "thesis", Thesis.main_author),
        (Loan.document_type == "memoir", Memoir.main_author),
        (Loan.document_type == "internship_report", StageReport.student_name),
        else_=None,
    ).label("document_author")


class LoanRepo:
    @staticmethod
    def get_for_update(loan_id: int):
        return Loan.query.filter(Loan.id == loan_id).with_for_update().first()

    @staticmethod
    def create(loan: Loan):
        db.session.add(loan)
        return loan

    @staticmethod
    def commit():
        db.session.commit()

    @staticmethod
    def listing_query():
        """Loans joined with borrower and document labels (title/author from the table of its type)."""
        return (
            db.session.query(
                Loan,
                User.full_name.label("user_name"),
                User.email.label("user_email"),
                User.barcode.label("user_barcode"),
                _document_title(),
                _document_author(),
            )
            .join(User, Loan.user_id == User.id)
            .outerjoin(Book, and_(Loan.book_id == Book.id, Loan.document_type == "book"))
            .outerjoin(Thesis, and_(Loan.academic_document_id == Thesis.id, Loan.document_type == "thesis"))
            .outerjoin(Memoir, and_(Loan.academic_document_id == Memoir.id, Loan.document_type == "memoir"))
            .outerjoin(
                StageReport,
                and_(Loan.academic_document_id == StageReport.id, Loan.document_type == "internship_report"),
            )
        )

    @staticmethod
    def mark_overdue(today: date, now: datetime) -> int:
        return Loan.query.filter(
            Loan.status == "active",
            Loan.due_date < today,
            Loan.return_date.is_(None),
        ).update({Loan.status: "overdue", Loan.updated_at: now}, synchronize_session=False)

    @staticmethod
    def list_marked_overdue():
        return (
            LoanRepo.listing_query()
            .filter(Loan.status == "overdue", Loan.return_date.is_(None))
            .order_by(Loan.due_date.asc(), Loan.id.asc())
            .all()
        )

    @staticmethod
    def list_overdue_or_pending(today: date):
        return (
            LoanRepo.listing_query()
            .filter(
                or_(
                    Loan.status == "overdue",
                    and_(Loan.status == "active", Loan.due_date < today),
                ),
                Loan.return_date.is_(None),
            )
            .order_by(Loan.due_date.asc(), Loan.id.asc())
            .all()
        )

    @staticmethod
    def ids_for_accrual(today: date) -> list[int]:
        rows = (
            db.session.query(Loan.id)
            .filter(
                Loan.status.in_(["overdue", "active"]),
                Loan.return_date.is_(None),
                Loan.due_date < today,
            )
            .order_by(Loan.due_date.asc(), Loan.id.asc())
            .all()
        )
        return [r[0] for r in rows]

    @staticmethod
    def list_with_fines():
        return (
            LoanRepo.listing_query()
            .filter(Loan.fine_amount > 0)
            .order_by(Loan.fine_amount.desc(), Loan.due_date.asc())
            .all()
        )

    @staticmethod
    def document_labels(loan: Loan):
        """(title, author) of a single loan's document, or (None, None) when it is gone."""
        if loan.document_type == "book":
            doc = db.session.get(Book, loan.book_id) if loan.book_id else None
            return (doc.title, doc.main_author) if doc else (None, None)

        model = {"thesis": Thesis, "memoir": Memoir, "internship_report": StageReport}.get(loan.document_type)
        if model is None or not loan.academic_document_id:
            return None, None
        doc = db.session.get(model, loan.academic_document_id)
        if not doc:
            return None, None
        author = doc.student_name if model is StageReport else doc.main_author
        return doc.title, author
