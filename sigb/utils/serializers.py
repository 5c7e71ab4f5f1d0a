# sigb/utils/serializers.py
from __future__ import annotations


def _money(value):
    return float(value) if value is not None else 0.0


def _iso(value):
    return value.isoformat() if value is not None else None


def loan_to_dict(loan) -> dict:
    return {
        "id": loan.id,
        "user_id": loan.user_id,
        "book_id": loan.book_id,
        "academic_document_id": loan.academic_document_id,
        "document_type": loan.document_type,
        "loan_date": _iso(loan.loan_date),
        "due_date": _iso(loan.due_date),
        "return_date": _iso(loan.return_date),
        "status": loan.status,
        "fine_amount": _money(loan.fine_amount),
        "fine_paid": bool(loan.fine_paid),
        "fine_calculated_date": _iso(loan.fine_calculated_date),
        "daily_fine_rate": _money(loan.daily_fine_rate) if loan.daily_fine_rate is not None else None,
    }


def loan_row_to_dict(row) -> dict:
    """Row from LoanRepo.listing_query(): (Loan, user_name, user_email, user_barcode, title, author)."""
    loan, user_name, user_email, user_barcode, document_title, document_author = row
    data = loan_to_dict(loan)
    data.update({
        "user_name": user_name,
        "user_email": user_email,
        "user_barcode": user_barcode,
        "document_title": document_title,
        "document_author": document_author,
    })
    return data


def penalty_to_dict(p) -> dict:
    return {
        "id": p.id,
        "user_id": p.user_id,
        "loan_id": p.loan_id,
        "penalty_type": p.penalty_type,
        "amount_fcfa": _money(p.amount_fcfa),
        "penalty_date": _iso(p.penalty_date),
        "due_date": _iso(p.due_date),
        "status": p.status,
        "description": p.description,
        "waived_by": p.waived_by,
        "waived_reason": p.waived_reason,
        "created_at": _iso(p.created_at),
        "updated_at": _iso(p.updated_at),
    }


def setting_to_dict(s) -> dict:
    return {
        "id": s.id,
        "document_type": s.document_type,
        "daily_rate": _money(s.daily_rate),
        "max_penalty": _money(s.max_penalty),
        "grace_period_days": s.grace_period_days,
        "is_active": bool(s.is_active),
        "created_at": _iso(s.created_at),
        "updated_at": _iso(s.updated_at),
    }
