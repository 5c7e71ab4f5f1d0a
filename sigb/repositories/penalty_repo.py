from __future__ import annotations

from sqlalchemy import func

from sigb.extensions import db
from sigb.models.penalty import Penalty, PAYABLE_STATUSES
from sigb.models.penalty_payment import PenaltyPayment


class PenaltyRepo:
    @staticmethod
    def get_for_update(penalty_id: int):
        return Penalty.query.filter(Penalty.id == penalty_id).with_for_update().first()

    @staticmethod
    def find_for_loan(loan_id: int, penalty_type: str):
        return Penalty.query.filter_by(loan_id=loan_id, penalty_type=penalty_type).first()

    @staticmethod
    def find_late_return(loan_id: int):
        return PenaltyRepo.find_for_loan(loan_id, "late_return")

    @staticmethod
    def lock_payable(penalty_ids: list[int]):
        return (
            Penalty.query
            .filter(Penalty.id.in_(penalty_ids), Penalty.status.in_(PAYABLE_STATUSES))
            .with_for_update()
            .all()
        )

    @staticmethod
    def total_paid(penalty_id: int):
        return (
            db.session.query(func.coalesce(func.sum(PenaltyPayment.amount_paid), 0))
            .filter(PenaltyPayment.penalty_id == penalty_id)
            .scalar()
        )

    @staticmethod
    def paginate(status: str | None, limit: int, offset: int):
        q = Penalty.query
        if status:
            q = q.filter(Penalty.status == status)
        total = q.count()
        rows = q.order_by(Penalty.created_at.desc(), Penalty.id.desc()).limit(limit).offset(offset).all()
        return rows, total

    @staticmethod
    def list_for_user_with_payments(user_id: int):
        """[(penalty, total_paid, payment_count, last_payment_date)] newest first."""
        paid = (
            db.session.query(
                PenaltyPayment.penalty_id.label("penalty_id"),
                func.sum(PenaltyPayment.amount_paid).label("total_paid"),
                func.count(PenaltyPayment.id).label("payment_count"),
                func.max(PenaltyPayment.payment_date).label("last_payment_date"),
            )
            .group_by(PenaltyPayment.penalty_id)
            .subquery()
        )
        return (
            db.session.query(
                Penalty,
                func.coalesce(paid.c.total_paid, 0),
                func.coalesce(paid.c.payment_count, 0),
                paid.c.last_payment_date,
            )
            .outerjoin(paid, paid.c.penalty_id == Penalty.id)
            .filter(Penalty.user_id == user_id)
            .order_by(Penalty.penalty_date.desc(), Penalty.created_at.desc(), Penalty.id.desc())
            .all()
        )

    @staticmethod
    def add(entry):
        db.session.add(entry)
        return entry
