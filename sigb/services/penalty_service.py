# sigb/services/penalty_service.py
from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import text

from sigb.extensions import db
from sigb.models.penalty import PENALTY_TYPES, Penalty
from sigb.repositories.loan_repo import LoanRepo
from sigb.repositories.penalty_repo import PenaltyRepo
from sigb.repositories.user_repo import UserRepo
from sigb.services.activity_service import ActivityService
from sigb.services.mail_service import MailService
from sigb.services.rate_service import (
    RateService,
    capped_fine,
    days_overdue,
    effective_days_overdue,
)
from sigb.utils.errors import ConflictError, NotFoundError, ValidationError
from sigb.utils.serializers import loan_row_to_dict, penalty_to_dict

STATS_SQL = """
SELECT
    total_fines_count,
    total_fines_amount,
    paid_fines_count,
    paid_fines_amount,
    unpaid_fines_count,
    unpaid_fines_amount,
    average_fine_amount
FROM penalty_stats
"""

EMPTY_STATS = {
    "total_fines_count": 0,
    "total_fines_amount": 0.0,
    "paid_fines_count": 0,
    "paid_fines_amount": 0.0,
    "unpaid_fines_count": 0,
    "unpaid_fines_amount": 0.0,
    "average_fine_amount": 0.0,
}


def _positive_amount(raw) -> Decimal:
    if raw is None or isinstance(raw, bool):
        raise ValidationError("amount_fcfa must be a positive number")
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ValidationError("amount_fcfa must be a positive number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("amount_fcfa must be a positive number")
    return amount


class PenaltyService:
    # -----------------------------
    # Accrual
    # -----------------------------
    @staticmethod
    def _accrue_loan(loan_id: int, today: date, rates: RateService, rate_cache: dict):
        """
        Recomputes the fine of one loan under a row lock and keeps its
        late_return penalty in step. Returns (fine_changed, new_penalty_or_None).
        The caller commits.
        """
        loan = LoanRepo.get_for_update(loan_id)
        # returned or moved on since the id list was read
        if (
            loan is None
            or loan.return_date is not None
            or loan.status not in ("overdue", "active")
            or loan.due_date >= today
        ):
            return False, None

        doc_type = loan.document_type or "book"
        rate = rate_cache.get(doc_type)
        if rate is None:
            rate = rate_cache[doc_type] = rates.resolve(doc_type)

        days = days_overdue(loan.due_date, today)
        if days <= rate.grace_period_days:
            return False, None

        fine = capped_fine(days, rate)
        changed = Decimal(str(loan.fine_amount or 0)) != fine
        if changed:
            loan.fine_amount = fine
            loan.fine_calculated_date = datetime.utcnow()
            loan.daily_fine_rate = rate.daily_rate
            loan.status = "overdue"
            current_app.logger.info(f"[penalties] Loan {loan.id}: fine={fine} FCFA ({days} day(s) late)")

        penalty, created = PenaltyService.sync_late_penalty(loan, days, today, rate)
        return changed, (penalty if created else None)

    @staticmethod
    def calculate_all(today: date | None = None, rates: RateService | None = None) -> dict:
        """
        Runs the accrual over every unreturned, past-due loan.
        Each loan gets its own transaction; a failing loan is rolled back,
        reported in `errors` and the batch goes on.
        """
        today = today or date.today()
        rates = rates or RateService()
        rate_cache: dict = {}

        loan_ids = LoanRepo.ids_for_accrual(today)
        current_app.logger.info(f"[penalties] {len(loan_ids)} overdue loan(s) to evaluate")

        updated = 0
        created = []
        errors = []
        for loan_id in loan_ids:
            try:
                changed, penalty = PenaltyService._accrue_loan(loan_id, today, rates, rate_cache)
                db.session.commit()
            except Exception as e:
                db.session.rollback()
                current_app.logger.exception(f"[penalties] Loan {loan_id} failed: {e}")
                errors.append({"loan_id": loan_id, "error": str(e)})
                continue
            if changed:
                updated += 1
            if penalty is not None:
                created.append(penalty)

        for penalty in created:
            PenaltyService.notify_created(penalty, days_overdue(penalty.loan.due_date, today))

        return {
            "processed": len(loan_ids) - len(errors),
            "updated": updated,
            "penalties_created": len(created),
            "errors": errors,
            "stats": PenaltyService.stats(),
            "loans_with_penalties": PenaltyService.loans_with_penalties(today),
        }

    @staticmethod
    def stats() -> dict:
        row = db.session.execute(text(STATS_SQL)).mappings().first()
        if row is None:
            return dict(EMPTY_STATS)
        return {
            "total_fines_count": int(row["total_fines_count"] or 0),
            "total_fines_amount": float(row["total_fines_amount"] or 0),
            "paid_fines_count": int(row["paid_fines_count"] or 0),
            "paid_fines_amount": float(row["paid_fines_amount"] or 0),
            "unpaid_fines_count": int(row["unpaid_fines_count"] or 0),
            "unpaid_fines_amount": float(row["unpaid_fines_amount"] or 0),
            "average_fine_amount": float(row["average_fine_amount"] or 0),
        }

    @staticmethod
    def loans_with_penalties(today: date | None = None) -> list[dict]:
        today = today or date.today()
        out = []
        for row in LoanRepo.list_with_fines():
            item = loan_row_to_dict(row)
            item["days_overdue"] = days_overdue(row[0].due_date, row[0].return_date or today)
            out.append(item)
        return out

    # -----------------------------
    # Late-return penalty
    # -----------------------------
    @staticmethod
    def late_description(days_late: int, document_type: str, billed_days: int) -> str:
        return (
            f"{days_late} day(s) late for {document_type} "
            f"({billed_days} day(s) billed after grace period)"
        )

    @staticmethod
    def create_late_penalty(loan, days_late: int, today: date, rate) -> Penalty | None:
        """
        Adds an unpaid late_return penalty for `loan` to the session.
        None when the loan is inside its grace period or already has one.
        The caller commits and sends the notification.
        """
        amount = capped_fine(days_late, rate)
        if amount <= 0:
            return None

        if PenaltyRepo.find_late_return(loan.id) is not None:
            current_app.logger.info(f"[penalties] Loan {loan.id} already has a late_return penalty")
            return None

        due_days = int(current_app.config.get("PENALTY_PAYMENT_DUE_DAYS", 30))
        billed = effective_days_overdue(days_late, rate.grace_period_days)
        penalty = Penalty(
            user_id=loan.user_id,
            loan_id=loan.id,
            penalty_type="late_return",
            amount_fcfa=amount,
            penalty_date=today,
            due_date=today + timedelta(days=due_days),
            status="unpaid",
            description=PenaltyService.late_description(days_late, loan.document_type, billed),
        )
        PenaltyRepo.add(penalty)
        db.session.flush()
        current_app.logger.info(
            f"[penalties] Penalty {penalty.id} created for loan {loan.id}: {amount} FCFA"
        )
        return penalty


    @staticmethod
    def sync_late_penalty(loan, days_late: int, today: date, rate):
        """
        Opens the late_return penalty of `loan`, or re-prices it while it is
        still unpaid. Partial, paid and waived penalties are left alone.
        Returns (penalty_or_None, created).
        """
        existing = PenaltyRepo.find_late_return(loan.id)
        if existing is None:
            penalty = PenaltyService.create_late_penalty(loan, days_late, today, rate)
            return penalty, penalty is not None

        amount = capped_fine(days_late, rate)
        if existing.status == "unpaid" and amount > 0 and Decimal(str(existing.amount_fcfa)) != amount:
            billed = effective_days_overdue(days_late, rate.grace_period_days)
            existing.amount_fcfa = amount
            existing.description = PenaltyService.late_description(days_late, loan.document_type, billed)
            existing.updated_at = datetime.utcnow()
            current_app.logger.info(f"[penalties] Penalty {existing.id} re-priced to {amount} FCFA")
        return existing, False

    @staticmethod
    def notify_created(penalty, days_late: int | None = None) -> bool:
        """Best-effort mail for a committed penalty."""
        user = UserRepo.get_by_id(penalty.user_id)
        if user is None:
            return False
        title = None
        if penalty.loan is not None:
            title, _author = LoanRepo.document_labels(penalty.loan)
        return MailService.send_penalty_created(penalty, user, title, days_late)

    # -----------------------------
    # Manual penalty
    # -----------------------------
    @staticmethod
    def create(user_id, loan_id, penalty_type: str, amount_fcfa, description: str | None,
               today: date | None = None) -> Penalty:
        """Staff-entered penalty (damage, loss, ...). Commits, then mails the reader."""
        today = today or date.today()
        penalty_type = penalty_type or "other"
        if penalty_type not in PENALTY_TYPES:
            raise ValidationError(f"penalty_type must be one of: {', '.join(PENALTY_TYPES)}")
        description = (description or "").strip()
        if not description:
            raise ValidationError("description is required")
        amount = _positive_amount(amount_fcfa)
        try:
            user_id = int(user_id)
            loan_id = int(loan_id) if loan_id not in (None, "") else None
        except (TypeError, ValueError):
            raise ValidationError("user_id and loan_id must be integers")

        if UserRepo.get_by_id(user_id) is None:
            raise NotFoundError("User not found")

        try:
            if loan_id is not None:
                loan = LoanRepo.get_for_update(loan_id)
                if loan is None:
                    raise NotFoundError("Loan not found")
                if loan.user_id != user_id:
                    raise ValidationError("Loan does not belong to this user")
                if PenaltyRepo.find_for_loan(loan_id, penalty_type) is not None:
                    raise ConflictError(f"Loan {loan_id} already has a {penalty_type} penalty")

            due_days = int(current_app.config.get("PENALTY_PAYMENT_DUE_DAYS", 30))
            penalty = Penalty(
                user_id=user_id,
                loan_id=loan_id,
                penalty_type=penalty_type,
                amount_fcfa=amount,
                penalty_date=today,
                due_date=today + timedelta(days=due_days),
                status="unpaid",
                description=description,
            )
            PenaltyRepo.add(penalty)
            db.session.flush()

            ActivityService.record(
                "penalty_created",
                f"{penalty_type} penalty of {amount} FCFA for user {user_id}",
                {
                    "penalty_id": penalty.id,
                    "user_id": user_id,
                    "loan_id": loan_id,
                    "penalty_type": penalty_type,
                    "amount_fcfa": float(amount),
                },
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(f"[penalties] Penalty {penalty.id} ({penalty_type}) created: {amount} FCFA")
        PenaltyService.notify_created(penalty)
        return penalty

    # -----------------------------
    # Waive
    # -----------------------------
    @staticmethod
    def waive(penalty_id: int, reason: str | None, waived_by: str | None) -> Penalty:
        reason = (reason or "").strip()
        waived_by = (waived_by or "").strip()
        if not reason or not waived_by:
            raise ValidationError("reason and waived_by are required")

        try:
            penalty = PenaltyRepo.get_for_update(penalty_id)
            if penalty is None:
                raise NotFoundError("Penalty not found")
            if penalty.status != "unpaid":
                raise ConflictError(f"Penalty is '{penalty.status}', only unpaid penalties can be waived")

            penalty.status = "waived"
            penalty.waived_by = waived_by
            penalty.waived_reason = reason
            penalty.updated_at = datetime.utcnow()

            ActivityService.record(
                "penalty_waived",
                f"Penalty {penalty.id} waived by {waived_by}",
                {
                    "penalty_id": penalty.id,
                    "user_id": penalty.user_id,
                    "amount_fcfa": float(penalty.amount_fcfa),
                    "reason": reason,
                    "waived_by": waived_by,
                },
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        user = UserRepo.get_by_id(penalty.user_id)
        if user:
            MailService.send_penalty_waived(penalty, user)
        return penalty

    # -----------------------------
    # Queries
    # -----------------------------
    @staticmethod
    def list_penalties(status: str | None, limit: int, offset: int) -> dict:
        if limit < 1 or offset < 0:
            raise ValidationError("limit must be >= 1 and offset >= 0")
        rows, total = PenaltyRepo.paginate(status or None, limit, offset)
        data = []
        for p in rows:
            item = penalty_to_dict(p)
            item["user_name"] = p.user.full_name if p.user else None
            item["user_email"] = p.user.email if p.user else None
            data.append(item)
        return {
            "data": data,
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + limit < total,
            },
        }

    @staticmethod
    def user_penalties(user_id: int) -> dict:
        if UserRepo.get_by_id(user_id) is None:
            raise NotFoundError("User not found")

        data = []
        total_amount = Decimal("0")
        total_paid = Decimal("0")
        total_unpaid = Decimal("0")
        counts = {"unpaid": 0, "paid": 0, "partial": 0, "waived": 0}

        for penalty, paid, payment_count, last_payment_date in PenaltyRepo.list_for_user_with_payments(user_id):
            item = penalty_to_dict(penalty)
            title = None
            if penalty.loan is not None:
                title, _author = LoanRepo.document_labels(penalty.loan)
            item["document_title"] = title
            item["total_paid"] = float(paid or 0)
            item["payment_count"] = int(payment_count or 0)
            item["last_payment_date"] = str(last_payment_date) if last_payment_date else None
            data.append(item)

            amount = Decimal(str(penalty.amount_fcfa))
            total_amount += amount
            total_paid += Decimal(str(paid or 0))
            if penalty.status == "unpaid":
                total_unpaid += amount
            counts[penalty.status] = counts.get(penalty.status, 0) + 1

        return {
            "data": data,
            "statistics": {
                "total_penalties": len(data),
                "unpaid_count": counts["unpaid"],
                "paid_count": counts["paid"],
                "partial_count": counts["partial"],
                "waived_count": counts["waived"],
                "total_amount": float(total_amount),
                "total_paid": float(total_paid),
                "total_unpaid": float(total_unpaid),
            },
        }
