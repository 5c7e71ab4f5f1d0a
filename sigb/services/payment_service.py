# sigb/services/payment_service.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from flask import current_app

from sigb.extensions import db
from sigb.models.penalty_payment import PAYMENT_METHODS, PenaltyPayment
from sigb.repositories.penalty_repo import PenaltyRepo
from sigb.repositories.user_repo import UserRepo
from sigb.services.activity_service import ActivityService
from sigb.services.mail_service import MailService
from sigb.utils.errors import NotFoundError, ValidationError


def _penalty_ids(raw) -> list[int]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("penalty_ids (non-empty array) is required")
    ids = []
    for value in raw:
        if isinstance(value, bool):
            raise ValidationError("penalty_ids must contain integer ids")
        try:
            pid = int(value)
        except (TypeError, ValueError):
            raise ValidationError("penalty_ids must contain integer ids")
        if pid not in ids:
            ids.append(pid)
    return ids


def _amount(raw) -> Decimal:
    if raw is None or isinstance(raw, bool):
        raise ValidationError("amount_paid must be a positive number")
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ValidationError("amount_paid must be a positive number")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("amount_paid must be a positive number")
    return amount


class PaymentService:
    @staticmethod
    def pay(
        penalty_ids,
        amount_paid,
        payment_method: str = "cash",
        notes: str = "",
        processed_by: str = "System",
        today: date | None = None,
    ) -> dict:
        """
        Spreads one payment over a user's unpaid/partial penalties.

        Penalties are settled in the order of `penalty_ids`. Each slice is
        min(remaining, outstanding balance) and gets its own penalty_payments
        row. Whatever exceeds the total balance is returned as
        `remaining_amount` and not stored anywhere.
        """
        ids = _penalty_ids(penalty_ids)
        amount = _amount(amount_paid)
        payment_method = payment_method or "cash"
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
        today = today or date.today()

        try:
            penalties = PenaltyRepo.lock_payable(ids)
            if not penalties:
                raise NotFoundError("No unpaid penalties found for these ids")

            owners = {p.user_id for p in penalties}
            if len(owners) > 1:
                raise ValidationError("All penalties must belong to the same user")

            user = UserRepo.get_by_id(penalties[0].user_id)
            by_id = {p.id: p for p in penalties}
            ordered = [by_id[i] for i in ids if i in by_id]

            current_app.logger.info(
                f"[payments] {amount} FCFA for {len(ordered)} penalty(ies) of user {penalties[0].user_id}"
            )

            remaining = amount
            allocations = []
            for p in ordered:
                if remaining <= 0:
                    break

                outstanding = Decimal(str(p.amount_fcfa)) - Decimal(str(PenaltyRepo.total_paid(p.id)))
                if outstanding <= 0:
                    continue

                slice_amount = min(remaining, outstanding)
                payment = PenaltyPayment(
                    penalty_id=p.id,
                    amount_paid=slice_amount,
                    payment_method=payment_method,
                    payment_date=today,
                    notes=notes or None,
                    processed_by=processed_by,
                )
                PenaltyRepo.add(payment)

                p.status = "paid" if slice_amount >= outstanding else "partial"
                p.updated_at = datetime.utcnow()
                if p.status == "paid" and p.penalty_type == "late_return" and p.loan is not None:
                    p.loan.fine_paid = True

                db.session.flush()
                allocations.append({
                    "penalty_id": p.id,
                    "payment_id": payment.id,
                    "amount_paid": float(slice_amount),
                    "status": p.status,
                    "description": p.description,
                })
                remaining -= slice_amount

            if not allocations:
                raise NotFoundError("No outstanding balance on these penalties")

            ActivityService.record(
                "penalty_payment",
                f"Penalty payment: {amount} FCFA by {user.full_name if user else penalties[0].user_id}",
                {
                    "user_id": penalties[0].user_id,
                    "user_name": user.full_name if user else None,
                    "penalty_ids": ids,
                    "amount_paid": float(amount),
                    "payment_method": payment_method,
                    "processed_by": processed_by,
                    "payments": allocations,
                    "timestamp": datetime.utcnow().isoformat(),
                },
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        if remaining > 0:
            current_app.logger.warning(
                f"[payments] {remaining} FCFA left unapplied for user {user.id if user else '-'}"
            )

        if user:
            MailService.send_payment_confirmation(user, amount, payment_method, today, allocations)

        return {
            "user_id": user.id if user else None,
            "user_name": user.full_name if user else None,
            "user_email": user.email if user else None,
            "total_amount_paid": float(amount),
            "payment_method": payment_method,
            "payment_date": today.isoformat(),
            "penalties_paid": allocations,
            "remaining_amount": float(remaining),
            "force_refresh": True,
        }
