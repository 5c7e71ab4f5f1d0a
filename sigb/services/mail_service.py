# sigb/services/mail_service.py
from __future__ import annotations

from datetime import datetime
from flask import current_app
from flask_mail import Message

from sigb.extensions import db, mail
from sigb.models.notification_log import NotificationLog


def _fcfa(amount) -> str:
    return f"{float(amount or 0):,.0f} FCFA".replace(",", " ")


class MailService:
    @staticmethod
    def send_email(to_email: str, subject: str, body: str) -> tuple[bool, str | None]:
        """
        return: (success, error_text)
        """
        try:
            msg = Message(subject=subject, recipients=[to_email], body=body)
            mail.send(msg)
            return True, None
        except Exception as e:
            current_app.logger.warning(f"[MailService] Could not send mail to {to_email}: {e}")
            return False, str(e)

    @staticmethod
    def log_notification(
        notif_type: str,
        to_email: str | None,
        message: str,
        success: bool,
        error: str | None = None,
        user_id: int | None = None,
        loan_id: int | None = None,
        penalty_id: int | None = None,
    ) -> NotificationLog:
        row = NotificationLog(
            user_id=user_id,
            loan_id=loan_id,
            penalty_id=penalty_id,
            type=notif_type,
            email=to_email,
            message=message,
            success=bool(success),
            error_message=error,
            sent_at=datetime.utcnow(),
        )
        db.session.add(row)
        db.session.commit()
        return row

    @staticmethod
    def _deliver(notif_type: str, to_email: str | None, subject: str, body: str, **refs) -> bool:
        """Send + log. Never raises: the financial state is already committed when this runs."""
        try:
            if not to_email:
                MailService.log_notification(
                    notif_type, None, "User has no email address", False, error="missing_email", **refs
                )
                return False

            ok, err = MailService.send_email(to_email, subject, body)
            MailService.log_notification(
                notif_type, to_email, "Mail sent" if ok else "Mail not sent", ok, error=err, **refs
            )
            return ok
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning(f"[MailService] {notif_type} notification failed: {e}")
            return False

    @staticmethod
    def send_penalty_created(penalty, user, document_title: str | None, days_late: int | None = None) -> bool:
        if days_late:
            subject = "Bibliothèque UdM : pénalité de retard"
            reason = (
                f"pour le retard de '{document_title or 'document'}' "
                f"({days_late} jour(s) de retard)"
            )
        else:
            subject = "Bibliothèque UdM : nouvelle pénalité"
            reason = f"pour '{document_title}'" if document_title else "sur votre compte"
        body = (
            f"Bonjour {user.full_name},\n\n"
            f"Une pénalité de {_fcfa(penalty.amount_fcfa)} a été enregistrée {reason}.\n"
            f"{penalty.description or ''}\n"
            f"Date limite de paiement : {penalty.due_date}\n\n"
            f"Merci de régulariser votre situation auprès de la bibliothèque.\n"
        )
        return MailService._deliver(
            "penalty_created", user.email, subject, body,
            user_id=user.id, loan_id=penalty.loan_id, penalty_id=penalty.id,
        )

    @staticmethod
    def send_payment_confirmation(user, amount_paid, payment_method: str, payment_date, allocations) -> bool:
        lines = "\n".join(
            f"  - {a['description'] or 'Pénalité #' + str(a['penalty_id'])} : {_fcfa(a['amount_paid'])} ({a['status']})"
            for a in allocations
        )
        subject = "Bibliothèque UdM : confirmation de paiement"
        body = (
            f"Bonjour {user.full_name},\n\n"
            f"Nous confirmons la réception de votre paiement de {_fcfa(amount_paid)} "
            f"({payment_method}) le {payment_date}.\n\n"
            f"Pénalités réglées :\n{lines}\n\n"
            f"Merci.\n"
        )
        return MailService._deliver("payment_confirmation", user.email, subject, body, user_id=user.id)

    @staticmethod
    def send_penalty_waived(penalty, user) -> bool:
        subject = "Bibliothèque UdM : pénalité annulée"
        body = (
            f"Bonjour {user.full_name},\n\n"
            f"La pénalité de {_fcfa(penalty.amount_fcfa)} ({penalty.description or 'retard'}) a été annulée.\n"
            f"Motif : {penalty.waived_reason}\n"
        )
        return MailService._deliver(
            "penalty_waived", user.email, subject, body,
            user_id=user.id, loan_id=penalty.loan_id, penalty_id=penalty.id,
        )
