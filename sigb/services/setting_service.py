# sigb/services/setting_service.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask import current_app

from sigb.extensions import db
from sigb.models.loan import DOCUMENT_TYPES
from sigb.models.penalty_setting import PenaltySetting
from sigb.repositories.penalty_setting_repo import PenaltySettingRepo
from sigb.utils.errors import NotFoundError, ValidationError

# document_type -> (daily_rate, max_penalty, grace_period_days), FCFA
SEED_SETTINGS = {
    "book": (100, 5000, 1),
    "thesis": (200, 10000, 2),
    "memoir": (150, 7500, 1),
    "internship_report": (100, 5000, 1),
}


def _money(value, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, bool) or not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be a number >= 0")
    return amount


def _cap(value) -> Decimal:
    cap = _money(value, "max_penalty")
    if cap <= 0:
        raise ValidationError("max_penalty must be > 0")
    return cap


def _days(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("grace_period_days must be an integer >= 0")
    try:
        days = int(value)
    except (TypeError, ValueError):
        raise ValidationError("grace_period_days must be an integer >= 0")
    if days < 0 or days != Decimal(str(value)):
        raise ValidationError("grace_period_days must be an integer >= 0")
    return days


def _document_type(value) -> str:
    if value not in DOCUMENT_TYPES:
        raise ValidationError(f"document_type must be one of: {', '.join(DOCUMENT_TYPES)}")
    return value


def seed_defaults_as_dicts(document_type: str | None = None) -> list[dict]:
    return [
        {
            "id": None,
            "document_type": t,
            "daily_rate": float(rate),
            "max_penalty": float(cap),
            "grace_period_days": grace,
            "is_active": True,
        }
        for t, (rate, cap, grace) in SEED_SETTINGS.items()
        if document_type is None or t == document_type
    ]


class SettingService:
    @staticmethod
    def list_settings(document_type: str | None = None):
        if document_type:
            _document_type(document_type)
        return PenaltySettingRepo.list_all(document_type)

    @staticmethod
    def upsert(data: dict) -> PenaltySetting:
        if not data.get("document_type") or data.get("daily_rate") is None:
            raise ValidationError("document_type and daily_rate are required")

        doc_type = _document_type(data["document_type"])
        daily_rate = _money(data["daily_rate"], "daily_rate")
        setting = PenaltySettingRepo.get_by_type(doc_type)

        # omitted fields keep the stored value, else the configured default
        config = current_app.config
        if data.get("max_penalty") is not None:
            max_penalty = _cap(data["max_penalty"])
        elif setting is not None:
            max_penalty = setting.max_penalty
        else:
            max_penalty = Decimal(str(config.get("PENALTY_DEFAULT_MAX_PENALTY", 5000)))
        if data.get("grace_period_days") is not None:
            grace = _days(data["grace_period_days"])
        elif setting is not None:
            grace = setting.grace_period_days
        else:
            grace = int(config.get("PENALTY_DEFAULT_GRACE_PERIOD_DAYS", 1))
        is_active = bool(data.get("is_active", True))

        if setting is None:
            setting = PenaltySetting(document_type=doc_type)
            db.session.add(setting)

        setting.daily_rate = daily_rate
        setting.max_penalty = max_penalty
        setting.grace_period_days = grace
        setting.is_active = is_active
        PenaltySettingRepo.update()
        return setting

    @staticmethod
    def _find(setting_id, document_type) -> PenaltySetting:
        if not setting_id and not document_type:
            raise ValidationError("id or document_type is required")
        if setting_id:
            try:
                setting = PenaltySettingRepo.get(int(setting_id))
            except (TypeError, ValueError):
                raise ValidationError("id must be an integer")
        else:
            setting = PenaltySettingRepo.get_by_type(document_type)
        if setting is None:
            raise NotFoundError("Penalty setting not found")
        return setting

    @staticmethod
    def update(data: dict) -> PenaltySetting:
        setting = SettingService._find(data.get("id"), data.get("document_type"))

        if data.get("daily_rate") is not None:
            setting.daily_rate = _money(data["daily_rate"], "daily_rate")
        if data.get("max_penalty") is not None:
            setting.max_penalty = _cap(data["max_penalty"])
        if data.get("grace_period_days") is not None:
            setting.grace_period_days = _days(data["grace_period_days"])
        if data.get("is_active") is not None:
            setting.is_active = bool(data["is_active"])

        PenaltySettingRepo.update()
        return setting

    @staticmethod
    def delete(setting_id=None, document_type=None):
        setting = SettingService._find(setting_id, document_type)
        PenaltySettingRepo.delete(setting)

    @staticmethod
    def seed() -> int:
        """Inserts the seed rate for every document type that has no row. Returns inserted count."""
        created = 0
        for doc_type, (rate, cap, grace) in SEED_SETTINGS.items():
            if PenaltySettingRepo.get_by_type(doc_type) is not None:
                continue
            db.session.add(PenaltySetting(
                document_type=doc_type,
                daily_rate=rate,
                max_penalty=cap,
                grace_period_days=grace,
                is_active=True,
            ))
            created += 1
        db.session.commit()
        return created
