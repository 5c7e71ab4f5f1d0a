# sigb/services/rate_service.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

from sigb.repositories.penalty_setting_repo import PenaltySettingRepo


@dataclass(frozen=True)
class PenaltyDefaults:
    """Rate used for a document type with no active penalty_settings row."""

    daily_rate: Decimal = Decimal("100")
    max_penalty: Decimal = Decimal("5000")
    grace_period_days: int = 1

    @classmethod
    def from_config(cls, config) -> "PenaltyDefaults":
        return cls(
            daily_rate=Decimal(str(config.get("PENALTY_DEFAULT_DAILY_RATE", 100))),
            max_penalty=Decimal(str(config.get("PENALTY_DEFAULT_MAX_PENALTY", 5000))),
            grace_period_days=int(config.get("PENALTY_DEFAULT_GRACE_PERIOD_DAYS", 1)),
        )


@dataclass(frozen=True)
class PenaltyRate:
    document_type: str
    daily_rate: Decimal
    max_penalty: Decimal
    grace_period_days: int
    is_default: bool = False


class RateService:
    def __init__(self, defaults: PenaltyDefaults | None = None):
        self._defaults = defaults

    @property
    def defaults(self) -> PenaltyDefaults:
        if self._defaults is None:
            self._defaults = PenaltyDefaults.from_config(current_app.config)
        return self._defaults

    def resolve(self, document_type: str | None) -> PenaltyRate:
        document_type = document_type or "book"
        setting = PenaltySettingRepo.active_for(document_type)

        if setting is None:
            d = self.defaults
            current_app.logger.warning(
                f"[rates] No active penalty setting for '{document_type}', "
                f"using defaults daily_rate={d.daily_rate} max_penalty={d.max_penalty} "
                f"grace_period_days={d.grace_period_days}"
            )
            return PenaltyRate(
                document_type=document_type,
                daily_rate=d.daily_rate,
                max_penalty=d.max_penalty,
                grace_period_days=d.grace_period_days,
                is_default=True,
            )

        return PenaltyRate(
            document_type=document_type,
            daily_rate=Decimal(str(setting.daily_rate)),
            max_penalty=Decimal(str(setting.max_penalty)),
            grace_period_days=int(setting.grace_period_days or 0),
        )

    def resolve_many(self, document_types) -> dict[str, PenaltyRate]:
        return {t: self.resolve(t) for t in set(t or "book" for t in document_types)}


def days_overdue(due_date, today) -> int:
    if not due_date or due_date >= today:
        return 0
    return (today - due_date).days


def effective_days_overdue(days: int, grace_period_days: int) -> int:
    return max(0, days - grace_period_days)


def capped_fine(days: int, rate: PenaltyRate) -> Decimal:
    """Fine for `days` overdue days: billed days after grace times the daily rate, capped at max_penalty."""
    billed = effective_days_overdue(days, rate.grace_period_days)
    if billed <= 0:
        return Decimal("0")
    return min(rate.daily_rate * billed, rate.max_penalty)
