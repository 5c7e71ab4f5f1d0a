from __future__ import annotations

import json
from datetime import datetime

from sigb.extensions import db
from sigb.models.activity import RecentActivity


class ActivityService:
    @staticmethod
    def record(activity_type: str, description: str, details: dict | None = None) -> RecentActivity:
        """Adds the row to the current transaction; the caller commits."""
        row = RecentActivity(
            activity_type=activity_type,
            description=description,
            details=json.dumps(details, default=str) if details is not None else None,
            created_at=datetime.utcnow(),
        )
        db.session.add(row)
        return row
