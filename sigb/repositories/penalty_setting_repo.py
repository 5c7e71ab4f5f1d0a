from __future__ import annotations

from sigb.extensions import db
from sigb.models.penalty_setting import PenaltySetting

class PenaltySettingRepo:
    @staticmethod
    def active_for(document_type: str):
        # duplicates: the oldest active row wins
        return (
            PenaltySetting.query
            .filter_by(document_type=document_type, is_active=True)
            .order_by(PenaltySetting.id.asc())
            .first()
        )

    @staticmethod
    def list_all(document_type: str | None = None):
        q = PenaltySetting.query
        if document_type:
            q = q.filter_by(document_type=document_type)
        return q.order_by(PenaltySetting.document_type.asc(), PenaltySetting.id.asc()).all()

    @staticmethod
    def get(setting_id: int):
        return db.session.get(PenaltySetting, setting_id)

    @staticmethod
    def get_by_type(document_type: str):
        return (
            PenaltySetting.query
            .filter_by(document_type=document_type)
            .order_by(PenaltySetting.id.asc())
            .first()
        )

    @staticmethod
    def update():
        db.session.commit()

    @staticmethod
    def delete(setting: PenaltySetting):
        db.session.delete(setting)
        db.session.commit()
