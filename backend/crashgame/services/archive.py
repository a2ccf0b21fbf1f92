import time

from crashgame import db
from crashgame.models import RoundRecord


class RoundArchive:
    """Stores the fairness proof of every crashed round."""

    def __init__(self, app):
        self.app = app

    def record(self, round_, outcome) -> int:
        with self.app.app_context():
            record = RoundRecord(
                round_index=round_.id,
                server_seed=round_.server_seed,
                seed_digest=round_.seed_digest,
                tier=round_.tier,
                scaling_factor=round_.scaling_factor,
                risk_score=round_.risk_score,
                bet_count=round_.bet_count,
                crash_point=round_.crash_point,
                max_payout=outcome.max_payout,
                profit=outcome.profit,
                crashed_at=time.time(),
            )
            try:
                db.session.add(record)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            return record.id

    def recent(self, limit: int = 20):
        with self.app.app_context():
            rows = RoundRecord.query.order_by(RoundRecord.id.desc()).limit(limit).all()
            return [row.to_dict() for row in rows]

    def get(self, record_id: int):
        with self.app.app_context():
            row = db.session.get(RoundRecord, record_id)
            return row.to_dict() if row else None
