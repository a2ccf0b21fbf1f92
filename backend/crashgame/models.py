from crashgame import db
from decimal import Decimal
import time


class Account(db.Model):
    __tablename__ = 'crash_account'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    balance = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('1000.00'))

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'balance': float(self.balance),
        }


class RoundRecord(db.Model):
    """Published fairness proof of a crashed round."""
    __tablename__ = 'crash_round'
    id = db.Column(db.Integer, primary_key=True)
    round_index = db.Column(db.Integer, nullable=False, index=True)  # restarts at 0 with the engine
    server_seed = db.Column(db.String(64), nullable=False)
    seed_digest = db.Column(db.String(64), nullable=False, index=True)
    tier = db.Column(db.String(8), nullable=False)
    scaling_factor = db.Column(db.Float, nullable=False)
    risk_score = db.Column(db.Float, nullable=False)
    bet_count = db.Column(db.Integer, nullable=False, default=0)
    crash_point = db.Column(db.Float, nullable=False)
    max_payout = db.Column(db.Float, nullable=False, default=0.0)
    profit = db.Column(db.Float, nullable=False, default=0.0)
    crashed_at = db.Column(db.Float, nullable=False, default=time.time)

    def proof(self):
        return {
            'server_seed': self.server_seed,
            'tier': self.tier,
            'scaling_factor': self.scaling_factor,
            'risk_score': self.risk_score,
            'bet_count': self.bet_count,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'round_id': self.round_index,
            'server_seed': self.server_seed,
            'seed_digest': self.seed_digest,
            'tier': self.tier,
            'scaling_factor': self.scaling_factor,
            'risk_score': self.risk_score,
            'bet_count': self.bet_count,
            'crash_point': self.crash_point,
            'max_payout': self.max_payout,
            'profit': self.profit,
            'crashed_at': self.crashed_at,
        }
