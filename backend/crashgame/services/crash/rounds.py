from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from .errors import ValidationError

WAITING = 'waiting'
RUNNING = 'running'
CRASHED = 'crashed'

CENTS = Decimal('0.01')


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_amount(value) -> Decimal:
    """Parse a bet amount into a positive two-place Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValidationError('Bet amount is required')
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError('Invalid bet amount')
    if not amount.is_finite() or amount <= 0:
        raise ValidationError('Bet amount must be positive')
    if amount != amount.quantize(CENTS):
        raise ValidationError('Bet amount supports at most two decimal places')
    return amount.quantize(CENTS)


def parse_threshold(value) -> Optional[float]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError('Invalid auto cashout value')
    try:
        threshold = float(value)
    except (TypeError, ValueError):
        raise ValidationError('Invalid auto cashout value')
    if threshold != threshold or threshold <= 1.0:
        raise ValidationError('Auto cashout must be > 1.00x')
    return threshold


class Player:
    """A connected player: stable identity plus the transport handle to reach them."""

    def __init__(self, id: str, connection_ref: Optional[str] = None):
        self.id = id
        self.connection_ref = connection_ref

    def __eq__(self, other):
        return isinstance(other, Player) and other.id == self.id and other.connection_ref == self.connection_ref

    def __hash__(self):
        return hash((self.id, self.connection_ref))

    def __repr__(self):
        return f"Player(id={self.id!r}, connection_ref={self.connection_ref!r})"


class Bet:
    def __init__(self, player_id: str, amount: Decimal, auto_cashout: Optional[float] = None):
        self.player_id = player_id
        self.amount = amount
        self.auto_cashout = auto_cashout
        self.cashed_out = False
        self.cashout_multiplier: Optional[float] = None

    def settle(self, multiplier: float) -> Decimal:
        """Flip the bet to cashed out at ``multiplier`` and return the payout.

        A multiplier of 0 is a forced loss. Settling twice is a programming
        error, callers check ``cashed_out`` first.
        """
        if self.cashed_out:
            raise ValidationError('Bet already cashed out')
        self.cashed_out = True
        self.cashout_multiplier = multiplier
        return self.payout

    def reopen(self) -> None:
        """Undo a cash-out whose credit never reached the ledger."""
        self.cashed_out = False
        self.cashout_multiplier = None

    @property
    def payout(self) -> Decimal:
        if not self.cashed_out or not self.cashout_multiplier:
            return Decimal('0.00')
        return to_money(self.amount * Decimal(str(self.cashout_multiplier)))

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'amount': float(self.amount),
            'auto_cashout': self.auto_cashout,
            'cashed_out': self.cashed_out,
            'cashout_multiplier': self.cashout_multiplier if self.cashed_out else None,
        }


class Payout:
    """A cash-out that still has to be credited on the account ledger."""

    def __init__(self, round_id: int, player_id: str, amount: Decimal, multiplier: float):
        self.round_id = round_id
        self.player_id = player_id
        self.amount = amount
        self.multiplier = multiplier

    def __repr__(self):
        return f"Payout(round={self.round_id}, player={self.player_id!r}, amount={self.amount}, x{self.multiplier})"


class Round:
    """One crash round. Replaced, never reused, when a new WAITING phase begins."""

    def __init__(self, id: int, countdown: int = 5):
        self.id = id
        self.phase = WAITING
        self.multiplier = 1.0
        self.countdown = countdown
        self.tier: Optional[str] = None
        self.server_seed: Optional[str] = None
        self.seed_digest: Optional[str] = None
        self.scaling_factor: Optional[float] = None
        self.risk_score: Optional[float] = None
        self.bet_count = 0
        self._crash_point: Optional[float] = None

    @property
    def crash_point(self) -> Optional[float]:
        return self._crash_point

    @crash_point.setter
    def crash_point(self, value: float) -> None:
        if self._crash_point is not None:
            raise ValueError(f"crash point of round {self.id} is already fixed")
        self._crash_point = value

    def advance(self, step: float = 0.01) -> float:
        self.multiplier = round(self.multiplier + step, 2)
        return self.multiplier

    def proof(self):
        """Inputs a third party needs to recompute this round's crash point."""
        return {
            'round_id': self.id,
            'server_seed': self.server_seed,
            'seed_digest': self.seed_digest,
            'tier': self.tier,
            'scaling_factor': self.scaling_factor,
            'risk_score': self.risk_score,
            'bet_count': self.bet_count,
            'crash_point': self.crash_point,
        }
