from typing import Iterable, Optional

RISKY_WEIGHT = 0.5
WIN_WEIGHT = 0.4
LOSS_WEIGHT = 0.3


class RoundOutcome:
    """Winners and totals of a settled round, kept for the next risk score."""

    def __init__(self, round_id: int, total_bets: int, winners: int, profit: float, max_payout: float = 0.0):
        self.round_id = round_id
        self.max_payout = max_payout
        self.total_bets = total_bets
        self.winners = winners
        self.profit = profit

    @property
    def win_ratio(self) -> float:
        if not self.total_bets:
            return 0.0
        return self.winners / self.total_bets


class RiskScorer:
    """Scores how exposed the platform is going into the next round.

    Three signals, weighted 0.5 / 0.4 / 0.3 and clamped to ``[0, 1]``:

    - share of current bets with an auto cash-out at or below ``risky_cashout``
    - win ratio of the previous round
    - recent platform losses, ``|sum(profits)| / loss_normalizer`` capped at 1
    """

    def __init__(self, risky_cashout: float = 1.05, loss_normalizer: float = 500.0):
        self.risky_cashout = risky_cashout
        self.loss_normalizer = loss_normalizer

    def risky_ratio(self, bets) -> float:
        bets = list(bets)
        if not bets:
            return 0.0
        risky = [b for b in bets if b.auto_cashout is not None and b.auto_cashout <= self.risky_cashout]
        return len(risky) / len(bets)

    def loss_ratio(self, recent_profits: Iterable[float]) -> float:
        total = sum(recent_profits)
        if total >= 0:
            return 0.0
        return min(abs(total) / self.loss_normalizer, 1.0)

    def score(self, bets, previous: Optional[RoundOutcome], recent_profits: Iterable[float]) -> float:
        bets = list(bets)
        if not bets:
            return 0.0
        win_ratio = previous.win_ratio if previous else 0.0
        raw = (
            RISKY_WEIGHT * self.risky_ratio(bets)
            + WIN_WEIGHT * win_ratio
            + LOSS_WEIGHT * self.loss_ratio(recent_profits)
        )
        return max(0.0, min(raw, 1.0))
