import logging
import threading
from typing import Dict, List, Optional, Set

from .errors import InsufficientFunds, ValidationError
from .rounds import RUNNING, WAITING, Bet, Payout, Round, parse_amount, parse_threshold


class BetLedger:
    """Bets of the active round and the rules for changing them.

    State changes happen under ``lock`` (shared with the round engine).
    Ledger calls go through the settlement engine with the lock released,
    then the round is re-checked before the result is applied.
    """

    def __init__(self, settlement, lock: Optional[threading.RLock] = None, logger=None):
        self.settlement = settlement
        self.lock = lock or threading.RLock()
        self.logger = logger or logging.getLogger(__name__)
        self.round: Optional[Round] = None
        self._bets: Dict[str, Bet] = {}
        self._pending: Set[str] = set()

    def reset(self, round_: Round) -> None:
        with self.lock:
            self.round = round_
            self._bets = {}
            self._pending = set()

    @property
    def bets(self) -> List[Bet]:
        with self.lock:
            return list(self._bets.values())

    def get(self, player_id: str) -> Optional[Bet]:
        with self.lock:
            return self._bets.get(player_id)

    def _require_phase(self, phase: str, action: str) -> Round:
        round_ = self.round
        if round_ is None or round_.phase != phase:
            current = round_.phase if round_ else 'idle'
            raise ValidationError(f"Cannot {action} while the round is {current}")
        return round_

    def place_bet(self, player_id: str, amount, auto_cashout=None) -> Bet:
        amount = parse_amount(amount)
        threshold = parse_threshold(auto_cashout)
        with self.lock:
            round_ = self._require_phase(WAITING, 'place a bet')
            if player_id in self._bets or player_id in self._pending:
                raise ValidationError('You have already placed a bet for this round')
            self._pending.add(player_id)

        try:
            self.settlement.debit(player_id, amount)
        except InsufficientFunds as exc:
            with self.lock:
                self._pending.discard(player_id)
            raise ValidationError('Insufficient balance') from exc
        except Exception:
            with self.lock:
                self._pending.discard(player_id)
            raise

        with self.lock:
            self._pending.discard(player_id)
            if self.round is round_ and round_.phase == WAITING:
                bet = Bet(player_id, amount, threshold)
                self._bets[player_id] = bet
                self.logger.info(f"[bet] round={round_.id} player={player_id} amount={amount} auto={threshold}")
                return bet

        # Betting closed while the debit was in flight.
        self.settlement.refund(player_id, amount)
        self.logger.warning(f"[bet-late] round={round_.id} player={player_id} refunded={amount}")
        raise ValidationError('Betting closed before the bet was accepted')

    def cancel_bet(self, player_id: str) -> Bet:
        with self.lock:
            round_ = self._require_phase(WAITING, 'cancel a bet')
            bet = self._bets.get(player_id)
            if bet is None:
                raise ValidationError('No bet to cancel')
            if bet.cashed_out:
                raise ValidationError('Bet already cashed out')
            del self._bets[player_id]
            self.logger.info(f"[bet-cancel] round={round_.id} player={player_id} amount={bet.amount}")
        self.settlement.refund(player_id, bet.amount)
        return bet

    def _claim(self, round_: Round, bet: Bet, multiplier: float) -> Payout:
        amount = bet.settle(multiplier)
        return Payout(round_.id, bet.player_id, amount, multiplier)

    def cash_out(self, player_id: str) -> Payout:
        with self.lock:
            round_ = self._require_phase(RUNNING, 'cash out')
            bet = self._bets.get(player_id)
            if bet is None:
                raise ValidationError('No active bet this round')
            if bet.cashed_out:
                raise ValidationError('Bet already cashed out')
            payout = self._claim(round_, bet, round_.multiplier)
        try:
            self.settlement.credit(payout)
        except Exception as exc:
            with self.lock:
                if self.round is round_ and round_.phase == RUNNING:
                    bet.reopen()
                    raise ValidationError('Cash out failed, please try again') from exc
            # The round crashed meanwhile, so the claim stands and is paid later.
            self.settlement.defer(payout)
        return payout

    def sweep_auto_cashouts(self, multiplier: float) -> List[Payout]:
        """Cash out every armed bet whose threshold has been reached.

        Runs inside the engine tick with the lock held; the returned payouts
        are credited once the tick releases the lock.
        """
        with self.lock:
            round_ = self._require_phase(RUNNING, 'cash out')
            payouts = []
            for bet in self._bets.values():
                if bet.cashed_out or bet.auto_cashout is None:
                    continue
                if multiplier >= bet.auto_cashout:
                    payouts.append(self._claim(round_, bet, multiplier))
            return payouts
