import logging
import threading
from collections import deque
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .rounds import Payout, to_money
from .risk import RoundOutcome


class SettlementEngine:
    """Moves money on the account ledger and keeps the per-round aggregates.

    All ledger traffic of the round engine goes through here: bet debits,
    cancellation refunds, cash-out credits and the balance refresh after a
    crash. It also owns the payout history (scaling factor input) and the
    rolling platform profit window (risk input).

    Payouts whose credit fails are queued and retried by
    :meth:`retry_unpaid` until the ledger accepts them.
    """

    def __init__(self, accounts, history_size: int = 10, profit_window: int = 10, logger=None):
        self.accounts = accounts
        self.payout_history = deque(maxlen=history_size)
        self.round_profits = deque(maxlen=profit_window)
        self.last_outcome: Optional[RoundOutcome] = None
        self.logger = logger or logging.getLogger(__name__)
        self._balances: Dict[str, Decimal] = {}
        self._balances_lock = threading.Lock()
        self._unpaid: List[Payout] = []

    # ---- ledger calls ----

    def _remember(self, account: str, balance) -> Decimal:
        balance = to_money(balance)
        with self._balances_lock:
            self._balances[account] = balance
        return balance

    def debit(self, account: str, amount: Decimal) -> Decimal:
        return self._remember(account, self.accounts.adjust_balance(account, -amount))

    def refund(self, account: str, amount: Decimal) -> Decimal:
        balance = self._remember(account, self.accounts.adjust_balance(account, amount))
        self.logger.info(f"[refund] account={account} amount={amount} balance={balance}")
        return balance

    def credit(self, payout: Payout) -> Decimal:
        try:
            balance = self.accounts.adjust_balance(payout.player_id, payout.amount)
        except Exception:
            self.logger.exception(
                f"[credit-failed] round={payout.round_id} account={payout.player_id} amount={payout.amount}"
            )
            raise
        self.logger.info(
            f"[cashout] round={payout.round_id} account={payout.player_id} x{payout.multiplier} amount={payout.amount}"
        )
        return self._remember(payout.player_id, balance)

    def credit_all(self, payouts: Iterable[Payout]) -> List[Payout]:
        """Credit each payout independently; returns the ones that failed.

        Failed payouts are queued for :meth:`retry_unpaid`.
        """
        failed = []
        for payout in payouts:
            try:
                self.credit(payout)
            except Exception:
                self.defer(payout)
                failed.append(payout)
        return failed

    def defer(self, payout: Payout) -> None:
        with self._balances_lock:
            self._unpaid.append(payout)
        self.logger.warning(f"[credit-queued] {payout!r}")

    @property
    def unpaid(self) -> List[Payout]:
        with self._balances_lock:
            return list(self._unpaid)

    def retry_unpaid(self) -> List[Payout]:
        """Credit the queued payouts again; returns the ones that went through."""
        with self._balances_lock:
            queued, self._unpaid = self._unpaid, []
        failed = self.credit_all(queued)
        return [payout for payout in queued if payout not in failed]

    def refresh_balances(self, accounts: Iterable[str]) -> Dict[str, Decimal]:
        for account in accounts:
            try:
                self._remember(account, self.accounts.get_balance(account))
            except Exception:
                self.logger.exception(f"[balance-refresh-failed] account={account}")
        return self.balances

    @property
    def balances(self) -> Dict[str, Decimal]:
        with self._balances_lock:
            return dict(self._balances)

    def forget(self, account: str) -> None:
        with self._balances_lock:
            self._balances.pop(account, None)

    # ---- crash settlement ----

    def settle_crash(self, round_, bets) -> RoundOutcome:
        """Force-settle every open bet at 0 and record the round aggregates.

        Caller holds the engine lock.
        """
        bets = list(bets)
        for bet in bets:
            if not bet.cashed_out:
                bet.settle(0)
        max_payout = max([b.cashout_multiplier or 0 for b in bets] + [0])
        self.payout_history.append(max_payout)

        wagered = sum((b.amount for b in bets), Decimal('0.00'))
        paid = sum((b.payout for b in bets), Decimal('0.00'))
        profit = float(wagered - paid)
        self.round_profits.append(profit)

        winners = len([b for b in bets if b.cashout_multiplier])
        outcome = RoundOutcome(round_.id, len(bets), winners, profit, max_payout)
        self.last_outcome = outcome
        self.logger.info(
            f"[settle] round={round_.id} bets={len(bets)} winners={winners} max_payout={max_payout} profit={profit:.2f}"
        )
        return outcome

    def recent_payouts(self) -> List[float]:
        return list(self.payout_history)
