import logging
import threading
from typing import Dict, List, Optional, Tuple

from .bets import BetLedger
from .errors import TimerInvariantViolation, ValidationError
from .fairness import CrashPointGenerator, calculate_scaling_factor, seed_digest
from .quota import QuotaPool
from .risk import RiskScorer
from .rounds import CRASHED, RUNNING, WAITING, Bet, Payout, Player, Round
from .settlement import SettlementEngine


def next_transition(round_: Optional[Round], countdown_tick: float = 1.0, running_tick: float = 0.1) -> Tuple[str, float]:
    """Return the phase step to run next and the delay before running it.

    WAITING counts down once per ``countdown_tick`` and starts the round on
    the tick after the countdown reaches 1. RUNNING ticks every
    ``running_tick``; the crash itself happens inside the tick that reaches
    the crash point. CRASHED moves straight on to a fresh WAITING round.
    """
    if round_ is None or round_.phase == CRASHED:
        return WAITING, 0.0
    if round_.phase == WAITING:
        return (WAITING if round_.countdown > 1 else RUNNING), countdown_tick
    return RUNNING, running_tick


class _TimerToken:
    def __init__(self, round_id: int, phase: str, target: str):
        self.round_id = round_id
        self.phase = phase
        self.target = target

    def __repr__(self):
        return f"round={self.round_id} phase={self.phase} target={self.target}"


class RoundEngine:
    """Single authority over the active round and its bets.

    Timer callbacks and player commands both take ``self.lock``; ledger I/O
    runs with the lock released (see :class:`BetLedger`), except in the crash
    step, which credits the last tick's cash-outs and refreshes balances
    before the crash snapshot. Every mutation and every tick ends with a
    snapshot pushed to the transport while the lock is still held, so each
    client sees snapshots in round order.
    """

    def __init__(
        self,
        accounts,
        transport,
        scheduler,
        generator: Optional[CrashPointGenerator] = None,
        quota_pool: Optional[QuotaPool] = None,
        risk_scorer: Optional[RiskScorer] = None,
        archive=None,
        logger=None,
        countdown: int = 5,
        countdown_tick: float = 1.0,
        running_tick: float = 0.1,
        multiplier_step: float = 0.01,
        history_size: int = 10,
        profit_window: int = 10,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.lock = threading.RLock()
        self.transport = transport
        self.scheduler = scheduler
        self.generator = generator or CrashPointGenerator()
        self.quota_pool = quota_pool or QuotaPool()
        self.risk_scorer = risk_scorer or RiskScorer()
        self.archive = archive
        self.countdown = countdown
        self.countdown_tick = countdown_tick
        self.running_tick = running_tick
        self.multiplier_step = multiplier_step
        self.settlement = SettlementEngine(accounts, history_size, profit_window, self.logger)
        self.bets = BetLedger(self.settlement, self.lock, self.logger)
        self.round: Optional[Round] = None
        self._next_round_id = 0
        self._timer = None
        self._token: Optional[_TimerToken] = None
        self._players: Dict[str, Player] = {}
        self._deferred: List[Payout] = []

    # ---- lifecycle ----

    @property
    def started(self) -> bool:
        return self.round is not None

    def start(self) -> None:
        with self.lock:
            if self.round is not None:
                self.logger.info(f"[engine-start-skip] round={self.round.id} already running")
                return
            self.logger.info('[engine-start]')
            self._run(WAITING)

    def stop(self) -> None:
        with self.lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._token = None
            self.logger.info('[engine-stop]')

    def _arm(self, delay: float, target: str) -> None:
        if self._timer is not None and self._timer.pending:
            self.logger.warning(f"[timer-replace] cancelling pending timer {self._token}")
            self._timer.cancel()
        token = _TimerToken(self.round.id, self.round.phase, target)
        self._token = token
        self._timer = self.scheduler.after(delay, lambda: self._on_timer(token))

    def _check_token(self, token: _TimerToken) -> None:
        round_ = self.round
        if token is not self._token:
            raise TimerInvariantViolation(f"stale timer fired ({token}), active timer is ({self._token})")
        if round_ is None or round_.id != token.round_id or round_.phase != token.phase:
            actual = f"round={round_.id} phase={round_.phase}" if round_ else 'no round'
            raise TimerInvariantViolation(f"timer for ({token}) fired during {actual}")

    def _on_timer(self, token: _TimerToken) -> None:
        with self.lock:
            try:
                self._check_token(token)
            except TimerInvariantViolation as exc:
                self.logger.error(f"[timer-abort] {exc}")
                return
            self._timer = None
            self._token = None
            try:
                self._run(token.target)
            except Exception:
                self.logger.exception(f"[engine-error] step {token} failed")
                self._resume()
            payouts, self._deferred = self._deferred, []
        paid = self._credit(payouts)
        if token.target == WAITING and self.settlement.unpaid:
            paid += self.settlement.retry_unpaid()
        if paid:
            self.broadcast()

    def _credit(self, payouts: List[Payout]) -> List[Payout]:
        failed = self.settlement.credit_all(payouts)
        for payout in failed:
            self.logger.error(f"[auto-cashout-uncredited] {payout!r}")
        return [payout for payout in payouts if payout not in failed]

    def _resume(self) -> None:
        if self._timer is not None and self._timer.pending:
            return
        target, delay = next_transition(self.round, self.countdown_tick, self.running_tick)
        self._arm(max(delay, self.running_tick), target)

    def _run(self, target: str) -> None:
        while True:
            self._apply(target)
            self._broadcast()
            target, delay = next_transition(self.round, self.countdown_tick, self.running_tick)
            if delay > 0:
                self._arm(delay, target)
                return

    def _apply(self, target: str) -> None:
        current = self.round.phase if self.round else None
        if target == WAITING and current in (None, CRASHED):
            self._enter_waiting()
        elif target == WAITING and current == WAITING:
            self.round.countdown -= 1
        elif target == RUNNING and current == WAITING:
            self._enter_running()
        elif target == RUNNING and current == RUNNING:
            self._tick()
        else:
            raise TimerInvariantViolation(f"no transition from {current} to {target}")

    # ---- phases ----

    def _enter_waiting(self) -> None:
        round_ = Round(self._next_round_id, countdown=self.countdown)
        self._next_round_id += 1
        self.round = round_
        self.bets.reset(round_)
        connected = set(self.connected_ids())
        for account in self.settlement.balances:
            if account not in connected:
                self.settlement.forget(account)
        self.logger.info(f"[round-waiting] round={round_.id} countdown={round_.countdown}")

    def _enter_running(self) -> None:
        round_ = self.round
        bets = self.bets.bets
        tier = self.quota_pool.tier_for(round_.id)
        scaling = calculate_scaling_factor(self.settlement.recent_payouts())
        risk = self.risk_scorer.score(bets, self.settlement.last_outcome, self.settlement.round_profits)
        seed = self.generator.generate_seed()

        round_.tier = tier
        round_.server_seed = seed
        round_.seed_digest = seed_digest(seed)
        round_.scaling_factor = scaling
        round_.risk_score = risk
        round_.bet_count = len(bets)
        round_.crash_point = self.generator.compute(tier, seed, scaling, risk, len(bets))
        round_.phase = RUNNING
        round_.countdown = 0
        self.logger.info(
            f"[round-start] round={round_.id} tier={tier} bets={len(bets)} scaling={scaling} "
            f"risk={risk:.3f} digest={round_.seed_digest}"
        )

    def _tick(self) -> None:
        round_ = self.round
        multiplier = round_.advance(self.multiplier_step)
        self._deferred.extend(self.bets.sweep_auto_cashouts(multiplier))
        if multiplier >= round_.crash_point:
            # Final-tick cash-outs land on the ledger before the crash snapshot.
            payouts, self._deferred = self._deferred, []
            self._credit(payouts)
            self._crash()

    def _crash(self) -> None:
        round_ = self.round
        round_.phase = CRASHED
        outcome = self.settlement.settle_crash(round_, self.bets.bets)
        self.settlement.refresh_balances(self.connected_ids())
        self.logger.info(
            f"[round-crash] round={round_.id} crash_point={round_.crash_point} tier={round_.tier} "
            f"seed={round_.server_seed}"
        )
        if self.archive is not None:
            try:
                self.archive.record(round_, outcome)
            except Exception:
                self.logger.exception(f"[archive-failed] round={round_.id}")

    # ---- players ----

    def connect(self, player: Player):
        """Register a connected player and load their balance."""
        with self.lock:
            self._players[player.connection_ref or player.id] = player
        return self.settlement.refresh_balances([player.id]).get(player.id)

    def disconnect(self, player: Player) -> None:
        with self.lock:
            self._players.pop(player.connection_ref or player.id, None)
            if player.id in self.connected_ids() or self.bets.get(player.id) is not None:
                return
            self.settlement.forget(player.id)

    def connected_ids(self) -> List[str]:
        with self.lock:
            return sorted({p.id for p in self._players.values()})

    def _require_player(self, player: Player) -> None:
        with self.lock:
            if self._players.get(player.connection_ref or player.id) is None:
                raise ValidationError('Unknown player')

    # ---- commands ----

    def place_bet(self, player: Player, amount, auto_cashout=None) -> Bet:
        self._require_player(player)
        bet = self.bets.place_bet(player.id, amount, auto_cashout)
        self.broadcast()
        return bet

    def cancel_bet(self, player: Player) -> Bet:
        self._require_player(player)
        bet = self.bets.cancel_bet(player.id)
        self.broadcast()
        return bet

    def cash_out(self, player: Player) -> Payout:
        self._require_player(player)
        payout = self.bets.cash_out(player.id)
        self.broadcast()
        return payout

    # ---- snapshots ----

    def recent_payouts(self) -> List[float]:
        return self.settlement.recent_payouts()

    def snapshot(self) -> dict:
        with self.lock:
            round_ = self.round
            if round_ is None:
                return {'round_id': None, 'phase': None, 'multiplier': 1.0, 'crash_point': None,
                        'countdown': 0, 'bets': [], 'balances': {}}
            connected = set(self.connected_ids())
            data = {
                'round_id': round_.id,
                'phase': round_.phase,
                'multiplier': round_.multiplier,
                'crash_point': round_.crash_point if round_.phase == CRASHED else None,
                'countdown': round_.countdown if round_.phase == WAITING else 0,
                'bets': [bet.to_dict() for bet in self.bets.bets],
                'balances': {
                    account: float(balance)
                    for account, balance in self.settlement.balances.items()
                    if account in connected
                },
            }
            if round_.phase == CRASHED:
                proof = round_.proof()
                proof.pop('round_id')
                proof.pop('crash_point')
                data.update(proof)
            return data

    def _broadcast(self) -> None:
        self.transport.broadcast(self.snapshot())

    def broadcast(self) -> None:
        with self.lock:
            self._broadcast()
