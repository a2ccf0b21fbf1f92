"""Provably fair crash point generation.

A round's crash point is a pure function of its server seed, its quota
tier, the payout scaling factor and the risk score (plus the bet count,
which switches the risk punishment on). The seed stays secret until the
round crashes; afterwards the seed, its SHA-256 digest and the other inputs
are published so anyone can rerun :func:`verify_crash_point` and get the
exact value the engine used.
"""

import hashlib
import secrets
from typing import Iterable, Optional

LOW = 'low'
MID = 'mid'
HIGH = 'high'
TIERS = (LOW, MID, HIGH)

HASH_HEX_CHARS = 8
HASH_PRECISION = 2 ** 32
MIN_CRASH_POINT = 1.01

# Tier ranges
LOW_FLOOR = 1.01
LOW_CEILING = 1.90
LOW_TAIL_START = 0.9
LOW_TAIL_CEILING = 2.00
MID_FLOOR = 2.0
MID_SPAN = 3.0
HIGH_FLOOR = 5.0
HIGH_SPAN = 35.0


class PunishmentPolicy:
    """Dampens crash points while aggregate platform risk is high.

    Above ``threshold`` the crash point is multiplied by
    ``1 - (risk_score - threshold) * slope``. Rounds without bets are never
    punished.
    """

    def __init__(self, threshold: float = 0.6, slope: float = 0.7):
        self.threshold = threshold
        self.slope = slope

    def multiplier(self, risk_score: float, bet_count: int) -> float:
        if bet_count <= 0 or risk_score <= self.threshold:
            return 1.0
        return 1 - (risk_score - self.threshold) * self.slope

    def to_dict(self):
        return {'threshold': self.threshold, 'slope': self.slope}


DEFAULT_POLICY = PunishmentPolicy()


def generate_seed() -> str:
    return secrets.token_hex(32)


def seed_digest(server_seed: str) -> str:
    return hashlib.sha256(server_seed.encode('utf-8')).hexdigest()


def hash_to_unit(server_seed: str, client_seed: str = '', nonce: Optional[int] = None) -> float:
    """Map the seed (and optional client seed / nonce) to ``[0, 1)``."""
    message = server_seed + (client_seed or '') + ('' if nonce is None else str(nonce))
    digest = hashlib.sha256(message.encode('utf-8')).hexdigest()
    return int(digest[:HASH_HEX_CHARS], 16) / HASH_PRECISION


def tier_base(tier: str, position: float) -> float:
    if tier == LOW:
        if position < LOW_TAIL_START:
            return LOW_FLOOR + (position / LOW_TAIL_START) * (LOW_CEILING - LOW_FLOOR)
        return LOW_CEILING + ((position - LOW_TAIL_START) / (1 - LOW_TAIL_START)) * (LOW_TAIL_CEILING - LOW_CEILING)
    if tier == MID:
        return MID_FLOOR + position * MID_SPAN
    if tier == HIGH:
        return HIGH_FLOOR + HIGH_SPAN * position ** 2
    raise ValueError(f"unknown quota tier: {tier!r}")


def compute_crash_point(
    tier: str,
    server_seed: str,
    scaling_factor: float = 1.0,
    risk_score: float = 0.0,
    bet_count: int = 0,
    client_seed: str = '',
    nonce: Optional[int] = None,
    policy: PunishmentPolicy = DEFAULT_POLICY,
) -> float:
    if scaling_factor <= 0:
        raise ValueError('scaling factor must be positive')
    h = hash_to_unit(server_seed, client_seed, nonce)
    position = min(h / scaling_factor, 1.0)
    base = tier_base(tier, position)
    punished = base * policy.multiplier(risk_score, bet_count)
    return max(MIN_CRASH_POINT, round(punished, 2))


def verify_crash_point(
    server_seed: str,
    client_seed: str = '',
    nonce: Optional[int] = None,
    *,
    tier: str,
    scaling_factor: float = 1.0,
    risk_score: float = 0.0,
    bet_count: int = 0,
    policy: PunishmentPolicy = DEFAULT_POLICY,
) -> float:
    """Recompute a revealed round.

    Runs exactly the generator the engine runs, so the tier and risk terms
    from the round's published proof must be supplied.
    """
    return compute_crash_point(
        tier,
        server_seed,
        scaling_factor=scaling_factor,
        risk_score=risk_score,
        bet_count=bet_count,
        client_seed=client_seed,
        nonce=nonce,
        policy=policy,
    )


def calculate_scaling_factor(recent_payouts: Iterable[float]) -> float:
    payouts = list(recent_payouts)
    if not payouts:
        return 1.0
    average = sum(payouts) / len(payouts)
    if average > 3:
        return 1.2
    if average < 1.5:
        return 0.9
    return 1.0


class CrashPointGenerator:
    """Seed source plus crash point formula, swappable in tests."""

    def __init__(self, policy: Optional[PunishmentPolicy] = None, seed_source=generate_seed):
        self.policy = policy or DEFAULT_POLICY
        self.seed_source = seed_source

    def generate_seed(self) -> str:
        return self.seed_source()

    def compute(self, tier: str, server_seed: str, scaling_factor: float, risk_score: float, bet_count: int) -> float:
        return compute_crash_point(
            tier,
            server_seed,
            scaling_factor=scaling_factor,
            risk_score=risk_score,
            bet_count=bet_count,
            policy=self.policy,
        )
