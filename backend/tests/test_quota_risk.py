import random
from collections import Counter
from decimal import Decimal

import pytest

from crashgame.services.crash.quota import QuotaPool
from crashgame.services.crash.risk import RiskScorer, RoundOutcome
from crashgame.services.crash.rounds import Bet


def _bet(player, auto=None):
    return Bet(player, Decimal('10.00'), auto)


def test_quota_pool_composition():
    pool = QuotaPool(random.Random(1))
    for _ in range(25):
        assert Counter(pool.generate()) == Counter({'low': 6, 'mid': 3, 'high': 1})


def test_quota_pool_regenerates_at_round_ten():
    pool = QuotaPool(random.Random(3))
    first = [pool.tier_for(i) for i in range(10)]
    assert pool.generation == 1
    second = [pool.tier_for(i) for i in range(10, 20)]
    assert pool.generation == 2
    assert Counter(first) == Counter(second) == Counter({'low': 6, 'mid': 3, 'high': 1})


def test_quota_pool_generates_lazily_mid_window():
    pool = QuotaPool(random.Random(5))
    tier = pool.tier_for(13)
    assert pool.generation == 1
    assert tier == pool.tiers[3]


def test_risk_is_neutral_without_bets():
    scorer = RiskScorer()
    assert scorer.score([], RoundOutcome(0, 4, 4, -900.0), [-900.0]) == 0.0


def test_risk_combines_weighted_signals():
    scorer = RiskScorer()
    bets = [_bet('a', 1.05), _bet('b', 2.0), _bet('c'), _bet('d', 1.01)]
    previous = RoundOutcome(0, 4, 1, -250.0)
    # 0.5 * 0.5 + 0.4 * 0.25 + 0.3 * 0.5
    assert scorer.score(bets, previous, [-100.0, -150.0]) == pytest.approx(0.5)


def test_risk_is_clamped_to_one():
    scorer = RiskScorer()
    bets = [_bet('a', 1.01), _bet('b', 1.02)]
    assert scorer.score(bets, RoundOutcome(0, 2, 2, -2000.0), [-2000.0]) == 1.0


def test_loss_ratio_ignores_net_profit():
    scorer = RiskScorer()
    assert scorer.loss_ratio([120.0, -20.0]) == 0.0
    assert scorer.loss_ratio([-250.0]) == pytest.approx(0.5)
    assert scorer.loss_ratio([-600.0]) == 1.0
    assert scorer.loss_ratio([]) == 0.0


def test_win_ratio_of_previous_round():
    assert RoundOutcome(0, 0, 0, 0.0).win_ratio == 0.0
    assert RoundOutcome(0, 5, 2, 0.0).win_ratio == pytest.approx(0.4)
