import random
from typing import List, Optional

from .fairness import HIGH, LOW, MID

WINDOW = 10
COMPOSITION = ((LOW, 6), (MID, 3), (HIGH, 1))


class QuotaPool:
    """Tier schedule: every window of 10 rounds holds 6 low, 3 mid and 1 high round."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.SystemRandom()
        self.tiers: List[str] = []
        self.generation = 0

    def generate(self) -> List[str]:
        tiers = [tier for tier, count in COMPOSITION for _ in range(count)]
        self._rng.shuffle(tiers)
        self.tiers = tiers
        self.generation += 1
        return list(tiers)

    def tier_for(self, round_index: int) -> str:
        if round_index % WINDOW == 0 or not self.tiers:
            self.generate()
        return self.tiers[round_index % WINDOW]
