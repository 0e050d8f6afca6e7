import logging
import random
from typing import Dict, Iterable, Optional, Tuple

from derby.errors import EmptyBank
from derby.models import Question, TierEffect
from .parser import parse_question

logger = logging.getLogger(__name__)

TIERS = (1, 2, 3)
DEFAULT_TIER_EFFECTS = {
    1: (1, 5000, 5000),
    2: (2, 10000, 10000),
    3: (3, 15000, 15000),
}


def parse_tier(label) -> Optional[int]:
    """Read a tier label from a sheet cell; None unless it is 1, 2 or 3."""
    try:
        tier = int(str(label).strip())
    except (TypeError, ValueError):
        return None
    return tier if tier in TIERS else None


class QuestionBank:
    """Parsed questions grouped by difficulty tier.

    The tier map is rebuilt on every ``load`` and swapped in with a single
    assignment, so readers always see either the old or the new bank.
    """

    def __init__(self, tier_effects=None, rng=None):
        effects = tier_effects or DEFAULT_TIER_EFFECTS
        self._effects = {tier: TierEffect(*effects[tier]) for tier in TIERS}
        self._rng = rng or random.Random()
        self._questions: Dict[int, Tuple[Question, ...]] = {tier: () for tier in TIERS}

    def effect_for(self, tier: int) -> TierEffect:
        return self._effects[tier]

    def load(self, rows: Iterable) -> int:
        pools = {tier: [] for tier in TIERS}
        skipped = 0
        for row in rows:
            if not row or len(row) < 2:
                continue
            label, encoded = row[0], row[1]
            tier = parse_tier(label)
            if tier is None or not encoded:
                continue
            question = parse_question(encoded)
            if question is None:
                skipped += 1
                logger.warning(f"[bank-skip] could not parse question: {encoded!r}")
                continue
            pools[tier].append(question.with_effect(self._effects[tier]))

        self._questions = {tier: tuple(pool) for tier, pool in pools.items()}
        total = self.count()
        logger.info(
            f"[bank-load] loaded={total} skipped={skipped} "
            + ' '.join(f"tier{t}={len(self._questions[t])}" for t in TIERS)
        )
        return total

    def draw_random(self, tier) -> Question:
        pool = self._questions.get(tier)
        if not pool:
            raise EmptyBank(tier)
        return self._rng.choice(pool)

    def count(self, tier: Optional[int] = None) -> int:
        if tier is not None:
            return len(self._questions.get(tier, ()))
        return sum(len(pool) for pool in self._questions.values())

    def tiers(self) -> Dict[int, int]:
        return {tier: len(pool) for tier, pool in self._questions.items()}
