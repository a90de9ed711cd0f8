"""
Reputation scoring with time decay and verification weighting.

Every record contributes ``rating_value * weight`` where

    weight = exp(-ln(2) * age_days / half_life_days) * tier_multiplier

so a record loses half its influence every ``half_life_days`` and gains
1.5x for a verified payment, 1.25x for a passed policy check, or 1.875x for
both. The summary is recomputed from the full ledger on every read.
"""
import math
import time
from typing import Iterable

from agent_directory.reputation.types import (
    FeedbackRecord,
    Rating,
    ReputationSummary,
    VerificationTier,
    round2,
)

DEFAULT_HALF_LIFE_DAYS = 90.0
MS_PER_DAY = 1000 * 60 * 60 * 24

# Feedback count at which confidence saturates
CONFIDENCE_SATURATION = 10


def now_ms() -> int:
    return int(time.time() * 1000)


def decay_weight(age_days: float, half_life_days: float = DEFAULT_HALF_LIFE_DAYS) -> float:
    """Exponential decay factor; future-dated records yield values above 1."""
    return math.exp(-math.log(2) * age_days / half_life_days)


class ReputationScorer:
    """Turns a feedback ledger into a ``ReputationSummary``."""

    def __init__(self, half_life_days: float = DEFAULT_HALF_LIFE_DAYS):
        self.half_life_days = half_life_days

    def record_weight(self, record: FeedbackRecord, now: int) -> float:
        age_days = (now - record.timestamp) / MS_PER_DAY
        return decay_weight(age_days, self.half_life_days) * record.tier.multiplier

    def log_weight(self, record: FeedbackRecord, now: int) -> float:
        """Natural log of ``record_weight``, finite for any timestamp."""
        age_days = (now - record.timestamp) / MS_PER_DAY
        return -math.log(2) * age_days / self.half_life_days + math.log(record.tier.multiplier)

    def score(self, feedback: Iterable[FeedbackRecord], now: int | None = None) -> ReputationSummary:
        records = list(feedback)
        breakdown = VerificationTier.empty_breakdown()

        if not records:
            return ReputationSummary(
                score=None,
                confidence=0,
                total_transactions=0,
                success_rate=None,
                verification_breakdown=breakdown,
            )

        if now is None:
            now = now_ms()

        weighted_sum = 0.0
        total_weight = 0.0
        successes = 0

        # Weights are taken relative to the heaviest record so that exp never
        # overflows or underflows to zero; the ratio between them is unchanged.
        log_weights = [self.log_weight(record, now) for record in records]
        peak = max(log_weights)

        for record, log_weight in zip(records, log_weights):
            if record.rating is Rating.SUCCESS:
                successes += 1
            breakdown[record.tier.breakdown_key] += 1

            weight = math.exp(log_weight - peak)
            weighted_sum += record.rating.value_score * weight
            total_weight += weight

        count = len(records)
        return ReputationSummary(
            score=round2(weighted_sum / total_weight),
            confidence=round2(min(count / CONFIDENCE_SATURATION, 1)),
            total_transactions=count,
            success_rate=round2(successes / count),
            verification_breakdown=breakdown,
        )


def calculate_score(
    feedback: Iterable[FeedbackRecord],
    now: int | None = None,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
) -> ReputationSummary:
    """Score a ledger with a one-off scorer."""
    return ReputationScorer(half_life_days).score(feedback, now=now)
