"""Reputation scoring and policy compliance."""
from .policy import PolicyChecker, check_policy, domain_matches
from .scoring import ReputationScorer, calculate_score, decay_weight
from .types import (
    ComplianceVerdict,
    ExecutionTrace,
    FeedbackRecord,
    Policy,
    Rating,
    ReputationSummary,
    VerificationTier,
    round2,
)

__all__ = [
    "PolicyChecker",
    "check_policy",
    "domain_matches",
    "ReputationScorer",
    "calculate_score",
    "decay_weight",
    "ComplianceVerdict",
    "ExecutionTrace",
    "FeedbackRecord",
    "Policy",
    "Rating",
    "ReputationSummary",
    "VerificationTier",
    "round2",
]
