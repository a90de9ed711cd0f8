"""
Value types shared by the policy checker and the reputation scorer.

Nothing here performs I/O. Records arrive from the store as plain
snapshots and every derived value (verdicts, summaries) is rebuilt from
them on demand.
"""
import copy
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def round2(value: float) -> float:
    """Round half up to two decimals (scale by 100, round, unscale)."""
    return math.floor(value * 100 + 0.5) / 100


def _number_or_none(value: Any) -> float | None:
    # bool is an int subclass but never a meaningful limit
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _list_or_none(value: Any) -> list[str] | None:
    if not isinstance(value, (list, tuple)):
        return None
    return [str(item) for item in value]


class Rating(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAIL = "fail"

    @property
    def value_score(self) -> float:
        return RATING_VALUES[self]

    @classmethod
    def choices(cls) -> list[str]:
        return [r.value for r in cls]


RATING_VALUES = {
    Rating.SUCCESS: 1.0,
    Rating.PARTIAL: 0.5,
    Rating.FAIL: 0.0,
}


class VerificationTier(Enum):
    """Trust tier of a feedback record, keyed by (payment, policy) flags."""

    SELF_ATTESTED = ("level0_self_attested", 1.0)
    PAYMENT_VERIFIED = ("level1_payment_verified", 1.5)
    POLICY_VERIFIED = ("level2_policy_verified", 1.25)
    FULLY_VERIFIED = ("level3_fully_verified", 1.5 * 1.25)

    def __init__(self, breakdown_key: str, multiplier: float):
        self.breakdown_key = breakdown_key
        self.multiplier = multiplier

    @classmethod
    def for_flags(cls, payment_verified: bool, policy_verified: bool) -> "VerificationTier":
        if payment_verified and policy_verified:
            return cls.FULLY_VERIFIED
        if payment_verified:
            return cls.PAYMENT_VERIFIED
        if policy_verified:
            return cls.POLICY_VERIFIED
        return cls.SELF_ATTESTED

    @classmethod
    def empty_breakdown(cls) -> dict[str, int]:
        return {tier.breakdown_key: 0 for tier in cls}


@dataclass
class Policy:
    """
    An agent's declared operating policy.

    ``None`` on any limit means unrestricted. An empty ``allowed_domains``
    is also unrestricted, but an empty ``allowed_tools`` permits no tools.
    ``requires_human_approval`` is recorded and never enforced here.
    """

    allowed_tools: list[str] | None = None
    allowed_domains: list[str] | None = None
    blocked_domains: list[str] = field(default_factory=list)
    max_duration_minutes: float | None = None
    max_cost_usd: float | None = None
    requires_human_approval: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "Policy":
        return cls(
            allowed_tools=_list_or_none(data.get("allowed_tools")),
            allowed_domains=_list_or_none(data.get("allowed_domains")),
            blocked_domains=_list_or_none(data.get("blocked_domains")) or [],
            max_duration_minutes=_number_or_none(data.get("max_duration_minutes")),
            max_cost_usd=_number_or_none(data.get("max_cost_usd")),
            requires_human_approval=bool(data.get("requires_human_approval")),
        )

    def to_dict(self) -> dict:
        return {
            "allowed_tools": self.allowed_tools,
            "allowed_domains": self.allowed_domains,
            "blocked_domains": list(self.blocked_domains),
            "max_duration_minutes": self.max_duration_minutes,
            "max_cost_usd": self.max_cost_usd,
            "requires_human_approval": self.requires_human_approval,
        }


@dataclass
class ExecutionTrace:
    """Self-reported record of what an agent did during one task."""

    tools_used: list[str] = field(default_factory=list)
    domains_accessed: list[str] = field(default_factory=list)
    duration_minutes: float | None = None
    cost_usd: float | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ExecutionTrace":
        return cls(
            tools_used=_list_or_none(data.get("tools_used")) or [],
            domains_accessed=_list_or_none(data.get("domains_accessed")) or [],
            duration_minutes=_number_or_none(data.get("duration_minutes")),
            cost_usd=_number_or_none(data.get("cost_usd")),
        )

    def to_dict(self) -> dict:
        return {
            "tools_used": list(self.tools_used),
            "domains_accessed": list(self.domains_accessed),
            "duration_minutes": self.duration_minutes,
            "cost_usd": self.cost_usd,
        }


@dataclass(frozen=True)
class FeedbackRecord:
    """
    One ledger entry as seen by the scorer.

    Verification flags and the checks snapshot are fixed when the record is
    created; later policy edits never touch them.
    """

    id: str
    agent_id: str
    rating: Rating
    timestamp: int  # epoch milliseconds
    from_agent_id: str | None = None
    note: str | None = None
    payment_verified: bool = False
    policy_verified: bool = False
    policy_checks: dict | None = None

    def __post_init__(self):
        object.__setattr__(self, "rating", Rating(self.rating))
        if self.policy_checks is not None:
            object.__setattr__(self, "policy_checks", copy.deepcopy(self.policy_checks))

    @property
    def tier(self) -> VerificationTier:
        return VerificationTier.for_flags(self.payment_verified, self.policy_verified)


@dataclass
class ToolCheck:
    passed: bool
    used: list[str]
    allowed: list[str] | None
    violations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"pass": self.passed, "used": self.used, "allowed": self.allowed, "violations": self.violations}


@dataclass
class DomainCheck:
    passed: bool
    accessed: list[str]
    violations: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"pass": self.passed, "accessed": self.accessed, "violations": self.violations}


@dataclass
class LimitCheck:
    passed: bool
    actual: float | None
    max: float | None

    def to_dict(self) -> dict:
        return {"pass": self.passed, "actual": self.actual, "max": self.max}


@dataclass
class PolicyChecks:
    tools: ToolCheck
    domains: DomainCheck
    duration: LimitCheck
    cost: LimitCheck

    @property
    def all_passed(self) -> bool:
        return self.tools.passed and self.domains.passed and self.duration.passed and self.cost.passed

    def to_dict(self) -> dict:
        return {
            "tools": self.tools.to_dict(),
            "domains": self.domains.to_dict(),
            "duration": self.duration.to_dict(),
            "cost": self.cost.to_dict(),
        }


@dataclass
class ComplianceVerdict:
    policy_verified: bool
    checks: PolicyChecks | None = None
    reason: str | None = None

    def to_dict(self) -> dict:
        data = {
            "policy_verified": self.policy_verified,
            "checks": self.checks.to_dict() if self.checks else None,
        }
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass
class ReputationSummary:
    score: float | None
    confidence: float
    total_transactions: int
    success_rate: float | None
    verification_breakdown: dict[str, int]

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "confidence": self.confidence,
            "total_transactions": self.total_transactions,
            "success_rate": self.success_rate,
            "verification_breakdown": dict(self.verification_breakdown),
        }
