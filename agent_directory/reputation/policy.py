"""
Policy compliance checking.

Compares an agent's declared ``Policy`` against the ``ExecutionTrace`` of a
single task and produces a ``ComplianceVerdict``. Tools, domains, duration
and cost are each evaluated in full so callers can render an itemised
audit rather than just a boolean.

Domain patterns use ``*`` as the only wildcard ("zero or more of any
character"). Everything else is literal, the comparison ignores case, and a
pattern has to cover the whole domain: ``*.bank.com`` matches
``api.bank.com`` but not ``evil-bank.com``.
"""
import re
from functools import lru_cache

from agent_directory.reputation.types import (
    ComplianceVerdict,
    DomainCheck,
    ExecutionTrace,
    LimitCheck,
    Policy,
    PolicyChecks,
    ToolCheck,
)

NOT_ALLOWED_REASON = "not in allowedDomains"
MISSING_INPUT_REASON = "No policy or trace provided"


@lru_cache(maxsize=1024)
def compile_domain_pattern(pattern: str) -> re.Pattern:
    """Compile a wildcard domain pattern into an anchored regex."""
    literal_parts = (re.escape(part) for part in pattern.split("*"))
    return re.compile(".*".join(literal_parts), re.IGNORECASE)


def domain_matches(pattern: str, domain: str) -> bool:
    return compile_domain_pattern(pattern).fullmatch(domain) is not None


def _exceeds(actual: float | None, limit: float | None) -> bool:
    return limit is not None and actual is not None and actual > limit


class PolicyChecker:
    """Evaluates execution traces against declared policies."""

    def check(self, policy: Policy | None, trace: ExecutionTrace | None) -> ComplianceVerdict:
        if policy is None or trace is None:
            return ComplianceVerdict(policy_verified=False, checks=None, reason=MISSING_INPUT_REASON)

        checks = PolicyChecks(
            tools=self.check_tools(policy, trace),
            domains=self.check_domains(policy, trace),
            duration=LimitCheck(
                passed=not _exceeds(trace.duration_minutes, policy.max_duration_minutes),
                actual=trace.duration_minutes,
                max=policy.max_duration_minutes,
            ),
            cost=LimitCheck(
                passed=not _exceeds(trace.cost_usd, policy.max_cost_usd),
                actual=trace.cost_usd,
                max=policy.max_cost_usd,
            ),
        )
        return ComplianceVerdict(policy_verified=checks.all_passed, checks=checks)

    def check_tools(self, policy: Policy, trace: ExecutionTrace) -> ToolCheck:
        used = list(trace.tools_used)
        if policy.allowed_tools is None:
            return ToolCheck(passed=True, used=used, allowed=None)

        allowed = set(policy.allowed_tools)
        disallowed = [tool for tool in used if tool not in allowed]
        return ToolCheck(
            passed=not disallowed,
            used=used,
            allowed=list(policy.allowed_tools),
            violations=disallowed,
        )

    def check_domains(self, policy: Policy, trace: ExecutionTrace) -> DomainCheck:
        accessed = list(trace.domains_accessed)
        violations = []

        for domain in accessed:
            for blocked in policy.blocked_domains:
                if domain_matches(blocked, domain):
                    violations.append({"domain": domain, "blocked_by": blocked})

            if policy.allowed_domains:
                if not any(domain_matches(allow, domain) for allow in policy.allowed_domains):
                    violations.append({"domain": domain, "reason": NOT_ALLOWED_REASON})

        return DomainCheck(passed=not violations, accessed=accessed, violations=violations)


policy_checker = PolicyChecker()


def check_policy(policy: Policy | None, trace: ExecutionTrace | None) -> ComplianceVerdict:
    """Check a trace against a policy using the shared checker."""
    return policy_checker.check(policy, trace)
