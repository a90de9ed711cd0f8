"""
Feedback intake.

Validates a submission, runs the optional payment and policy verifications,
and appends the annotated record to the agent's ledger. Verification
failures never reject a submission; they only lower the record's tier and
are explained in the outcome message.
"""
import logging
from dataclasses import dataclass

from agent_directory.errors import AgentNotFoundError, FeedbackValidationError
from agent_directory.models import Feedback
from agent_directory.reputation.policy import PolicyChecker, policy_checker
from agent_directory.reputation.scoring import now_ms
from agent_directory.reputation.types import ComplianceVerdict, ExecutionTrace, FeedbackRecord, Rating
from agent_directory.schemas import FeedbackCreate, TraceIn
from agent_directory.services.oracles import PaymentOracle, TransactionVerification
from agent_directory.services.store import AgentStore, agent_policy, generate_feedback_id

logger = logging.getLogger(__name__)

NO_POLICY_REASON = "Agent has no declared policy"


@dataclass
class IntakeResult:
    feedback: Feedback
    tx_verification: TransactionVerification | None
    compliance: ComplianceVerdict | None
    message: str

    @property
    def payment_verified(self) -> bool:
        return bool(self.tx_verification and self.tx_verification.verified)

    @property
    def policy_verified(self) -> bool:
        return bool(self.compliance and self.compliance.policy_verified)


def validate_submission(submission: FeedbackCreate) -> Rating:
    if not submission.agent_id or not submission.rating:
        raise FeedbackValidationError("agent_id and rating required")
    if not isinstance(submission.rating, str) or submission.rating not in Rating.choices():
        raise FeedbackValidationError("rating must be success, partial, or fail")
    return Rating(submission.rating)


def verify_policy_for_agent(store: AgentStore, agent_id: str, trace: TraceIn) -> ComplianceVerdict:
    """Check a trace against the agent's currently declared policy."""
    agent = store.get_agent(agent_id)
    if agent is None:
        raise AgentNotFoundError(agent_id)

    policy = agent_policy(agent)
    if policy is None:
        return ComplianceVerdict(policy_verified=False, checks=None, reason=NO_POLICY_REASON)
    return policy_checker.check(policy, ExecutionTrace.from_dict(trace.model_dump()))


def build_message(
    submission: FeedbackCreate,
    tx_verification: TransactionVerification | None,
    compliance: ComplianceVerdict | None,
) -> str:
    verifications = []
    if tx_verification and tx_verification.verified:
        verifications.append("payment")
    if compliance and compliance.policy_verified:
        verifications.append("policy")

    if len(verifications) == 2:
        return "Feedback recorded with FULL VERIFICATION (payment + policy)"
    if len(verifications) == 1:
        return f"Feedback recorded with {verifications[0]} verification"
    if submission.x402_hash:
        error = tx_verification.error if tx_verification else None
        return f"Feedback recorded but transaction verification failed: {error or 'unknown error'}"
    if submission.trace is not None:
        if compliance and compliance.reason:
            return f"Feedback recorded but policy verification failed: {compliance.reason}"
        return "Feedback recorded but policy verification failed"
    return "Feedback recorded (consider adding x402_hash and trace for full verification)"


class FeedbackIntake:
    """Turns feedback submissions into verified, appended ledger records."""

    def __init__(self, store: AgentStore, payment_oracle: PaymentOracle, checker: PolicyChecker | None = None):
        self.store = store
        self.payment_oracle = payment_oracle
        self.checker = checker or policy_checker

    def _check_compliance(self, agent, trace: TraceIn | None) -> ComplianceVerdict | None:
        if trace is None:
            return None
        policy = agent_policy(agent)
        if policy is None:
            return ComplianceVerdict(policy_verified=False, checks=None, reason=NO_POLICY_REASON)
        return self.checker.check(policy, ExecutionTrace.from_dict(trace.model_dump()))

    def submit(self, submission: FeedbackCreate) -> IntakeResult:
        rating = validate_submission(submission)

        agent = self.store.get_agent(submission.agent_id)
        if agent is None:
            raise AgentNotFoundError(submission.agent_id)

        tx_verification = None
        if submission.x402_hash:
            tx_verification = self.payment_oracle.verify_transaction(submission.x402_hash)
            if not tx_verification.verified:
                logger.warning(
                    f"Payment proof for agent {agent.id} not verified: {tx_verification.error}"
                )

        compliance = self._check_compliance(agent, submission.trace)

        record = FeedbackRecord(
            id=generate_feedback_id(),
            agent_id=agent.id,
            from_agent_id=submission.from_agent_id,
            rating=rating,
            note=submission.note,
            timestamp=now_ms(),
            payment_verified=bool(tx_verification and tx_verification.verified),
            policy_verified=bool(compliance and compliance.policy_verified),
            policy_checks=compliance.checks.to_dict() if compliance and compliance.checks else None,
        )

        row = self.store.append_feedback(
            agent.id,
            record,
            x402_hash=submission.x402_hash,
            tx_details=tx_verification.details() if tx_verification else None,
            trace=submission.trace.model_dump() if submission.trace is not None else None,
            trace_hash=submission.trace_hash,
        )
        logger.info(f"Recorded {rating.value} feedback {record.id} for agent {agent.id} ({record.tier.name.lower()})")

        return IntakeResult(
            feedback=row,
            tx_verification=tx_verification,
            compliance=compliance,
            message=build_message(submission, tx_verification, compliance),
        )
