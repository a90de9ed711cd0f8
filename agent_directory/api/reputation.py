"""
API endpoints for feedback, reputation and verification.

This module handles:
- Feedback submission with payment and policy verification
- Reputation summaries computed from the full feedback ledger
- Stand-alone transaction and policy checks
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from agent_directory.config import settings
from agent_directory.db import get_db
from agent_directory.errors import AgentNotFoundError, FeedbackValidationError
from agent_directory.reputation.scoring import ReputationScorer
from agent_directory.schemas import (
    FeedbackCreate,
    FeedbackResponse,
    RecentFeedback,
    ReputationOut,
    VerifyPolicyRequest,
    VerifyTxRequest,
)
from agent_directory.services.intake import FeedbackIntake, verify_policy_for_agent
from agent_directory.services.oracles import PaymentOracle, get_payment_oracle
from agent_directory.services.store import AgentStore

router = APIRouter(tags=["reputation"])


@router.post("/feedback", response_model=FeedbackResponse, status_code=201)
def submit_feedback(
    payload: FeedbackCreate,
    db: Session = Depends(get_db),
    payment_oracle: PaymentOracle = Depends(get_payment_oracle),
):
    """
    Record feedback for an agent.

    An ``x402_hash`` is checked on-chain and a ``trace`` is checked against
    the agent's declared policy. Failed verifications are reported in the
    response but the feedback is still recorded.
    """
    intake = FeedbackIntake(AgentStore(db), payment_oracle)
    try:
        result = intake.submit(payload)
    except FeedbackValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AgentNotFoundError:
        raise HTTPException(status_code=404, detail="Agent not found")

    tx = result.tx_verification
    return FeedbackResponse(
        feedback_id=result.feedback.id,
        x402_verified=result.payment_verified,
        policy_verified=result.policy_verified,
        tx_details=result.feedback.tx_details,
        policy_checks=result.feedback.policy_checks,
        verification_error=tx.error if tx and not tx.verified else None,
        message=result.message,
    )


@router.get("/agent/{agent_id}/reputation", response_model=ReputationOut)
def get_reputation(agent_id: str, db: Session = Depends(get_db)):
    """Reputation summary, recomputed from the whole ledger on every call."""
    store = AgentStore(db)
    agent = store.get_agent(agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    scorer = ReputationScorer(settings.reputation_half_life_days)
    summary = scorer.score(store.get_feedback_ledger(agent_id))

    recent = [
        RecentFeedback(
            rating=fb.rating,
            verified=bool(fb.x402_hash),
            date=fb.created_at,
            note=fb.note,
        )
        for fb in store.recent_feedback(agent_id, limit=settings.recent_feedback_limit)
    ]

    return ReputationOut(
        agent_id=agent.id,
        agent_name=agent.name,
        world_id_verified=agent.world_id_verified,
        recent_feedback=recent,
        **summary.to_dict(),
    )


@router.post("/verify-tx")
def verify_tx(payload: VerifyTxRequest, payment_oracle: PaymentOracle = Depends(get_payment_oracle)):
    """Verify an x402 payment transaction without recording feedback."""
    return payment_oracle.verify_transaction(payload.tx_hash).to_dict()


@router.post("/verify-policy")
def verify_policy(payload: VerifyPolicyRequest, db: Session = Depends(get_db)):
    """Check a trace against an agent's declared policy without recording feedback."""
    if not payload.agent_id or payload.trace is None:
        raise HTTPException(status_code=400, detail="agent_id and trace required")

    try:
        verdict = verify_policy_for_agent(AgentStore(db), payload.agent_id, payload.trace)
    except AgentNotFoundError:
        raise HTTPException(status_code=404, detail="Agent not found")

    return {"agent_id": payload.agent_id, **verdict.to_dict()}
