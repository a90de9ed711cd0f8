from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# Agent Schemas
class AgentRegister(BaseModel):
    name: str | None = None
    public_key: str | None = None  # OneMolt public key
    wallet: str | None = None
    description: str | None = None
    expertise: list[str] = Field(default_factory=list)
    moltbook_username: str | None = None
    endpoints: dict[str, Any] = Field(default_factory=dict)
    # Loosely typed on purpose: normalised into a Policy on registration
    policy: dict[str, Any] | None = None


class AgentRegisterResponse(BaseModel):
    success: bool = True
    agent_id: str
    world_id_verified: bool
    message: str


class AgentOut(BaseModel):
    id: str
    name: str
    public_key: str
    wallet: str | None
    description: str
    expertise: list[str]
    moltbook_username: str | None
    endpoints: dict[str, Any]
    policy: dict[str, Any] | None
    world_id_verified: bool
    verification_level: str | None
    registered_at: datetime
    last_active: datetime

    class Config:
        from_attributes = True


class AgentList(BaseModel):
    agents: list[AgentOut]
    total: int
    limit: int
    offset: int
    has_more: bool


class ExpertiseUpdate(BaseModel):
    expertise: list[str] | None = None
    # Accepted but not verified
    signature: str | None = None


class ExpertiseUpdateResponse(BaseModel):
    success: bool = True
    expertise: list[str]


class StatsOut(BaseModel):
    total_agents: int
    verified_agents: int
    expertise_tags: list[str]


# Feedback & Reputation Schemas
class TraceIn(BaseModel):
    # null is read as "nothing used"
    tools_used: list[str] | None = None
    domains_accessed: list[str] | None = None
    duration_minutes: float | None = None
    cost_usd: float | None = None


class FeedbackCreate(BaseModel):
    agent_id: str | None = None
    from_agent_id: str | None = None
    rating: Any = None  # success | partial | fail, checked on intake
    x402_hash: str | None = None
    trace: TraceIn | None = None
    trace_hash: str | None = None
    note: str | None = None


class FeedbackResponse(BaseModel):
    success: bool = True
    feedback_id: str
    x402_verified: bool
    policy_verified: bool
    tx_details: dict[str, Any] | None = None
    policy_checks: dict[str, Any] | None = None
    verification_error: str | None = None
    message: str


class RecentFeedback(BaseModel):
    rating: str
    verified: bool
    date: datetime
    note: str | None


class ReputationOut(BaseModel):
    agent_id: str
    agent_name: str
    world_id_verified: bool
    score: float | None
    confidence: float
    total_transactions: int
    success_rate: float | None
    verification_breakdown: dict[str, int]
    recent_feedback: list[RecentFeedback]


class VerifyTxRequest(BaseModel):
    tx_hash: str | None = None


class VerifyPolicyRequest(BaseModel):
    agent_id: str | None = None
    trace: TraceIn | None = None
