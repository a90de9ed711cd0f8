import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from agent_directory.models import Agent, Feedback
from agent_directory.reputation.types import FeedbackRecord, Policy

logger = logging.getLogger(__name__)


def generate_agent_id() -> str:
    return "ag_" + uuid.uuid4().hex[:16]


def generate_feedback_id() -> str:
    return "fb_" + uuid.uuid4().hex[:16]


def to_record(row: Feedback) -> FeedbackRecord:
    """Snapshot a stored feedback row as an engine record."""
    return FeedbackRecord(
        id=row.id,
        agent_id=row.agent_id,
        from_agent_id=row.from_agent_id,
        rating=row.rating,
        note=row.note,
        timestamp=row.timestamp,
        payment_verified=bool(row.x402_verified),
        policy_verified=bool(row.policy_verified),
        policy_checks=row.policy_checks,
    )


def agent_policy(agent: Agent) -> Policy | None:
    return Policy.from_dict(agent.policy) if agent.policy is not None else None


class AgentStore:
    """Agent records and their append-only feedback ledgers."""

    def __init__(self, db: Session):
        self.db = db

    # ---- agents ----

    def get_agent(self, agent_id: str) -> Agent | None:
        return self.db.get(Agent, agent_id)

    def get_agent_by_public_key(self, public_key: str) -> Agent | None:
        return self.db.query(Agent).filter(Agent.public_key == public_key).first()

    def create_agent(self, **fields) -> Agent:
        now = datetime.utcnow()
        agent = Agent(id=generate_agent_id(), registered_at=now, last_active=now, **fields)
        self.db.add(agent)
        self.db.commit()
        self.db.refresh(agent)
        logger.info(f"Registered agent {agent.id} ({agent.name})")
        return agent

    def list_agents(self, expertise: list[str] | None = None, verified_only: bool = False) -> list[Agent]:
        """Verified agents first, then most recently active."""
        query = self.db.query(Agent)
        if verified_only:
            query = query.filter(Agent.world_id_verified.is_(True))
        agents = query.order_by(Agent.world_id_verified.desc(), Agent.last_active.desc()).all()

        if expertise:
            tags = set(expertise)
            agents = [a for a in agents if tags.intersection(a.expertise or [])]
        return agents

    def update_expertise(self, agent: Agent, tags: list[str]) -> Agent:
        agent.expertise = list(tags)
        agent.last_active = datetime.utcnow()
        self.db.commit()
        self.db.refresh(agent)
        return agent

    def count_agents(self) -> tuple[int, int]:
        total = self.db.scalar(select(func.count()).select_from(Agent)) or 0
        verified = self.db.scalar(
            select(func.count()).select_from(Agent).where(Agent.world_id_verified.is_(True))
        ) or 0
        return total, verified

    # ---- feedback ledger ----

    def get_feedback_ledger(self, agent_id: str) -> list[FeedbackRecord]:
        rows = self.db.query(Feedback).filter(Feedback.agent_id == agent_id).order_by(Feedback.seq.asc()).all()
        return [to_record(row) for row in rows]

    def recent_feedback(self, agent_id: str, limit: int = 5) -> list[Feedback]:
        """Last ``limit`` ledger entries, newest first."""
        return (
            self.db.query(Feedback)
            .filter(Feedback.agent_id == agent_id)
            .order_by(Feedback.seq.desc())
            .limit(limit)
            .all()
        )

    def append_feedback(
        self,
        agent_id: str,
        record: FeedbackRecord,
        x402_hash: str | None = None,
        tx_details: dict | None = None,
        trace: dict | None = None,
        trace_hash: str | None = None,
    ) -> Feedback:
        """
        Append one record to an agent's ledger.

        The entry is its own row, so concurrent appends for the same agent
        cannot overwrite each other. The agent's ``last_active`` moves in
        the same transaction.
        """
        row = Feedback(
            id=record.id,
            agent_id=agent_id,
            from_agent_id=record.from_agent_id,
            rating=record.rating.value,
            note=record.note,
            x402_hash=x402_hash,
            x402_verified=record.payment_verified,
            tx_details=tx_details,
            trace=trace,
            trace_hash=trace_hash,
            policy_verified=record.policy_verified,
            policy_checks=record.policy_checks,
            timestamp=record.timestamp,
            created_at=datetime.fromtimestamp(record.timestamp / 1000, timezone.utc).replace(tzinfo=None),
        )
        self.db.add(row)

        agent = self.get_agent(agent_id)
        if agent is not None:
            agent.last_active = datetime.utcnow()

        self.db.commit()
        self.db.refresh(row)
        return row
