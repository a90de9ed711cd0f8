from datetime import datetime

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Agent(Base):
    """A registered agent and its declared operating policy."""

    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)  # ag_<16 hex>
    name: Mapped[str] = mapped_column(String(200))
    public_key: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    wallet: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str] = mapped_column(Text, default="")
    moltbook_username: Mapped[str | None] = mapped_column(String(100), nullable=True)

    expertise: Mapped[list] = mapped_column(JSON, default=list)
    endpoints: Mapped[dict] = mapped_column(JSON, default=dict)

    # Normalised policy declaration, None when the agent declared none
    policy: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Identity oracle status captured at registration
    world_id_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    verification_level: Mapped[str | None] = mapped_column(String(50), nullable=True)

    registered_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_active: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    feedback = relationship("Feedback", back_populates="agent", order_by="Feedback.seq")


class Feedback(Base):
    """One append-only entry of an agent's feedback ledger."""

    __tablename__ = "feedback"

    # Ledger order is append order, not timestamp order
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(32), unique=True, index=True)  # fb_<16 hex>
    agent_id: Mapped[str] = mapped_column(ForeignKey("agents.id"), index=True)
    from_agent_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    rating: Mapped[str] = mapped_column(String(10))
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Payment proof
    x402_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)
    x402_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    tx_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Policy compliance, frozen at intake
    trace: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    trace_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    policy_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    policy_checks: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    timestamp: Mapped[int] = mapped_column(BigInteger)  # epoch milliseconds
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    agent = relationship("Agent", back_populates="feedback")
