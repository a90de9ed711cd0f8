"""Agent registration and profile enrichment."""
import logging

from agent_directory.errors import AgentAlreadyRegisteredError, AgentValidationError
from agent_directory.models import Agent
from agent_directory.reputation.types import Policy
from agent_directory.schemas import AgentRegister
from agent_directory.services.oracles import IdentityOracle
from agent_directory.services.store import AgentStore

logger = logging.getLogger(__name__)

VALID_EXPERTISE = [
    "research", "writing", "code", "philosophy", "art", "music",
    "finance", "legal", "medical", "education", "translation",
    "data-analysis", "automation", "security", "blockchain",
    "social-media", "customer-service", "creative", "technical",
]


def normalize_expertise(tags: list[str] | None) -> list[str]:
    """Lowercase, drop tags outside the vocabulary and duplicates."""
    result = []
    for tag in tags or []:
        tag = str(tag).strip().lower()
        if tag in VALID_EXPERTISE and tag not in result:
            result.append(tag)
    return result


def register_agent(store: AgentStore, identity_oracle: IdentityOracle, payload: AgentRegister) -> tuple[Agent, str]:
    """Register a new agent. Returns the agent and a status message."""
    if not payload.name or not payload.public_key:
        raise AgentValidationError("name and public_key required")

    existing = store.get_agent_by_public_key(payload.public_key)
    if existing is not None:
        raise AgentAlreadyRegisteredError(existing.id)

    identity = identity_oracle.verify_identity(payload.public_key)
    policy = Policy.from_dict(payload.policy) if payload.policy is not None else None

    agent = store.create_agent(
        name=payload.name,
        public_key=payload.public_key,
        wallet=payload.wallet,
        description=payload.description or "",
        expertise=normalize_expertise(payload.expertise),
        moltbook_username=payload.moltbook_username,
        endpoints=payload.endpoints or {},
        policy=policy.to_dict() if policy else None,
        world_id_verified=identity.verified,
        verification_level=identity.level,
    )

    if identity.verified:
        message = "Agent registered with World ID verification!"
    else:
        message = "Agent registered. Verify with World ID at onemolt.ai for badge."
    return agent, message


def refresh_identity(agent: Agent, identity_oracle: IdentityOracle) -> dict:
    """
    Live identity status for a profile view.

    The stored flags are kept when the oracle cannot be reached; the
    stored record itself is never modified here.
    """
    identity = identity_oracle.verify_identity(agent.public_key)
    if identity.error is not None:
        logger.debug(f"Keeping stored identity status for {agent.id}")
        return {"world_id_verified": agent.world_id_verified, "verification_level": agent.verification_level}
    return {"world_id_verified": identity.verified, "verification_level": identity.level}
