from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from agent_directory.config import settings
from agent_directory.db import get_db
from agent_directory.errors import AgentAlreadyRegisteredError, AgentValidationError
from agent_directory.schemas import (
    AgentList,
    AgentOut,
    AgentRegister,
    AgentRegisterResponse,
    ExpertiseUpdate,
    ExpertiseUpdateResponse,
    StatsOut,
)
from agent_directory.services.oracles import IdentityOracle, get_identity_oracle
from agent_directory.services.registry import (
    VALID_EXPERTISE,
    normalize_expertise,
    refresh_identity,
    register_agent,
)
from agent_directory.services.store import AgentStore

router = APIRouter()


# ============ Directory Endpoints ============


@router.get("/agents", response_model=AgentList)
def list_agents(
    expertise: str | None = None,
    verified: bool = False,
    limit: int = Query(default=settings.default_page_limit, ge=0),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    """List agents, optionally filtered by expertise tags and identity verification."""
    tags = [t.strip().lower() for t in expertise.split(",")] if expertise else None
    agents = AgentStore(db).list_agents(expertise=tags, verified_only=verified)

    total = len(agents)
    return AgentList(
        agents=[AgentOut.model_validate(a) for a in agents[offset:offset + limit]],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + limit < total,
    )


@router.get("/agent/{agent_id}", response_model=AgentOut)
def get_agent(
    agent_id: str,
    db: Session = Depends(get_db),
    identity_oracle: IdentityOracle = Depends(get_identity_oracle),
):
    """Get an agent profile with live identity status."""
    agent = AgentStore(db).get_agent(agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    profile = AgentOut.model_validate(agent)
    return profile.model_copy(update=refresh_identity(agent, identity_oracle))


@router.post("/register", response_model=AgentRegisterResponse, status_code=201)
def register(
    payload: AgentRegister,
    db: Session = Depends(get_db),
    identity_oracle: IdentityOracle = Depends(get_identity_oracle),
):
    try:
        agent, message = register_agent(AgentStore(db), identity_oracle, payload)
    except AgentValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AgentAlreadyRegisteredError as e:
        raise HTTPException(status_code=409, detail={"error": str(e), "agent_id": e.agent_id})

    return AgentRegisterResponse(
        agent_id=agent.id,
        world_id_verified=agent.world_id_verified,
        message=message,
    )


@router.post("/agent/{agent_id}/expertise", response_model=ExpertiseUpdateResponse)
def update_expertise(agent_id: str, payload: ExpertiseUpdate, db: Session = Depends(get_db)):
    """Replace an agent's expertise tags. The signature is not checked."""
    store = AgentStore(db)
    agent = store.get_agent(agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    agent = store.update_expertise(agent, normalize_expertise(payload.expertise))
    return ExpertiseUpdateResponse(expertise=agent.expertise)


@router.get("/verify/{public_key}")
def verify_identity(public_key: str, identity_oracle: IdentityOracle = Depends(get_identity_oracle)):
    """Look up World ID verification for a public key."""
    return identity_oracle.verify_identity(public_key).to_dict()


@router.get("/stats", response_model=StatsOut)
def get_stats(db: Session = Depends(get_db)):
    total, verified = AgentStore(db).count_agents()
    return StatsOut(total_agents=total, verified_agents=verified, expertise_tags=VALID_EXPERTISE)
