from http import HTTPStatus

import pytest
from httpx import AsyncClient

from agent_directory.models import Agent
from tests.conftest import FAILED_TX, GOOD_TX, UNAVAILABLE_TX

POLICY = {
    "allowed_tools": ["search", "calculator"],
    "allowed_domains": ["*.example.com"],
    "blocked_domains": ["*.evil.com"],
    "max_duration_minutes": 30,
    "max_cost_usd": 10,
}

GOOD_TRACE = {
    "tools_used": ["search"],
    "domains_accessed": ["api.example.com"],
    "duration_minutes": 12,
    "cost_usd": 10,
}

BAD_TRACE = {
    "tools_used": ["search", "shell"],
    "domains_accessed": ["api.example.com", "sub.evil.com"],
    "duration_minutes": 45,
    "cost_usd": 10.01,
}


async def register(client: AsyncClient, public_key="pk-worker", policy=POLICY) -> str:
    payload = {"name": "Worker", "public_key": public_key, "policy": policy}
    response = await client.post("/api/register", json=payload)
    assert response.status_code == HTTPStatus.CREATED
    return response.json()["agent_id"]


@pytest.mark.asyncio
async def test_feedback_validation(async_client: AsyncClient):
    agent_id = await register(async_client)

    response = await async_client.post("/api/feedback", json={"agent_id": agent_id})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json()["detail"] == "agent_id and rating required"

    response = await async_client.post("/api/feedback", json={"agent_id": agent_id, "rating": "great"})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json()["detail"] == "rating must be success, partial, or fail"

    response = await async_client.post("/api/feedback", json={"agent_id": "ag_missing", "rating": "success"})
    assert response.status_code == HTTPStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_self_attested_feedback(async_client: AsyncClient):
    agent_id = await register(async_client)
    response = await async_client.post(
        "/api/feedback",
        json={"agent_id": agent_id, "from_agent_id": "ag_rater", "rating": "success", "note": "fast"},
    )
    assert response.status_code == HTTPStatus.CREATED
    body = response.json()
    assert body["feedback_id"].startswith("fb_")
    assert body["x402_verified"] is False
    assert body["policy_verified"] is False
    assert body["message"] == "Feedback recorded (consider adding x402_hash and trace for full verification)"

    reputation = (await async_client.get(f"/api/agent/{agent_id}/reputation")).json()
    assert reputation["score"] == 1.0
    assert reputation["confidence"] == 0.1
    assert reputation["total_transactions"] == 1
    assert reputation["verification_breakdown"]["level0_self_attested"] == 1
    assert reputation["recent_feedback"][0]["note"] == "fast"
    assert reputation["recent_feedback"][0]["verified"] is False


@pytest.mark.asyncio
async def test_fully_verified_feedback(async_client: AsyncClient):
    agent_id = await register(async_client)
    response = await async_client.post(
        "/api/feedback",
        json={"agent_id": agent_id, "rating": "success", "x402_hash": GOOD_TX, "trace": GOOD_TRACE},
    )
    body = response.json()
    assert body["x402_verified"] is True
    assert body["policy_verified"] is True
    assert body["message"] == "Feedback recorded with FULL VERIFICATION (payment + policy)"
    assert body["tx_details"]["block_number"] == 436
    assert body["policy_checks"]["cost"] == {"pass": True, "actual": 10.0, "max": 10}
    assert body["verification_error"] is None

    reputation = (await async_client.get(f"/api/agent/{agent_id}/reputation")).json()
    assert reputation["verification_breakdown"]["level3_fully_verified"] == 1
    assert reputation["recent_feedback"][0]["verified"] is True


@pytest.mark.asyncio
async def test_policy_violation_is_recorded_with_checks(async_client: AsyncClient):
    agent_id = await register(async_client)
    response = await async_client.post(
        "/api/feedback",
        json={"agent_id": agent_id, "rating": "partial", "trace": BAD_TRACE},
    )
    assert response.status_code == HTTPStatus.CREATED
    body = response.json()
    assert body["policy_verified"] is False
    assert body["message"] == "Feedback recorded but policy verification failed"

    checks = body["policy_checks"]
    assert checks["tools"]["violations"] == ["shell"]
    assert checks["domains"]["violations"] == [
        {"domain": "sub.evil.com", "blocked_by": "*.evil.com"},
        {"domain": "sub.evil.com", "reason": "not in allowedDomains"},
    ]
    assert checks["duration"]["pass"] is False
    assert checks["cost"]["pass"] is False


@pytest.mark.asyncio
async def test_payment_failures_still_record_feedback(async_client: AsyncClient, basescan):
    agent_id = await register(async_client)

    response = await async_client.post(
        "/api/feedback", json={"agent_id": agent_id, "rating": "fail", "x402_hash": FAILED_TX}
    )
    assert response.status_code == HTTPStatus.CREATED
    assert response.json()["message"] == (
        "Feedback recorded but transaction verification failed: Transaction failed on-chain"
    )
    assert response.json()["verification_error"] == "Transaction failed on-chain"

    response = await async_client.post(
        "/api/feedback", json={"agent_id": agent_id, "rating": "fail", "x402_hash": UNAVAILABLE_TX}
    )
    assert response.json()["verification_error"] == "Verification service unavailable"

    requests_before = len(basescan.requests)
    response = await async_client.post(
        "/api/feedback", json={"agent_id": agent_id, "rating": "fail", "x402_hash": "0xnothex"}
    )
    assert response.json()["verification_error"] == "Invalid transaction hash format"
    assert len(basescan.requests) == requests_before

    reputation = (await async_client.get(f"/api/agent/{agent_id}/reputation")).json()
    assert reputation["total_transactions"] == 3
    assert reputation["score"] == 0.0
    # a supplied proof counts as "verified" in the recent list even if it failed
    assert all(fb["verified"] for fb in reputation["recent_feedback"])


@pytest.mark.asyncio
async def test_single_verification_messages(async_client: AsyncClient):
    agent_id = await register(async_client)

    response = await async_client.post(
        "/api/feedback", json={"agent_id": agent_id, "rating": "success", "x402_hash": GOOD_TX}
    )
    assert response.json()["message"] == "Feedback recorded with payment verification"

    response = await async_client.post(
        "/api/feedback", json={"agent_id": agent_id, "rating": "success", "trace": GOOD_TRACE}
    )
    assert response.json()["message"] == "Feedback recorded with policy verification"

    breakdown = (await async_client.get(f"/api/agent/{agent_id}/reputation")).json()["verification_breakdown"]
    assert breakdown == {
        "level0_self_attested": 0,
        "level1_payment_verified": 1,
        "level2_policy_verified": 1,
        "level3_fully_verified": 0,
    }


@pytest.mark.asyncio
async def test_trace_without_declared_policy(async_client: AsyncClient):
    agent_id = await register(async_client, policy=None)
    response = await async_client.post(
        "/api/feedback", json={"agent_id": agent_id, "rating": "success", "trace": GOOD_TRACE}
    )
    body = response.json()
    assert body["policy_verified"] is False
    assert body["policy_checks"] is None
    assert body["message"] == "Feedback recorded but policy verification failed: Agent has no declared policy"


@pytest.mark.asyncio
async def test_empty_reputation(async_client: AsyncClient):
    agent_id = await register(async_client)
    reputation = (await async_client.get(f"/api/agent/{agent_id}/reputation")).json()
    assert reputation["agent_name"] == "Worker"
    assert reputation["score"] is None
    assert reputation["confidence"] == 0
    assert reputation["success_rate"] is None
    assert reputation["recent_feedback"] == []
    assert sum(reputation["verification_breakdown"].values()) == 0

    assert (await async_client.get("/api/agent/ag_missing/reputation")).status_code == HTTPStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_recent_feedback_is_last_five_newest_first(async_client: AsyncClient):
    agent_id = await register(async_client)
    for i in range(7):
        await async_client.post("/api/feedback", json={"agent_id": agent_id, "rating": "success", "note": f"#{i}"})

    reputation = (await async_client.get(f"/api/agent/{agent_id}/reputation")).json()
    assert reputation["total_transactions"] == 7
    assert reputation["confidence"] == 0.7
    assert [fb["note"] for fb in reputation["recent_feedback"]] == ["#6", "#5", "#4", "#3", "#2"]


@pytest.mark.asyncio
async def test_verdicts_are_frozen_when_policy_changes(async_client: AsyncClient, db):
    agent_id = await register(async_client)
    await async_client.post(
        "/api/feedback", json={"agent_id": agent_id, "rating": "success", "trace": GOOD_TRACE}
    )

    # Tighten the live policy so the same trace would now fail
    agent = db.get(Agent, agent_id)
    agent.policy = {**POLICY, "allowed_tools": []}
    db.commit()

    reputation = (await async_client.get(f"/api/agent/{agent_id}/reputation")).json()
    assert reputation["verification_breakdown"]["level2_policy_verified"] == 1

    response = await async_client.post("/api/verify-policy", json={"agent_id": agent_id, "trace": GOOD_TRACE})
    assert response.json()["policy_verified"] is False


@pytest.mark.asyncio
async def test_verify_tx_endpoint(async_client: AsyncClient):
    response = await async_client.post("/api/verify-tx", json={"tx_hash": GOOD_TX})
    assert response.status_code == HTTPStatus.OK
    assert response.json()["verified"] is True
    assert response.json()["network"] == "base"

    response = await async_client.post("/api/verify-tx", json={})
    assert response.json() == {
        "verified": False,
        "tx_hash": None,
        "network": None,
        "from_address": None,
        "to_address": None,
        "block_number": None,
        "verified_at": None,
        "error": "Invalid transaction hash format",
    }


@pytest.mark.asyncio
async def test_verify_policy_endpoint(async_client: AsyncClient):
    agent_id = await register(async_client)

    response = await async_client.post("/api/verify-policy", json={"agent_id": agent_id})
    assert response.status_code == HTTPStatus.BAD_REQUEST

    response = await async_client.post("/api/verify-policy", json={"agent_id": "ag_missing", "trace": GOOD_TRACE})
    assert response.status_code == HTTPStatus.NOT_FOUND

    response = await async_client.post("/api/verify-policy", json={"agent_id": agent_id, "trace": BAD_TRACE})
    body = response.json()
    assert body["agent_id"] == agent_id
    assert body["policy_verified"] is False
    assert body["checks"]["tools"]["violations"] == ["shell"]

    bare_id = await register(async_client, public_key="pk-bare", policy=None)
    response = await async_client.post("/api/verify-policy", json={"agent_id": bare_id, "trace": GOOD_TRACE})
    assert response.json() == {
        "agent_id": bare_id,
        "policy_verified": False,
        "checks": None,
        "reason": "Agent has no declared policy",
    }


@pytest.mark.asyncio
async def test_verify_policy_does_not_touch_ledger(async_client: AsyncClient):
    agent_id = await register(async_client)
    await async_client.post("/api/verify-policy", json={"agent_id": agent_id, "trace": GOOD_TRACE})
    reputation = (await async_client.get(f"/api/agent/{agent_id}/reputation")).json()
    assert reputation["total_transactions"] == 0


@pytest.mark.asyncio
async def test_null_trace_lists_count_as_empty(async_client: AsyncClient):
    agent_id = await register(async_client)
    response = await async_client.post(
        "/api/feedback",
        json={
            "agent_id": agent_id,
            "rating": "success",
            "trace": {"tools_used": None, "domains_accessed": None, "cost_usd": 1},
        },
    )
    assert response.status_code == HTTPStatus.CREATED
    body = response.json()
    assert body["policy_verified"] is True
    assert body["policy_checks"]["tools"]["used"] == []
    assert body["policy_checks"]["tools"]["pass"] is True
    assert body["policy_checks"]["domains"]["pass"] is True

    response = await async_client.post(
        "/api/verify-policy", json={"agent_id": agent_id, "trace": {"tools_used": None}}
    )
    assert response.status_code == HTTPStatus.OK
    assert response.json()["policy_verified"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [5, True, ["success"], {"value": "success"}])
async def test_non_string_rating_is_a_bad_request(async_client: AsyncClient, rating):
    agent_id = await register(async_client)
    response = await async_client.post("/api/feedback", json={"agent_id": agent_id, "rating": rating})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json()["detail"] == "rating must be success, partial, or fail"
