from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agent_directory.api.reputation import router as reputation_router
from agent_directory.api.routes import router as api_router
from agent_directory.config import settings
from agent_directory.db import init_db

ENDPOINTS = [
    "/api/stats",
    "/api/agents",
    "/api/register",
    "/api/feedback",
    "/api/agent/{id}/reputation",
    "/api/verify-tx",
    "/api/verify-policy",
    "/health",
]

app = FastAPI(title=settings.app_name, version=settings.version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.on_event("startup")
def on_startup():
    init_db()


@app.get("/")
def diagnostics():
    return {
        "service": settings.app_name,
        "version": settings.version,
        "status": "ready",
        "endpoints": ENDPOINTS,
        "docs": "POST /api/register with { name, public_key, expertise[] }",
    }


@app.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


app.include_router(api_router, prefix="/api")
app.include_router(reputation_router, prefix="/api")
