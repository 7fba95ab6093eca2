from __future__ import annotations

import os
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.automation.engine import AutomationEngine
from deps.automation import get_engine

router = APIRouter(tags=["health"])


def _resolve_env() -> str:
    return (os.getenv("ENVIRONMENT") or os.getenv("ENV") or "").strip()


def _resolve_git_sha() -> str | None:
    return (
        (os.getenv("GIT_SHA") or "").strip()
        or (os.getenv("FLY_IMAGE_REF") or "").strip()
        or None
    )


@router.get("/health")
def health(engine: AutomationEngine = Depends(get_engine)):
    services = engine.health_check()
    return {
        "success": True,
        "status": services["overall"],
        "services": services,
        "stats": engine.get_stats().as_dict(),
        "version": os.getenv("APP_VERSION", "1.0.0"),
        "env": _resolve_env(),
        "git_sha": _resolve_git_sha(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
