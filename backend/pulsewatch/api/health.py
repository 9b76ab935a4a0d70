"""Liveness endpoint."""

from datetime import UTC, datetime

from fastapi import APIRouter

from pulsewatch.core.config import APP_VERSION

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "version": APP_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
    }
