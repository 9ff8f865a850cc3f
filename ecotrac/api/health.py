"""Liveness endpoints."""

from fastapi import APIRouter

root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/")
def root():
    return {"message": "EcoTrac is tracking you"}
