"""Health and metrics endpoints."""

from fastapi import APIRouter

from dcre.config import settings
from dcre.engine.workflows import WORKFLOWS

router = APIRouter()


@router.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/metrics")
async def metrics():
    """Service info plus the configured workflows and their state machines."""
    return {
        "service": "dcre",
        "version": "0.1.0",
        "response_window_hours": settings.response_window_hours,
        "workflows": {
            workflow.kind.value: {
                "initial_status": workflow.initial_status.value,
                "terminal_status": workflow.terminal_status.value,
                "states": sorted(status.value for status in workflow.states),
                "has_draft_stage": workflow.draft_status is not None,
            }
            for workflow in WORKFLOWS.values()
        },
    }
