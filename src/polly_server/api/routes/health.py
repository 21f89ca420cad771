"""Health and root endpoints.

Provides the root ``/`` endpoint (API identity and version) and the
``/health`` endpoint (liveness check plus the active policy and resource
cache counters).
"""

from fastapi import APIRouter

from polly_server import __version__
from polly_server.api.models import HealthResponse
from polly_server.generation import NPCDialogueService


def router(service: NPCDialogueService) -> APIRouter:
    """Build the health router."""
    api = APIRouter()

    @api.get("/")
    async def root():
        """Root endpoint showing API identity and current version."""
        return {"message": "Polly NPC Dialogue API", "version": __version__}

    @api.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(
            status="ok",
            policy=service.config.policy.value,
            char_ceiling=service.config.char_ceiling,
            cache=service.cache.stats(),
        )

    return api
