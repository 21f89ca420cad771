"""NPC dialogue endpoints.

``POST /api/generate``
    Level-constrained line: bank, guidance, compliance check and at most
    one correction.  Responds ``{"text": ...}``.

``POST /api/chat``
    Unconstrained persona reply (no bank, no retry).

Both accept POST only; other methods get FastAPI's 405.  Upstream
failures propagate as ``FetchError`` / ``GenerationError`` and are mapped
to ``502 {"error": ...}`` by the handlers in :mod:`polly_server.api.server`.
"""

import logging

from fastapi import APIRouter

from polly_server.api.models import ChatRequest, ErrorResponse, GenerateRequest, TextResponse
from polly_server.generation import NPCDialogueService

logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {502: {"model": ErrorResponse, "description": "Upstream failure"}}


def router(service: NPCDialogueService) -> APIRouter:
    """Build the dialogue router around the shared service."""
    api = APIRouter(prefix="/api")

    @api.post("/generate", response_model=TextResponse, responses=_ERROR_RESPONSES)
    async def generate(request: GenerateRequest | None = None):
        """Generate one NPC line inside the vocabulary bank for the level."""
        request = request or GenerateRequest()
        result = await service.generate(request.to_dialogue_request(), policy=request.policy)
        logger.debug(
            "generate lang=%s level=%s outcome=%s attempts=%d",
            request.lang_code,
            request.level,
            result.outcome.value,
            len(result.attempts),
        )
        return TextResponse(text=result.text)

    @api.post("/chat", response_model=TextResponse, responses=_ERROR_RESPONSES)
    async def chat(request: ChatRequest | None = None):
        """Reply in character without vocabulary constraints."""
        request = request or ChatRequest()
        text = await service.chat(request.persona, request.language, request.user)
        return TextResponse(text=text)

    return api
