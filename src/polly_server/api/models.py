"""
Pydantic models for API requests and responses.

Request fields mirror the JSON the game client sends.  Every field is
optional; missing or ``null`` values fall back to the documented defaults
so that an empty ``{}`` body still produces a greeting.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from polly_server.generation.config import RetryPolicy
from polly_server.generation.service import (
    DEFAULT_LANG_CODE,
    DEFAULT_LANGUAGE,
    DEFAULT_LEVEL,
    DEFAULT_PERSONA,
    DEFAULT_UTTERANCE,
    DialogueRequest,
)

# ============================================================================
# REQUEST MODELS (Client → Server)
# ============================================================================


class GenerateRequest(BaseModel):
    """
    Level-constrained NPC line request.

    Attributes:
        persona: Free-text character description ("Marta, baker from Sevilla").
        language: Target language name used in the prompt ("Spanish").
        lang_code: Language code selecting banks and guidance (JSON key ``langCode``).
        level: Numeric level ("1".."5", or a word count) or a CEFR label.
        topic: Topic text; its in-bank words lead the vocabulary slice.
        user: The player's utterance.
        policy: Optional override of the configured retry policy.
    """

    model_config = ConfigDict(populate_by_name=True)

    persona: str = DEFAULT_PERSONA
    language: str = DEFAULT_LANGUAGE
    lang_code: str = Field(default=DEFAULT_LANG_CODE, alias="langCode")
    level: str = DEFAULT_LEVEL
    topic: str = ""
    user: str = DEFAULT_UTTERANCE
    policy: RetryPolicy | None = None

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @field_validator("level", mode="before")
    @classmethod
    def level_as_string(cls, value: Any) -> str:
        return str(value)

    def to_dialogue_request(self) -> DialogueRequest:
        return DialogueRequest(
            persona=self.persona,
            language=self.language,
            lang_code=self.lang_code,
            level=self.level,
            topic=self.topic,
            utterance=self.user,
        )


class ChatRequest(BaseModel):
    """
    Unconstrained persona chat request.

    Attributes:
        persona: Character description (capped at 400 characters).
        language: Reply language (capped at 40 characters).
        user: The player's utterance (capped at 400 characters).
    """

    persona: str = ""
    language: str = ""
    user: str = ""

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


# ============================================================================
# RESPONSE MODELS (Server → Client)
# ============================================================================


class TextResponse(BaseModel):
    """Generated NPC line."""

    text: str


class ErrorResponse(BaseModel):
    """Upstream failure description returned with 502."""

    error: str


class HealthResponse(BaseModel):
    """Liveness payload with engine diagnostics."""

    status: str
    policy: str
    char_ceiling: int
    cache: dict[str, int]
