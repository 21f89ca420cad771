"""NPC dialogue service.

``NPCDialogueService`` is the single public entry-point of the generation
engine.  It orchestrates ``BankStore``, ``RuleStore``, ``PromptComposer``
and ``ChatCompletionClient`` and applies the correction policy.

Caller contract
---------------
``generate()`` returns a :class:`DialogueResult` whose ``text`` is either a
model reply or, under the strict policy, the language's fallback line.  It
raises :class:`FetchError` when a vocabulary bank cannot be loaded and
:class:`GenerationError` when the LLM fails or the request deadline
expires.  There is no partial-success path.

Pipeline
--------
1. Load the bank and the level guidance concurrently (guidance failures
   degrade to ``""``).
2. Normalise the topic, pick the vocabulary slice.
3. Extract the persona name for the identity lock.
4. Compose the system and user prompts.
5. First attempt: generate, truncate, check compliance.
6. If the policy asks for it, one corrective attempt with the same system
   prompt and a user message listing the offending words.
7. Strict policy only: a still non-compliant correction is replaced by the
   fallback line.

Retry state machine
-------------------
::

    GENERATED → CHECKED ─┬─ COMPLIANT ──────────────────────────→ DONE
                         └─ NONCOMPLIANT ─┬─ (below threshold) ─→ DONE
                                          └─ RETRYING ─────────→ DONE

At most ``max_corrections`` (0 or 1) corrective calls are made.  Every
returned text is cut to the character ceiling.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

import httpx

from polly_server.generation.banks import BankStore, VocabularyBank
from polly_server.generation.cache import ResourceCache
from polly_server.generation.client import ChatCompletionClient, truncate
from polly_server.generation.compliance import assess
from polly_server.generation.config import GenerationConfig, RetryPolicy
from polly_server.generation.errors import FetchError, GenerationError
from polly_server.generation.normalizer import normalize
from polly_server.generation.persona import extract_name
from polly_server.generation.prompts import (
    PromptComposer,
    PromptContext,
    PromptPair,
    freeform_system_prompt,
)
from polly_server.generation.rules import RuleStore, to_cefr
from polly_server.generation.slicer import select_slice

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PERSONA = "María, teen from Madrid who loves art and padel."
DEFAULT_LANGUAGE = "Spanish"
DEFAULT_LANG_CODE = "es"
DEFAULT_LEVEL = "1"
DEFAULT_UTTERANCE = "Greet the player."

# Input caps and ceiling for the unconstrained chat endpoint.
FREEFORM_PERSONA_CHARS = 400
FREEFORM_LANGUAGE_CHARS = 40
FREEFORM_UTTERANCE_CHARS = 400
FREEFORM_MAX_CHARS = 60


class DialogueOutcome(str, Enum):
    """How the final text of a request was obtained."""

    COMPLIANT = "compliant"  # first attempt fully in-bank
    ACCEPTED = "accepted"  # first attempt kept despite OOV tokens
    CORRECTED = "corrected"  # corrective attempt returned
    FALLBACK = "fallback"  # strict policy replaced the reply


@dataclass(frozen=True)
class DialogueRequest:
    """Caller-supplied fields of one generation request."""

    persona: str = DEFAULT_PERSONA
    language: str = DEFAULT_LANGUAGE
    lang_code: str = DEFAULT_LANG_CODE
    level: str = DEFAULT_LEVEL
    topic: str = ""
    utterance: str = DEFAULT_UTTERANCE


@dataclass(frozen=True)
class GenerationAttempt:
    """One call to the LLM and its compliance verdict.

    Attributes:
        prompts:     System/user messages sent.
        raw_text:    Stripped reply before truncation.
        text:        Reply cut to the character ceiling.
        oov:         Out-of-vocabulary tokens of ``text`` (first-seen order).
        token_count: Number of tokens in ``text``.
    """

    prompts: PromptPair
    raw_text: str
    text: str
    oov: tuple[str, ...]
    token_count: int

    @property
    def compliant(self) -> bool:
        return not self.oov

    @property
    def oov_ratio(self) -> float:
        return len(self.oov) / self.token_count if self.token_count else 0.0


@dataclass
class DialogueResult:
    """Final text plus the attempts that produced it."""

    text: str
    outcome: DialogueOutcome
    attempts: list[GenerationAttempt] = field(default_factory=list)
    name: str = ""
    vocabulary_slice: list[str] = field(default_factory=list)


def needs_correction(attempt: GenerationAttempt, config: GenerationConfig) -> bool:
    """Decide whether ``attempt`` triggers the corrective retry.

    Strict: any OOV token.  Tolerant: OOV ratio strictly above
    ``config.retry_threshold``.
    """
    if attempt.compliant:
        return False
    if config.policy is RetryPolicy.STRICT:
        return True
    return attempt.oov_ratio > config.retry_threshold


class NPCDialogueService:
    """Vocabulary-constrained NPC line generation.

    One instance is created per application and shared by every request.
    It owns the resource cache used by both stores.

    Attributes:
        _config: Frozen engine configuration.
        _cache:  Shared bank/rule cache.
        _banks:  Vocabulary bank store.
        _rules:  Level guidance store.
        _llm:    Chat-completions client.
    """

    def __init__(
        self,
        config: GenerationConfig,
        *,
        api_key: str | None = None,
        cache: ResourceCache | None = None,
        http_client: httpx.AsyncClient | None = None,
        llm: ChatCompletionClient | None = None,
    ) -> None:
        """Initialise the service.

        Args:
            config:      Engine configuration.
            api_key:     LLM bearer token; read from ``config.api_key_env``
                         when omitted.
            cache:       Resource cache; a new bounded cache is created when
                         omitted.
            http_client: Shared ``httpx.AsyncClient`` for every outbound call.
            llm:         Pre-built LLM client (tests inject doubles).
        """
        self._config = config
        self._cache = cache if cache is not None else ResourceCache(config.cache_max_entries)
        self._banks = BankStore(
            cache=self._cache,
            url_template=config.bank_url_template,
            cumulative=config.cumulative,
            timeout_seconds=config.timeout_seconds,
            http_client=http_client,
        )
        self._rules = RuleStore(
            cache=self._cache,
            url_template=config.rules_url_template,
            timeout_seconds=config.timeout_seconds,
            http_client=http_client,
        )
        if llm is None:
            if api_key is None:
                api_key = os.environ.get(config.api_key_env)
            if not api_key:
                logger.warning(
                    "NPCDialogueService: %s is not set; LLM calls will be unauthenticated",
                    config.api_key_env,
                )
            llm = ChatCompletionClient(
                api_url=config.api_url,
                model=config.model,
                api_key=api_key,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                timeout_seconds=config.timeout_seconds,
                http_client=http_client,
            )
        self._llm = llm

        logger.info(
            "NPCDialogueService initialised (policy=%s, model=%s, ceiling=%d, cumulative=%s)",
            config.policy.value,
            config.model,
            config.char_ceiling,
            config.cumulative,
        )

    # ── Public properties ─────────────────────────────────────────────────────

    @property
    def config(self) -> GenerationConfig:
        return self._config

    @property
    def cache(self) -> ResourceCache:
        return self._cache

    @property
    def banks(self) -> BankStore:
        return self._banks

    @property
    def rules(self) -> RuleStore:
        return self._rules

    # ── Public API ────────────────────────────────────────────────────────────

    async def generate(
        self, request: DialogueRequest, *, policy: RetryPolicy | str | None = None
    ) -> DialogueResult:
        """Produce one level-constrained NPC line.

        Args:
            request: Persona, language, level, topic and player utterance.
            policy:  Optional per-request override of the configured policy.

        Returns:
            :class:`DialogueResult` with the final text and attempt history.

        Raises:
            FetchError:      The vocabulary bank could not be loaded.
            GenerationError: The LLM failed or the deadline expired.
        """
        config = self._config if policy is None else self._config.with_policy(policy)
        return await self._with_deadline(self._run(request, config), config)

    async def chat(self, persona: str, language: str, utterance: str) -> str:
        """Unconstrained persona reply: no bank, no guidance, no retry.

        Inputs are capped (persona 400, language 40, utterance 400 chars)
        and the reply is cut to 60 characters.

        Raises:
            GenerationError: The LLM failed or the deadline expired.
        """
        system = freeform_system_prompt(
            str(persona)[:FREEFORM_PERSONA_CHARS],
            str(language)[:FREEFORM_LANGUAGE_CHARS],
            FREEFORM_MAX_CHARS,
        )
        return await self._with_deadline(
            self._llm.generate(
                system, str(utterance)[:FREEFORM_UTTERANCE_CHARS], max_chars=FREEFORM_MAX_CHARS
            ),
            self._config,
        )

    async def load_bank(self, lang_code: str, level: str) -> VocabularyBank:
        """Expose bank loading for diagnostics and the CLI ``check`` command."""
        return await self._banks.load_bank(lang_code, level)

    # ── Internal helpers ──────────────────────────────────────────────────────

    async def _run(self, request: DialogueRequest, config: GenerationConfig) -> DialogueResult:
        bank, guidance = await asyncio.gather(
            self._banks.load_bank(request.lang_code, request.level),
            self._load_guidance(request.lang_code, request.level),
        )

        topic_tokens = normalize(request.topic) if request.topic else []
        vocabulary_slice = select_slice(bank, topic_tokens, config.slice_limit)
        name = extract_name(request.persona, placeholder=config.persona_placeholder)
        ctx = PromptContext(
            persona=request.persona,
            name=name,
            language=request.language,
            level=request.level,
            cefr=to_cefr(request.level),
            guidance=guidance,
            slice=vocabulary_slice,
            topic=request.topic,
            utterance=request.utterance,
        )
        ceiling = config.char_ceiling
        composer = PromptComposer(policy=config.policy, max_chars=ceiling)

        first = await self._attempt(composer.compose(ctx), bank, ceiling)
        attempts = [first]

        def _result(text: str, outcome: DialogueOutcome) -> DialogueResult:
            return DialogueResult(
                text=truncate(text, ceiling),
                outcome=outcome,
                attempts=attempts,
                name=name,
                vocabulary_slice=vocabulary_slice,
            )

        if first.compliant:
            return _result(first.text, DialogueOutcome.COMPLIANT)
        if not needs_correction(first, config):
            return _result(first.text, DialogueOutcome.ACCEPTED)
        if config.max_corrections == 0:
            if config.policy is RetryPolicy.STRICT:
                logger.info("strict policy: OOV %s and no corrections allowed", first.oov)
                return _result(config.fallback_for(request.lang_code), DialogueOutcome.FALLBACK)
            return _result(first.text, DialogueOutcome.ACCEPTED)

        logger.info(
            "correcting reply (policy=%s, oov=%s, ratio=%.2f)",
            config.policy.value,
            ", ".join(first.oov),
            first.oov_ratio,
        )
        correction = PromptPair(
            system=first.prompts.system,
            user=composer.correction_message(ctx, first.oov, first.text),
        )
        second = await self._attempt(correction, bank, ceiling)
        attempts.append(second)

        if config.policy is RetryPolicy.STRICT and not second.compliant:
            logger.info("strict policy: correction still out of bank %s; fallback", second.oov)
            return _result(config.fallback_for(request.lang_code), DialogueOutcome.FALLBACK)
        return _result(second.text, DialogueOutcome.CORRECTED)

    async def _attempt(
        self, prompts: PromptPair, bank: VocabularyBank, ceiling: int
    ) -> GenerationAttempt:
        raw = await self._llm.complete(prompts.system, prompts.user)
        text = truncate(raw, ceiling)
        failure = assess(text, bank)
        return GenerationAttempt(
            prompts=prompts,
            raw_text=raw,
            text=text,
            oov=failure.oov if failure else (),
            token_count=failure.token_count if failure else len(normalize(text)),
        )

    async def _load_guidance(self, lang_code: str, level: str) -> str:
        try:
            table = await self._rules.load_rules(lang_code)
        except FetchError as exc:
            logger.warning("level guidance unavailable for %r: %s", lang_code, exc)
            return ""
        return table.guidance(level)

    @staticmethod
    async def _with_deadline(awaitable: Awaitable[T], config: GenerationConfig) -> T:
        deadline = config.request_deadline_seconds
        if not deadline:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=deadline)
        except TimeoutError as exc:
            logger.warning("request deadline of %.1fs exceeded", deadline)
            raise GenerationError(
                detail=f"request deadline of {deadline:.1f}s exceeded"
            ) from exc
