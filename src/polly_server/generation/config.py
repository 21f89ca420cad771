"""Generation engine configuration.

``GenerationConfig`` is a frozen dataclass that mirrors the ``[generation]``
and ``[fallbacks]`` sections of ``config/server.ini``.  It is built once at
start-up and never mutated; per-request policy overrides produce a copy via
:meth:`GenerationConfig.with_policy`.

Retry policies
--------------
Two correction policies are supported, selected by ``policy``:

``strict``
    Any out-of-vocabulary token triggers the single corrective retry.  If
    the retry is still non-compliant the reply is replaced by the
    language's fallback line.  Default ceiling: 60 characters.

``tolerant``
    The retry fires only when the OOV ratio exceeds ``retry_threshold``
    (default ``0.30``).  The retry result is accepted as-is.  Default
    ceiling: 150 characters.

``max_corrections`` bounds the number of corrective calls.  Only ``0`` and
``1`` are accepted; the engine never loops until compliant.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class RetryPolicy(str, Enum):
    """Correction policy applied after the first generation attempt."""

    STRICT = "strict"
    TOLERANT = "tolerant"

    @property
    def default_max_chars(self) -> int:
        """Character ceiling used when ``max_output_chars`` is left at 0."""
        return 60 if self is RetryPolicy.STRICT else 150


# Clarifying question used by the strict policy when the corrected reply
# still leaves the bank.
DEFAULT_FALLBACK_LINES: dict[str, str] = {
    "es": "¿Puedes decirlo de otra forma?",
    "en": "Can you say that another way?",
    "fr": "Tu peux le dire autrement ?",
    "it": "Puoi dirlo in un altro modo?",
    "pt": "Você pode dizer de outra forma?",
    "de": "Kannst du das anders sagen?",
}

DEFAULT_BANK_URL_TEMPLATE = "https://pollylang.app/wordbanks/{lang}/{lang}_{tier}.json"
DEFAULT_RULES_URL_TEMPLATE = "https://pollylang.app/cefr/{lang}.json"
DEFAULT_API_URL = "https://api.groq.com/openai/v1/chat/completions"
DEFAULT_MODEL = "llama-3.1-8b-instant"


def _as_bool(value: Any) -> bool:
    """Coerce INI strings (``"false"``, ``"0"``) as well as JSON bools/ints."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "on", "enabled")
    return bool(value)


@dataclass(frozen=True)
class GenerationConfig:
    """Immutable settings for the vocabulary-constrained generation engine.

    Attributes:
        policy:                   ``strict`` or ``tolerant`` correction policy.
        model:                    Chat model identifier sent to the LLM endpoint.
        api_url:                  Full chat-completions URL.
        api_key_env:              Name of the environment variable holding the
                                  bearer token.
        temperature:              Sampling temperature.
        max_tokens:               Completion token ceiling.
        timeout_seconds:          Timeout for each outbound HTTP call.
        request_deadline_seconds: Budget for the whole request (fetches plus
                                  both LLM calls).  ``0`` disables it.
        max_output_chars:         Character ceiling; ``0`` means the policy
                                  default (60 strict, 150 tolerant).
        slice_limit:              Maximum number of bank words shown to the model.
        retry_threshold:          OOV ratio above which the tolerant policy retries.
        max_corrections:          Corrective calls allowed per request (0 or 1).
        cumulative:               Union all tiers up to the requested level.
        bank_url_template:        ``str.format`` template with ``{lang}`` and ``{tier}``.
        rules_url_template:       ``str.format`` template with ``{lang}``.
        cache_max_entries:        Resource cache bound; ``0`` means unbounded.
        fallback_lines:           ``(language code, fallback sentence)`` pairs.
                                  A mapping is accepted and stored as pairs.
        persona_placeholder:      Name used when none can be read from the persona.
    """

    policy: RetryPolicy = RetryPolicy.TOLERANT
    model: str = DEFAULT_MODEL
    api_url: str = DEFAULT_API_URL
    api_key_env: str = "GROQ_API_KEY"
    temperature: float = 0.6
    max_tokens: int = 40
    timeout_seconds: float = 15.0
    request_deadline_seconds: float = 45.0
    max_output_chars: int = 0
    slice_limit: int = 200
    retry_threshold: float = 0.30
    max_corrections: int = 1
    cumulative: bool = True
    bank_url_template: str = DEFAULT_BANK_URL_TEMPLATE
    rules_url_template: str = DEFAULT_RULES_URL_TEMPLATE
    cache_max_entries: int = 256
    fallback_lines: tuple[tuple[str, str], ...] = tuple(DEFAULT_FALLBACK_LINES.items())
    persona_placeholder: str = "Personaje"

    def __post_init__(self) -> None:
        if not isinstance(self.policy, RetryPolicy):
            object.__setattr__(self, "policy", RetryPolicy(str(self.policy).strip().lower()))
        lines = self.fallback_lines
        pairs = lines.items() if isinstance(lines, Mapping) else lines
        object.__setattr__(self, "fallback_lines", tuple((str(k), str(v)) for k, v in pairs))
        if self.max_corrections not in (0, 1):
            raise ValueError(f"max_corrections must be 0 or 1, got {self.max_corrections}")
        if self.slice_limit < 0:
            raise ValueError("slice_limit must be >= 0")
        if self.max_output_chars < 0:
            raise ValueError("max_output_chars must be >= 0")
        if self.cache_max_entries < 0:
            raise ValueError("cache_max_entries must be >= 0")
        if not 0.0 <= self.retry_threshold <= 1.0:
            raise ValueError("retry_threshold must be between 0.0 and 1.0")

    @property
    def char_ceiling(self) -> int:
        """Effective character ceiling for generated lines."""
        return self.max_output_chars or self.policy.default_max_chars

    def fallback_for(self, lang_code: str) -> str:
        """Return the fallback line for ``lang_code``, defaulting to Spanish."""
        code = (lang_code or "").strip().lower()
        lines = dict(self.fallback_lines)
        return lines.get(code) or lines.get("es", DEFAULT_FALLBACK_LINES["es"])

    def with_policy(self, policy: RetryPolicy | str) -> GenerationConfig:
        """Return a copy of this config using ``policy``."""
        return dataclasses.replace(self, policy=RetryPolicy(policy))

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], *, fallbacks: dict[str, str] | None = None
    ) -> GenerationConfig:
        """Parse a ``[generation]`` block.

        Missing keys fall back to the dataclass defaults, so an empty dict
        produces a working tolerant configuration.  String values from
        ``configparser`` are coerced to the field types.

        Args:
            data:      Mapping of option name → value.
            fallbacks: Optional ``[fallbacks]`` block merged over the
                       built-in fallback lines.

        Returns:
            A fully-populated, frozen ``GenerationConfig``.

        Raises:
            ValueError: On an unknown policy or an out-of-range value.
        """
        defaults = cls()
        lines = dict(DEFAULT_FALLBACK_LINES)
        if fallbacks:
            lines.update({k.strip().lower(): v for k, v in fallbacks.items() if v})
        return cls(
            policy=RetryPolicy(str(data.get("policy", defaults.policy.value)).strip().lower()),
            model=str(data.get("model", defaults.model)),
            api_url=str(data.get("api_url", defaults.api_url)),
            api_key_env=str(data.get("api_key_env", defaults.api_key_env)),
            temperature=float(data.get("temperature", defaults.temperature)),
            max_tokens=int(data.get("max_tokens", defaults.max_tokens)),
            timeout_seconds=float(data.get("timeout_seconds", defaults.timeout_seconds)),
            request_deadline_seconds=float(
                data.get("request_deadline_seconds", defaults.request_deadline_seconds)
            ),
            max_output_chars=int(data.get("max_output_chars", defaults.max_output_chars)),
            slice_limit=int(data.get("slice_limit", defaults.slice_limit)),
            retry_threshold=float(data.get("retry_threshold", defaults.retry_threshold)),
            max_corrections=int(data.get("max_corrections", defaults.max_corrections)),
            cumulative=_as_bool(data.get("cumulative", defaults.cumulative)),
            bank_url_template=str(data.get("bank_url_template", defaults.bank_url_template)),
            rules_url_template=str(data.get("rules_url_template", defaults.rules_url_template)),
            cache_max_entries=int(data.get("cache_max_entries", defaults.cache_max_entries)),
            fallback_lines=lines,
            persona_placeholder=str(
                data.get("persona_placeholder", defaults.persona_placeholder)
            ),
        )
