"""System and user prompt composition.

``PromptComposer`` is pure string assembly: it never touches the network
or the caches.  The system prompt carries, in order:

1. the persona description,
2. the identity lock naming the character,
3. the language restriction,
4. the level guidance text (omitted when empty; labelled ``CEFR <level>:``
   under the strict policy),
5. the vocabulary instruction (wording depends on the retry policy),
6. the length ceiling and the formatting ban.

The user message labels the vocabulary slice, the topic and the player's
utterance on separate lines.  Corrective retries reuse the system prompt
and replace the user message with one that lists the offending words.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from polly_server.generation.config import RetryPolicy


@dataclass(frozen=True)
class PromptPair:
    """The two messages sent to the chat endpoint for one attempt."""

    system: str
    user: str


@dataclass(frozen=True)
class PromptContext:
    """Everything the composer needs for one request.

    Attributes:
        persona:   Persona description.
        name:      Display name from :func:`~polly_server.generation.persona.extract_name`.
        language:  Target language name (``"Spanish"``).
        level:     Level key as supplied by the caller.
        cefr:      CEFR label for ``level`` (``""`` when unmapped).
        guidance:  Level guidance text (``""`` when unavailable).
        slice:     Vocabulary slice shown to the model.
        topic:     Topic text.
        utterance: The player's message.
    """

    persona: str
    name: str
    language: str
    level: str
    cefr: str
    guidance: str
    slice: Sequence[str]
    topic: str
    utterance: str


class PromptComposer:
    """Builds prompt text for a given policy and character ceiling."""

    def __init__(self, *, policy: RetryPolicy, max_chars: int) -> None:
        self._policy = policy
        self._max_chars = max_chars

    def system_prompt(self, ctx: PromptContext) -> str:
        parts = [
            f"You are {ctx.persona}.",
            f'Your fixed personal name is "{ctx.name}".',
            (
                'If the player asks who you are, your name, or "what are you called", '
                f'clearly say your name (e.g., "Me llamo {ctx.name}", "Soy {ctx.name}", '
                f"or the correct equivalent in {ctx.language})."
            ),
            'Never answer with only a pronoun like "yo/ella/él" instead of your name.',
            f"Speak only {ctx.language}.",
        ]
        if ctx.guidance:
            guidance = ctx.guidance.strip()
            if self._policy is RetryPolicy.STRICT:
                guidance = f"CEFR {ctx.cefr or ctx.level}: {guidance}"
            parts.append(guidance)
        parts.append(self._vocabulary_instruction(ctx))
        parts.append(
            f"One sentence, <={self._max_chars} characters. "
            "No emojis/quotes/prefixes. Stay in character."
        )
        return " ".join(parts)

    def user_message(self, ctx: PromptContext) -> str:
        return "\n".join(
            [
                self._bank_line(ctx),
                f"TOPIC: {ctx.topic}",
                f"PLAYER: {ctx.utterance}",
            ]
        )

    def correction_message(self, ctx: PromptContext, oov: Sequence[str], original: str) -> str:
        """User message for the corrective retry.

        Lists the out-of-vocabulary words and asks for bank synonyms while
        keeping the meaning of ``original``.
        """
        offending = ", ".join(oov)
        if self._policy is RetryPolicy.STRICT:
            fix = f"Rewrite without: {offending}. Use only BANK words. Keep meaning."
        else:
            fix = (
                "Rewrite using mainly BANK words. "
                f"Replace outside words ({offending}) with close BANK synonyms when possible. "
                "Keep meaning."
            )
        return "\n".join([self._bank_line(ctx), fix, f"Original: {original}"])

    def compose(self, ctx: PromptContext) -> PromptPair:
        return PromptPair(system=self.system_prompt(ctx), user=self.user_message(ctx))

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _vocabulary_instruction(self, ctx: PromptContext) -> str:
        if self._policy is RetryPolicy.STRICT:
            return "Use ONLY BANK words when possible; paraphrase to stay in level."
        return (
            f"Prefer using only the BANK vocabulary for Level {ctx.level} "
            f"({ctx.cefr or 'no CEFR'}). Paraphrase to stay in level; if a key word "
            "is missing, you may use simple outside words sparingly."
        )

    @staticmethod
    def _bank_line(ctx: PromptContext) -> str:
        return f"BANK (Level {ctx.level}): {', '.join(ctx.slice)}"


def freeform_system_prompt(persona: str, language: str, max_chars: int) -> str:
    """System prompt for the unconstrained chat endpoint (no bank, no rules)."""
    return (
        f"You are {persona}. Reply only in {language}. "
        f"One sentence, <={max_chars} chars, no emojis, no quotes, no prefixes."
    )
