"""Persona name extraction for the identity lock.

Personas arrive as free text such as ``"Marta, baker from Sevilla"`` or
``"Soy Luis. Vivo en Quito."``.  The identity lock in the system prompt
needs a single display name so the model answers "what is your name?"
with that name instead of a pronoun.
"""

from __future__ import annotations

import re

DEFAULT_PLACEHOLDER = "Personaje"

_CLAUSE_BREAK_RE = re.compile(r"[,.\n]")
_QUOTES = "\"'“”«»"

# Self-introduction openers, matched case-insensitively at the start.
_SELF_INTRO_RE = re.compile(
    r"^(?:soy|i am|i'm|je suis|ich bin|sono|eu sou|sou)\s+",
    re.IGNORECASE,
)


def extract_name(persona: str, *, placeholder: str = DEFAULT_PLACEHOLDER) -> str:
    """Derive a stable display name from a persona description.

    Steps: take the text before the first comma, period or newline; strip
    wrapping quotes and a leading self-introduction ("I am", "Soy", ...);
    return the first remaining whitespace-delimited token.

    Args:
        persona:     Free-text persona description.
        placeholder: Returned when no name can be found.

    Returns:
        The name guess, e.g. ``"Marta"``.
    """
    text = (persona or "").strip()
    first_clause = _CLAUSE_BREAK_RE.split(text, maxsplit=1)[0].strip() or text
    cleaned = first_clause.strip(_QUOTES).strip()
    cleaned = _SELF_INTRO_RE.sub("", cleaned).strip().strip(_QUOTES)
    parts = cleaned.split()
    name = parts[0].strip(_QUOTES) if parts else ""
    return name or placeholder
