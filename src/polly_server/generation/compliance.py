"""Out-of-vocabulary detection."""

from __future__ import annotations

from collections.abc import Container

from polly_server.generation.errors import ComplianceFailure
from polly_server.generation.normalizer import normalize


def check_compliance(text: str, bank: Container[str]) -> list[str]:
    """Return the tokens of ``text`` missing from ``bank``.

    Tokens come from :func:`~polly_server.generation.normalizer.normalize`;
    the result keeps first-seen order with duplicates removed.  An empty
    list means the text is fully in-bank.
    """
    return list(dict.fromkeys(t for t in normalize(text) if t not in bank))


def assess(text: str, bank: Container[str]) -> ComplianceFailure | None:
    """Return a :class:`ComplianceFailure` for ``text``, or ``None`` if compliant."""
    tokens = normalize(text)
    oov = tuple(dict.fromkeys(t for t in tokens if t not in bank))
    if not oov:
        return None
    return ComplianceFailure(oov=oov, token_count=len(tokens))


def oov_ratio(text: str, bank: Container[str]) -> float:
    """Distinct OOV tokens divided by total tokens (``0.0`` for empty text)."""
    failure = assess(text, bank)
    return failure.ratio if failure else 0.0
