"""Text normalisation shared by bank loading and compliance checking.

Bank words and generated replies must be compared in the same space, so
both go through the same two steps:

1. ``fold``      — Unicode NFD decomposition, combining marks dropped,
                   lowercased.  ``"Canción"`` → ``"cancion"``.
2. ``normalize`` — ``fold`` followed by extraction of maximal runs of Latin
                   letters.  Punctuation, digits and whitespace separate
                   tokens.

Both functions are pure and idempotent: normalising the joined output of
``normalize`` yields the same token list.
"""

from __future__ import annotations

import re
import unicodedata

# Latin letters plus the accented letters of the target languages.  Folded
# input never contains the accented ones.
_WORD_RE = re.compile(r"[a-záéíóúñü]+", re.IGNORECASE)


def fold(text: str) -> str:
    """Strip diacritics and lowercase ``text``."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(text: str) -> list[str]:
    """Return the word-like tokens of ``text`` after folding.

    Args:
        text: Arbitrary user, persona, topic or model text.

    Returns:
        Tokens in order of appearance, duplicates preserved.
    """
    if not text:
        return []
    return _WORD_RE.findall(fold(text))


def fold_word(word: str) -> str:
    """Fold a single bank entry, trimming surrounding whitespace."""
    return fold(word).strip()
