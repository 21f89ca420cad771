"""Topic-aware vocabulary slice selection.

Banks hold thousands of words; the prompt only shows ``limit`` of them.
Topic words that are in the bank go first, in the order the topic
mentions them, then the rest of the bank fills the remaining room in bank
order.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable


def select_slice(bank: Collection[str], topic_tokens: Iterable[str], limit: int) -> list[str]:
    """Pick at most ``limit`` distinct bank words, topic words first.

    Args:
        bank:         The active vocabulary bank (membership + iteration).
        topic_tokens: Normalised topic tokens, in topic order.
        limit:        Maximum slice size.

    Returns:
        Distinct bank members; never longer than ``limit``.
    """
    if limit <= 0:
        return []

    chosen: dict[str, None] = {}
    for token in topic_tokens:
        if len(chosen) >= limit:
            return list(chosen)
        if token in bank:
            chosen[token] = None

    for word in bank:
        if len(chosen) >= limit:
            break
        chosen.setdefault(word, None)
    return list(chosen)
