"""Vocabulary bank loading.

A *bank* is the set of normalised words a learner at a given level is
expected to know.  Banks are published as JSON arrays, one file per
language and 1000-word tier::

    https://pollylang.app/wordbanks/es/es_1000.json
    https://pollylang.app/wordbanks/es/es_2000.json
    ...

Level resolution
----------------
``resolve_tier`` turns the caller's level key into a word-count tier:

- ``"3"``     → ``3000``  (numeric levels below 1000 are multiplied)
- ``"4000"``  → ``4000``  (already a word count)
- ``"A2"``, ``""``, ``"0"``, ``"-2"`` → ``1000``  (anything else is the
  smallest tier)

Cumulative mode
---------------
With ``cumulative=True`` the bank for tier N is the union of every
sub-bank from 1000 up to N.  Sub-banks are cached individually under
``("bank", lang, tier)`` and never mutated; the union is a fresh
``VocabularyBank``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

import httpx

from polly_server.generation.cache import ResourceCache
from polly_server.generation.errors import FetchError
from polly_server.generation.fetch import fetch_json
from polly_server.generation.normalizer import fold_word

logger = logging.getLogger(__name__)

TIER_SIZE = 1000

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def resolve_tier(level: str | int | None) -> int:
    """Map a level key to a word-count tier (see module docstring)."""
    match = _LEADING_INT_RE.match(str(level if level is not None else ""))
    if match is None:
        return TIER_SIZE
    value = int(match.group(1))
    if value <= 0:
        return TIER_SIZE
    return value if value >= TIER_SIZE else value * TIER_SIZE


@dataclass(frozen=True)
class VocabularyBank:
    """Immutable, ordered set of folded words for one language and level.

    Membership checks go through a frozenset; iteration follows the order of
    the published word lists (lower tiers first, each file in its own
    order), so slice filling favours the most frequent words.

    Attributes:
        lang:  Language code.
        tier:  Word-count tier the bank was resolved to.
        words: Distinct words in publication order.
    """

    lang: str
    tier: int
    words: tuple[str, ...]
    _members: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_members", frozenset(self.words))

    def __contains__(self, word: object) -> bool:
        return word in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(self.words)

    def __len__(self) -> int:
        return len(self.words)

    @property
    def members(self) -> frozenset[str]:
        return self._members

    @classmethod
    def union(cls, lang: str, tier: int, banks: Iterable[VocabularyBank]) -> VocabularyBank:
        """Build a new bank from ``banks`` in order, dropping repeats."""
        merged: dict[str, None] = {}
        for bank in banks:
            merged.update(dict.fromkeys(bank.words))
        return cls(lang=lang, tier=tier, words=tuple(merged))


class BankStore:
    """Loads and caches vocabulary banks per (language, tier).

    Attributes:
        _cache:        Shared resource cache.
        _url_template: ``str.format`` template with ``{lang}`` and ``{tier}``.
        _cumulative:   Union all tiers up to the requested one.
        _timeout:      Per-fetch HTTP timeout in seconds.
        _http_client:  Optional shared client (tests inject one).
    """

    def __init__(
        self,
        *,
        cache: ResourceCache,
        url_template: str,
        cumulative: bool = True,
        timeout_seconds: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._cache = cache
        self._url_template = url_template
        self._cumulative = cumulative
        self._timeout = timeout_seconds
        self._http_client = http_client

    @property
    def cumulative(self) -> bool:
        return self._cumulative

    def bank_url(self, lang: str, tier: int) -> str:
        """Resource URL of one sub-bank."""
        return self._url_template.format(lang=lang, tier=tier)

    async def load_bank(self, lang: str, level: str | int | None) -> VocabularyBank:
        """Return the bank for ``lang`` at ``level``.

        Args:
            lang:  Language code (``"es"``).
            level: Level key, numeric or symbolic.

        Returns:
            The resolved (possibly cumulative) bank.

        Raises:
            FetchError: If any required sub-bank cannot be fetched.
        """
        tier = resolve_tier(level)
        if not self._cumulative:
            return await self.load_tier(lang, tier)

        sub_banks = [
            await self.load_tier(lang, sub_tier)
            for sub_tier in range(TIER_SIZE, tier + 1, TIER_SIZE)
        ]
        if len(sub_banks) == 1:
            return sub_banks[0]
        return VocabularyBank.union(lang, tier, sub_banks)

    async def load_tier(self, lang: str, tier: int) -> VocabularyBank:
        """Return exactly one tier's word list, fetching it on first use."""

        async def _load() -> VocabularyBank:
            url = self.bank_url(lang, tier)
            data = await fetch_json(url, timeout=self._timeout, http_client=self._http_client)
            if not isinstance(data, list):
                raise FetchError(url=url, detail="expected a JSON array of words")
            folded = (fold_word(item) for item in data if isinstance(item, str))
            words = tuple(dict.fromkeys(w for w in folded if w))
            bank = VocabularyBank(lang=lang, tier=tier, words=words)
            logger.debug("BankStore: loaded %s tier %d (%d words)", lang, tier, len(bank))
            return bank

        return await self._cache.get_or_load(("bank", lang, tier), _load)
