"""CEFR-style level guidance.

Each language publishes one JSON object mapping a level key to a short
instructional paragraph (``{"A1": "Use present tense only ...", ...}``).
Guidance is advisory: an unknown level yields ``""`` and the service
treats a failed fetch as "no guidance available".
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType

import httpx

from polly_server.generation.cache import ResourceCache
from polly_server.generation.errors import FetchError
from polly_server.generation.fetch import fetch_json

logger = logging.getLogger(__name__)

# Numeric levels and their word-count equivalents share CEFR labels.
_NUMERIC_TO_CEFR: dict[str, str] = {
    "1": "A1",
    "2": "A2",
    "3": "B1",
    "4": "B2",
    "5": "C1",
    "1000": "A1",
    "2000": "A2",
    "3000": "B1",
    "4000": "B2",
    "5000": "C1",
}


def to_cefr(level: str | int | None) -> str:
    """Return the CEFR label for a numeric level, or ``""`` if unmapped."""
    return _NUMERIC_TO_CEFR.get(str(level if level is not None else "").strip(), "")


def guidance_key(level: str | int | None) -> str:
    """Key used to look up guidance: the CEFR label, else the level verbatim."""
    return to_cefr(level) or str(level if level is not None else "").strip()


class LevelRuleTable(Mapping[str, str]):
    """Read-only level → guidance mapping for one language.

    Lookups of unknown keys through :meth:`guidance` return ``""``.
    """

    def __init__(self, lang: str, rules: Mapping[str, str]) -> None:
        self.lang = lang
        self._rules = MappingProxyType({str(k): str(v) for k, v in rules.items()})

    def __getitem__(self, key: str) -> str:
        return self._rules[key]

    def __iter__(self):
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def guidance(self, level: str | int | None) -> str:
        return self._rules.get(guidance_key(level), "")


class RuleStore:
    """Loads and caches one :class:`LevelRuleTable` per language."""

    def __init__(
        self,
        *,
        cache: ResourceCache,
        url_template: str,
        timeout_seconds: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._cache = cache
        self._url_template = url_template
        self._timeout = timeout_seconds
        self._http_client = http_client

    def rules_url(self, lang: str) -> str:
        return self._url_template.format(lang=lang)

    async def load_rules(self, lang: str) -> LevelRuleTable:
        """Return the rule table for ``lang``, fetching it on first use.

        Raises:
            FetchError: If the resource is unreachable, returns a non-2xx
                status, or is not a JSON object.
        """

        async def _load() -> LevelRuleTable:
            url = self.rules_url(lang)
            data = await fetch_json(url, timeout=self._timeout, http_client=self._http_client)
            if not isinstance(data, dict):
                raise FetchError(url=url, detail="expected a JSON object")
            logger.debug("RuleStore: loaded %s (%d levels)", lang, len(data))
            return LevelRuleTable(lang, data)

        return await self._cache.get_or_load(("rules", lang), _load)
