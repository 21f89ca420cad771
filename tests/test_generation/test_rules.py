"""Tests for CEFR mapping and level guidance loading."""

import httpx
import pytest
import respx

from polly_server.generation.cache import ResourceCache
from polly_server.generation.config import DEFAULT_RULES_URL_TEMPLATE
from polly_server.generation.errors import FetchError
from polly_server.generation.rules import LevelRuleTable, RuleStore, guidance_key, to_cefr
from tests.constants import RULES_ES, RULES_URL


def _store() -> RuleStore:
    return RuleStore(cache=ResourceCache(), url_template=DEFAULT_RULES_URL_TEMPLATE)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("level", "cefr"),
    [("1", "A1"), ("2", "A2"), ("3", "B1"), ("4", "B2"), ("5", "C1"), ("3000", "B1"), (5, "C1")],
)
def test_to_cefr(level, cefr):
    assert to_cefr(level) == cefr


@pytest.mark.unit
def test_unmapped_levels():
    assert to_cefr("6") == ""
    assert to_cefr("A2") == ""
    assert guidance_key("A2") == "A2"
    assert guidance_key("2") == "A2"


@pytest.mark.unit
class TestLevelRuleTable:
    def test_guidance_lookup(self):
        table = LevelRuleTable("es", RULES_ES)

        assert table.guidance("1") == RULES_ES["A1"]
        assert table.guidance("A2") == RULES_ES["A2"]
        assert table.guidance("C2") == ""

    def test_read_only(self):
        table = LevelRuleTable("es", RULES_ES)

        with pytest.raises(TypeError):
            table._rules["A1"] = "changed"  # type: ignore[index]
        assert dict(table) == RULES_ES


@pytest.mark.unit
class TestRuleStore:
    @pytest.mark.asyncio
    @respx.mock
    async def test_fetched_once_per_language(self):
        route = respx.get(RULES_URL).mock(return_value=httpx.Response(200, json=RULES_ES))
        store = _store()

        first = await store.load_rules("es")
        second = await store.load_rules("es")

        assert first is second
        assert first.guidance("1") == RULES_ES["A1"]
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_success_raises(self):
        respx.get(RULES_URL).mock(return_value=httpx.Response(500))

        with pytest.raises(FetchError):
            await _store().load_rules("es")

    @pytest.mark.asyncio
    @respx.mock
    async def test_array_payload_rejected(self):
        respx.get(RULES_URL).mock(return_value=httpx.Response(200, json=["A1"]))

        with pytest.raises(FetchError):
            await _store().load_rules("es")
