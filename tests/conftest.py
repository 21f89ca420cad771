"""
Shared pytest fixtures for the Polly server test suite.

This module provides fixtures that are automatically available to all test files:
- Small Spanish vocabulary banks and a level rule table
- A ready-to-use ``NPCDialogueService`` with a scripted LLM and a warm cache
- A FastAPI ``TestClient`` factory wired to a given service

No fixture touches the network.  Tests that exercise real HTTP paths use
``respx`` to mock ``httpx`` traffic.
"""

import logging

import pytest
from fastapi.testclient import TestClient

from polly_server.config import ServerConfig
from polly_server.generation.banks import VocabularyBank
from polly_server.generation.config import GenerationConfig, RetryPolicy
from polly_server.generation.rules import LevelRuleTable
from polly_server.generation.service import NPCDialogueService
from tests.constants import RULES_ES, TIER_1000_WORDS, TIER_2000_WORDS
from tests.doubles import ScriptedLLM, seeded_cache

# ============================================================================
# VOCABULARY FIXTURES
# ============================================================================


@pytest.fixture
def bank_1000() -> VocabularyBank:
    """Spanish tier-1000 bank in publication order."""
    return VocabularyBank(lang="es", tier=1000, words=TIER_1000_WORDS)


@pytest.fixture
def bank_2000() -> VocabularyBank:
    """Spanish tier-2000 sub-bank (overlaps tier 1000 on articles)."""
    return VocabularyBank(lang="es", tier=2000, words=TIER_2000_WORDS)


@pytest.fixture
def rules_es() -> LevelRuleTable:
    return LevelRuleTable("es", RULES_ES)


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def make_service(bank_1000, bank_2000, rules_es):
    """Factory building a service with a scripted LLM and a warm cache.

    Usage::

        service, llm = make_service("Hola, soy Marta.", policy="strict")

    Keyword arguments other than ``cache`` are forwarded to
    ``GenerationConfig``.
    """

    def _make(*replies, cache=None, **config_kwargs):
        config_kwargs.setdefault("policy", RetryPolicy.TOLERANT)
        config = GenerationConfig(**config_kwargs)
        llm = ScriptedLLM(*replies)
        if cache is None:
            cache = seeded_cache(bank_1000, bank_2000, rules=rules_es)
        service = NPCDialogueService(config, cache=cache, llm=llm)
        return service, llm

    return _make


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture
def server_config() -> ServerConfig:
    """Built-in defaults only; no INI file or environment involved."""
    return ServerConfig()


@pytest.fixture
def make_client(server_config):
    """Factory returning a ``TestClient`` around ``create_app``.

    ``create_app`` installs a root log handler; it is removed afterwards.
    """
    from polly_server.api.server import create_app

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level

    def _make(service) -> TestClient:
        return TestClient(create_app(server_config, service=service))

    yield _make

    root.handlers[:] = handlers
    root.setLevel(level)
