"""Tests for the root and health endpoints."""

import pytest

import polly_server
from polly_server.generation import GenerationConfig, NPCDialogueService
from tests.doubles import ScriptedLLM


@pytest.mark.api
class TestHealth:
    def test_root_reports_version(self, make_client):
        service = NPCDialogueService(GenerationConfig(), llm=ScriptedLLM())
        client = make_client(service)

        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {
            "message": "Polly NPC Dialogue API",
            "version": polly_server.__version__,
        }

    def test_health_reports_policy_and_cache(self, make_client):
        service = NPCDialogueService(
            GenerationConfig(policy="strict", cache_max_entries=32), llm=ScriptedLLM()
        )
        service.cache.put(("bank", "es", 1000), frozenset({"hola"}))
        client = make_client(service)

        data = client.get("/health").json()

        assert data["status"] == "ok"
        assert data["policy"] == "strict"
        assert data["char_ceiling"] == 60
        assert data["cache"]["entries"] == 1
        assert data["cache"]["max_entries"] == 32
