"""
Tests for the dialogue endpoints (/api/generate, /api/chat).

Tests cover:
- Request defaults and field mapping (langCode, numeric level, null values)
- Policy override field
- 502 mapping of upstream failures
- Method restrictions and CORS preflight
"""

from unittest.mock import AsyncMock

import pytest

from polly_server.generation import (
    DialogueOutcome,
    DialogueRequest,
    DialogueResult,
    FetchError,
    GenerationError,
    NPCDialogueService,
    RetryPolicy,
)


def _mock_service() -> AsyncMock:
    service = AsyncMock(spec=NPCDialogueService)
    service.generate.return_value = DialogueResult(
        text="Hola, soy María.", outcome=DialogueOutcome.COMPLIANT
    )
    service.chat.return_value = "¡Hola!"
    return service


# ============================================================================
# /api/generate
# ============================================================================


@pytest.mark.api
class TestGenerateEndpoint:
    def test_returns_text(self, make_client):
        service = _mock_service()
        client = make_client(service)

        response = client.post("/api/generate", json={"user": "Hola"})

        assert response.status_code == 200
        assert response.json() == {"text": "Hola, soy María."}

    def test_empty_body_uses_defaults(self, make_client):
        service = _mock_service()
        client = make_client(service)

        response = client.post("/api/generate")

        assert response.status_code == 200
        request = service.generate.call_args.args[0]
        assert request == DialogueRequest()
        assert request.persona.startswith("María")
        assert request.utterance == "Greet the player."

    def test_fields_mapped(self, make_client):
        service = _mock_service()
        client = make_client(service)

        client.post(
            "/api/generate",
            json={
                "persona": "Marta, baker from Sevilla",
                "language": "Spanish",
                "langCode": "es",
                "level": 2,
                "topic": "pan",
                "user": "Hola",
            },
        )

        request = service.generate.call_args.args[0]
        assert request == DialogueRequest(
            persona="Marta, baker from Sevilla",
            language="Spanish",
            lang_code="es",
            level="2",
            topic="pan",
            utterance="Hola",
        )
        assert service.generate.call_args.kwargs["policy"] is None

    def test_null_fields_fall_back_to_defaults(self, make_client):
        service = _mock_service()
        client = make_client(service)

        client.post("/api/generate", json={"persona": None, "langCode": None})

        request = service.generate.call_args.args[0]
        assert request.lang_code == "es"
        assert request.persona == DialogueRequest().persona

    def test_policy_override(self, make_client):
        service = _mock_service()
        client = make_client(service)

        client.post("/api/generate", json={"policy": "strict"})

        assert service.generate.call_args.kwargs["policy"] is RetryPolicy.STRICT

    def test_unknown_policy_rejected(self, make_client):
        client = make_client(_mock_service())

        response = client.post("/api/generate", json={"policy": "lenient"})

        assert response.status_code == 422

    def test_fetch_error_maps_to_502(self, make_client):
        service = _mock_service()
        service.generate.side_effect = FetchError(
            url="https://pollylang.app/wordbanks/es/es_1000.json", status_code=404
        )
        client = make_client(service)

        response = client.post("/api/generate", json={})

        assert response.status_code == 502
        assert response.json() == {
            "error": "fetch https://pollylang.app/wordbanks/es/es_1000.json: 404"
        }

    def test_generation_error_maps_to_502(self, make_client):
        service = _mock_service()
        service.generate.side_effect = GenerationError(detail='{"error":"invalid key"}')
        client = make_client(service)

        response = client.post("/api/generate", json={})

        assert response.status_code == 502
        assert response.json() == {"error": '{"error":"invalid key"}'}

    @pytest.mark.parametrize("method", ["get", "put", "delete"])
    def test_non_post_is_405(self, make_client, method):
        service = _mock_service()
        client = make_client(service)

        response = getattr(client, method)("/api/generate")

        assert response.status_code == 405
        service.generate.assert_not_called()


# ============================================================================
# /api/chat
# ============================================================================


@pytest.mark.api
class TestChatEndpoint:
    def test_returns_text(self, make_client):
        service = _mock_service()
        client = make_client(service)

        response = client.post(
            "/api/chat", json={"persona": "Luis", "language": "Spanish", "user": "Hola"}
        )

        assert response.status_code == 200
        assert response.json() == {"text": "¡Hola!"}
        service.chat.assert_awaited_once_with("Luis", "Spanish", "Hola")

    def test_missing_fields_are_empty(self, make_client):
        service = _mock_service()
        client = make_client(service)

        client.post("/api/chat", json={})

        service.chat.assert_awaited_once_with("", "", "")

    def test_generation_error_maps_to_502(self, make_client):
        service = _mock_service()
        service.chat.side_effect = GenerationError(detail="Groq error: overloaded")
        client = make_client(service)

        response = client.post("/api/chat", json={"user": "Hola"})

        assert response.status_code == 502
        assert response.json() == {"error": "Groq error: overloaded"}

    def test_get_is_405(self, make_client):
        assert make_client(_mock_service()).get("/api/chat").status_code == 405


# ============================================================================
# CORS
# ============================================================================


@pytest.mark.api
class TestCors:
    def test_preflight_allowed_origin(self, make_client):
        client = make_client(_mock_service())

        response = client.options(
            "/api/generate",
            headers={
                "Origin": "https://pollylang.app",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "https://pollylang.app"
        assert "POST" in response.headers["access-control-allow-methods"]
        assert response.headers["access-control-max-age"] == "86400"

    def test_preflight_unknown_origin_rejected(self, make_client):
        client = make_client(_mock_service())

        response = client.options(
            "/api/generate",
            headers={
                "Origin": "https://evil.example",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 400
        assert "access-control-allow-origin" not in response.headers

    def test_simple_request_echoes_origin(self, make_client):
        client = make_client(_mock_service())

        response = client.post(
            "/api/generate", json={}, headers={"Origin": "http://localhost:5173"}
        )

        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
