"""Tests for dynamic version management.

Verifies that ``polly_server.__version__`` is resolved from the installed
package metadata (``pyproject.toml``) and that the FastAPI app and the
root ``/`` endpoint report the same value.
"""

from __future__ import annotations

import re

import pytest
from fastapi.testclient import TestClient

import polly_server
from polly_server.generation import GenerationConfig, NPCDialogueService
from tests.doubles import ScriptedLLM

# Matches semver-ish strings: major.minor.patch with optional pre-release
# suffix (e.g. "0.1.0", "1.0.0-rc.1").
_SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+(-[A-Za-z0-9]+(\.[A-Za-z0-9]+)*)?$")


@pytest.mark.unit
class TestVersionAttribute:
    """Verify the ``polly_server.__version__`` package attribute."""

    def test_version_is_a_string(self) -> None:
        assert isinstance(polly_server.__version__, str)
        assert polly_server.__version__

    def test_version_matches_semver(self) -> None:
        assert _SEMVER_RE.match(polly_server.__version__), (
            f"__version__ {polly_server.__version__!r} does not match "
            f"expected semver pattern (major.minor.patch[-prerelease])"
        )


@pytest.mark.api
class TestVersionInApp:
    """Verify version consistency across the FastAPI app surfaces."""

    def test_openapi_and_root_agree(self, server_config, make_client) -> None:
        service = NPCDialogueService(GenerationConfig(), llm=ScriptedLLM())
        client: TestClient = make_client(service)

        assert client.app.version == polly_server.__version__
        assert client.get("/").json()["version"] == polly_server.__version__
