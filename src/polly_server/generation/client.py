"""Chat-completions client for the generation engine.

``ChatCompletionClient`` is a thin async wrapper around an OpenAI-style
``/chat/completions`` endpoint (Groq by default).  It is the only place in
the engine that calls the LLM.

Request shape
-------------
One system message and one user message, fixed sampling parameters::

    {"model": ..., "temperature": 0.6, "max_tokens": 40,
     "messages": [{"role": "system", ...}, {"role": "user", ...}]}

Response handling
-----------------
The reply is read from ``choices[0].message.content``, stripped and cut to
the character ceiling.  A non-2xx status raises :class:`GenerationError`
carrying the remote body; transport failures (timeouts, refused
connections) are wrapped the same way.  Nothing is retried here; the
only retry in the engine is the compliance correction in the service.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from polly_server.generation.errors import GenerationError

logger = logging.getLogger(__name__)


def truncate(text: str, max_chars: int) -> str:
    """Cut ``text`` to at most ``max_chars`` characters."""
    return text[:max_chars] if max_chars and len(text) > max_chars else text


class ChatCompletionClient:
    """Async client for the LLM chat endpoint.

    Attributes:
        _api_url:     Full chat-completions URL.
        _api_key:     Bearer token; ``None`` sends no Authorization header.
        _model:       Model identifier.
        _temperature: Sampling temperature.
        _max_tokens:  Completion token ceiling.
        _timeout:     HTTP timeout in seconds.
        _http_client: Optional shared ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        *,
        api_url: str,
        model: str,
        api_key: str | None = None,
        temperature: float = 0.6,
        max_tokens: int = 40,
        timeout_seconds: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout_seconds
        self._http_client = http_client

    async def generate(self, system_prompt: str, user_message: str, *, max_chars: int) -> str:
        """Request one completion and return the trimmed, truncated text.

        Args:
            system_prompt: Persona, identity lock and constraints.
            user_message:  Bank slice, topic and player utterance (or a
                           correction request).
            max_chars:     Character ceiling applied to the reply.

        Returns:
            The reply text; may be ``""`` if the model returned nothing.

        Raises:
            GenerationError: On transport failure or a non-2xx response.
        """
        return truncate(await self.complete(system_prompt, user_message), max_chars)

    async def complete(self, system_prompt: str, user_message: str) -> str:
        """Request one completion and return the stripped, untruncated text.

        Raises:
            GenerationError: On transport failure or a non-2xx response.
        """
        payload = self._build_payload(system_prompt, user_message)
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self._api_url, json=payload, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._api_url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning(
                "ChatCompletionClient: request timed out after %.1fs (endpoint=%s)",
                self._timeout,
                self._api_url,
            )
            raise GenerationError(
                detail=f"LLM request timed out after {self._timeout:.1f}s"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("ChatCompletionClient: cannot reach %s: %s", self._api_url, exc)
            raise GenerationError(detail=f"LLM unreachable: {exc}") from exc

        if not response.is_success:
            logger.warning(
                "ChatCompletionClient: HTTP %d from %s", response.status_code, self._api_url
            )
            raise GenerationError(detail=response.text, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationError(detail="LLM returned invalid JSON") from exc

        return _extract_content(data).strip()

    def _build_payload(self, system_prompt: str, user_message: str) -> dict[str, Any]:
        return {
            "model": self._model,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
        }


def _extract_content(data: Any) -> str:
    """Read ``choices[0].message.content``, tolerating missing pieces."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""
