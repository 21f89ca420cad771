"""Typed upstream failures for the generation engine.

Two hard failures exist, one per external dependency:

- ``FetchError``      — a vocabulary bank or level-rule resource could not
                        be retrieved (connection failure or non-2xx status).
- ``GenerationError`` — the LLM chat endpoint could not be reached, returned
                        a non-2xx status, or the request deadline expired.

Both propagate unmodified to the HTTP boundary, which maps them to a
``502`` carrying ``str(exc)``.

``ComplianceFailure`` is *not* an exception.  An out-of-vocabulary reply is
resolved inside the service by a corrective retry or a fallback line, and
is only ever visible as a :class:`~polly_server.generation.service.DialogueOutcome`.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class FetchError(Exception):
    """Raised when a bank or rule resource cannot be fetched.

    Attributes:
        url:         The resource URL that failed.
        status_code: HTTP status returned, or ``0`` for transport failures.
        detail:      Extra context (response body excerpt or transport error).
    """

    url: str
    status_code: int = 0
    detail: str = ""

    def __str__(self) -> str:
        if self.status_code:
            return f"fetch {self.url}: {self.status_code}"
        if self.detail:
            return f"fetch {self.url}: {self.detail}"
        return f"fetch {self.url}: unreachable"


@dataclass
class GenerationError(Exception):
    """Raised when the LLM chat endpoint fails.

    ``detail`` carries the remote error body verbatim so the HTTP layer can
    surface the provider's own explanation.
    """

    detail: str
    status_code: int = 0

    def __str__(self) -> str:
        return self.detail or "LLM error"


@dataclass(frozen=True)
class ComplianceFailure:
    """Out-of-vocabulary report for one generated reply.

    Attributes:
        oov:         Offending tokens in first-seen order.
        token_count: Total number of tokens in the reply.
    """

    oov: tuple[str, ...] = field(default_factory=tuple)
    token_count: int = 0

    @property
    def ratio(self) -> float:
        """Share of tokens that fall outside the bank (``0.0`` for empty text)."""
        return len(self.oov) / self.token_count if self.token_count else 0.0
