"""Polly NPC dialogue server.

Produces short, in-character NPC lines for a language-learning game.  Every
line is generated by an external LLM and then checked against a
level-appropriate vocabulary bank so that learners only meet words they are
expected to know.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("polly-server")
except PackageNotFoundError:
    __version__ = "0.1.0"
