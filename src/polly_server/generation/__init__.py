"""Vocabulary-constrained NPC line generation.

Given a persona, a target language, a proficiency level, a topic and the
player's utterance, the engine asks an external LLM for one short sentence
and keeps it inside the vocabulary bank for that level.

Package structure
-----------------
config.py       GenerationConfig, RetryPolicy — frozen engine settings.
errors.py       FetchError, GenerationError, ComplianceFailure.
normalizer.py   fold / normalize — accent stripping and tokenisation.
cache.py        ResourceCache — bounded LRU with single-flight loading.
fetch.py        fetch_json — async JSON GET shared by both stores.
banks.py        BankStore, VocabularyBank — per-tier word lists, cumulative unions.
rules.py        RuleStore, LevelRuleTable — CEFR-style guidance per language.
persona.py      extract_name — display name for the identity lock.
slicer.py       select_slice — topic-first bounded vocabulary slice.
prompts.py      PromptComposer — system/user/correction messages.
client.py       ChatCompletionClient — async chat-completions call.
compliance.py   check_compliance / assess — out-of-vocabulary detection.
service.py      NPCDialogueService — orchestration and the retry policy.

Typical call flow
-----------------
1. ``POST /api/generate`` builds a ``DialogueRequest``.
2. ``service.generate(request)`` loads bank + guidance (cached).
3. The composer builds prompts; the client calls the LLM.
4. The reply is checked against the bank; at most one correction follows.
5. The final, truncated text is returned as ``{"text": ...}``.
"""

from polly_server.generation.config import GenerationConfig, RetryPolicy
from polly_server.generation.errors import FetchError, GenerationError
from polly_server.generation.service import (
    DialogueOutcome,
    DialogueRequest,
    DialogueResult,
    NPCDialogueService,
)

__all__ = [
    "DialogueOutcome",
    "DialogueRequest",
    "DialogueResult",
    "FetchError",
    "GenerationConfig",
    "GenerationError",
    "NPCDialogueService",
    "RetryPolicy",
]
