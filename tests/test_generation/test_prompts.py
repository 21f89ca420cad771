"""Tests for system/user prompt composition."""

import pytest

from polly_server.generation.config import RetryPolicy
from polly_server.generation.prompts import (
    PromptComposer,
    PromptContext,
    freeform_system_prompt,
)


def _ctx(**overrides) -> PromptContext:
    data = {
        "persona": "Marta, baker from Sevilla",
        "name": "Marta",
        "language": "Spanish",
        "level": "1",
        "cefr": "A1",
        "guidance": "Use present tense and very common words.",
        "slice": ["pan", "hola", "soy"],
        "topic": "pan",
        "utterance": "Hola",
    }
    data.update(overrides)
    return PromptContext(**data)


@pytest.mark.unit
class TestSystemPrompt:
    def test_section_order(self):
        system = PromptComposer(policy=RetryPolicy.TOLERANT, max_chars=150).system_prompt(_ctx())

        persona = system.index("You are Marta, baker from Sevilla.")
        lock = system.index('Your fixed personal name is "Marta".')
        language = system.index("Speak only Spanish.")
        guidance = system.index("Use present tense")
        vocab = system.index("Prefer using only the BANK vocabulary for Level 1 (A1).")
        ceiling = system.index("One sentence, <=150 characters.")
        assert persona < lock < language < guidance < vocab < ceiling

    def test_identity_lock_names_character(self):
        system = PromptComposer(policy=RetryPolicy.STRICT, max_chars=60).system_prompt(_ctx())

        assert '"Me llamo Marta"' in system
        assert '"Soy Marta"' in system
        assert "Never answer with only a pronoun" in system

    def test_empty_guidance_omitted(self):
        system = PromptComposer(policy=RetryPolicy.STRICT, max_chars=60).system_prompt(
            _ctx(guidance="")
        )

        assert "Speak only Spanish. Use ONLY BANK words" in system

    def test_strict_wording_and_ceiling(self):
        system = PromptComposer(policy=RetryPolicy.STRICT, max_chars=60).system_prompt(_ctx())

        assert "Use ONLY BANK words when possible" in system
        assert "<=60 characters" in system
        assert system.endswith("No emojis/quotes/prefixes. Stay in character.")

    def test_strict_guidance_labelled_with_cefr(self):
        system = PromptComposer(policy=RetryPolicy.STRICT, max_chars=60).system_prompt(_ctx())

        assert (
            "Speak only Spanish. CEFR A1: Use present tense and very common words. "
            "Use ONLY BANK words" in system
        )

    def test_strict_guidance_label_falls_back_to_level(self):
        system = PromptComposer(policy=RetryPolicy.STRICT, max_chars=60).system_prompt(
            _ctx(level="A2", cefr="")
        )

        assert "CEFR A2: Use present tense" in system

    def test_tolerant_guidance_unlabelled(self):
        system = PromptComposer(policy=RetryPolicy.TOLERANT, max_chars=150).system_prompt(_ctx())

        assert "CEFR A1:" not in system
        assert "Speak only Spanish. Use present tense" in system

    def test_tolerant_without_cefr(self):
        system = PromptComposer(policy=RetryPolicy.TOLERANT, max_chars=150).system_prompt(
            _ctx(level="A2", cefr="")
        )

        assert "Level A2 (no CEFR)" in system
        assert "simple outside words sparingly" in system


@pytest.mark.unit
class TestUserMessages:
    def test_user_message_lines(self):
        user = PromptComposer(policy=RetryPolicy.TOLERANT, max_chars=150).user_message(_ctx())

        assert user.splitlines() == [
            "BANK (Level 1): pan, hola, soy",
            "TOPIC: pan",
            "PLAYER: Hola",
        ]

    def test_strict_correction(self):
        composer = PromptComposer(policy=RetryPolicy.STRICT, max_chars=60)

        message = composer.correction_message(_ctx(), ["croissant", "mermelada"], "Original text")

        lines = message.splitlines()
        assert lines[0] == "BANK (Level 1): pan, hola, soy"
        assert "Rewrite without: croissant, mermelada." in lines[1]
        assert lines[-1] == "Original: Original text"

    def test_tolerant_correction(self):
        composer = PromptComposer(policy=RetryPolicy.TOLERANT, max_chars=150)

        message = composer.correction_message(_ctx(), ["croissant"], "x")

        assert "Replace outside words (croissant) with close BANK synonyms" in message
        assert "Keep meaning." in message

    def test_compose_pairs_both_messages(self):
        composer = PromptComposer(policy=RetryPolicy.TOLERANT, max_chars=150)

        pair = composer.compose(_ctx())

        assert pair.system == composer.system_prompt(_ctx())
        assert pair.user == composer.user_message(_ctx())


@pytest.mark.unit
def test_freeform_system_prompt():
    system = freeform_system_prompt("Luis, guide", "French", 60)

    assert system == (
        "You are Luis, guide. Reply only in French. "
        "One sentence, <=60 chars, no emojis, no quotes, no prefixes."
    )
