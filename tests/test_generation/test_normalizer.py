"""Tests for accent folding and tokenisation."""

import pytest

from polly_server.generation.normalizer import fold, fold_word, normalize


@pytest.mark.unit
class TestFold:
    def test_strips_diacritics_and_lowercases(self):
        assert fold("Canción") == "cancion"
        assert fold("ÁRBOL") == "arbol"

    def test_keeps_n_tilde_base_letter(self):
        # NFD splits ñ into n + combining tilde
        assert fold("Señor") == "senor"

    def test_fold_word_trims_whitespace(self):
        assert fold_word("  Café \n") == "cafe"


@pytest.mark.unit
class TestNormalize:
    def test_diacritics_removed(self):
        assert "cancion" in normalize("¡Me gusta esta canción!")

    def test_punctuation_digits_and_spaces_split_tokens(self):
        assert normalize("Hola, ¿qué tal? Tengo 2 gatos.") == [
            "hola",
            "que",
            "tal",
            "tengo",
            "gatos",
        ]

    def test_duplicates_preserved_in_order(self):
        assert normalize("pan y pan") == ["pan", "y", "pan"]

    def test_empty_text(self):
        assert normalize("") == []
        assert normalize("123 !!") == []

    @pytest.mark.parametrize(
        "text",
        [
            "Él comió pingüinos en Málaga",
            "C'est déjà l'été",
            "Über Straße",
        ],
    )
    def test_idempotent(self, text):
        tokens = normalize(text)
        assert normalize(" ".join(tokens)) == tokens

    def test_non_latin_letters_are_separators(self):
        assert normalize("straße") == ["stra", "e"]
