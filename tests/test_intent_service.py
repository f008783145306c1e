from concierge.services.intent_service import (
    extract_name_from_text,
    first_name,
    is_handoff_request,
)


class TestIsHandoffRequest:
    def test_keywords(self):
        assert is_handoff_request("human") is True
        assert is_handoff_request("Quero falar com um atendente") is True
        assert is_handoff_request("quiero hablar con un HUMANO") is True

    def test_case_insensitive(self):
        assert is_handoff_request("HUMAN please") is True

    def test_whole_word_only(self):
        assert is_handoff_request("humanity is great") is False
        assert is_handoff_request("atendentes") is False

    def test_no_keyword(self):
        assert is_handoff_request("hello") is False
        assert is_handoff_request("") is False
        assert is_handoff_request(None) is False


class TestFirstName:
    def test_takes_first_word(self):
        assert first_name("Maria Silva") == "Maria"

    def test_strips_punctuation(self):
        assert first_name("João.") == "João"

    def test_rejects_non_names(self):
        assert first_name("🙂") is None
        assert first_name("12345") is None
        assert first_name("A") is None

    def test_empty(self):
        assert first_name(None) is None
        assert first_name("   ") is None


class TestExtractNameFromText:
    def test_portuguese_phrase(self):
        assert extract_name_from_text("meu nome é Ana Paula") == "Ana"

    def test_spanish_phrase(self):
        assert extract_name_from_text("Mi nombre es Carlos") == "Carlos"

    def test_english_phrase(self):
        assert extract_name_from_text("my name is John!") == "John"

    def test_bare_answer_needs_prompt(self):
        assert extract_name_from_text("Maria") is None
        assert extract_name_from_text("Maria", allow_bare=True) == "Maria"

    def test_bare_answer_rejects_greetings_and_keywords(self):
        assert extract_name_from_text("Oi", allow_bare=True) is None
        assert extract_name_from_text("hello", allow_bare=True) is None
        assert extract_name_from_text("humano", allow_bare=True) is None

    def test_bare_answer_rejects_sentences_with_digits(self):
        assert extract_name_from_text("mesa para 2 pessoas", allow_bare=True) is None

    def test_bare_answer_too_long(self):
        assert extract_name_from_text("a" * 31, allow_bare=True) is None

    def test_empty(self):
        assert extract_name_from_text("") is None

