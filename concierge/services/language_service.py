import re
from typing import Optional

from concierge.errors import TransportError
from concierge.logging_config import get_logger
from concierge.services.ai_service import get_llm_provider
from concierge.services.llm import LLMProvider
from concierge.services.texts import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES

logger = get_logger("language_service")

SPANISH_MARKS = re.compile(r"[¿¡]")
SPANISH_WORDS = re.compile(r"\b(hola|disponibilidad|gracias|buen[oa]s|precio)\b")
ENGLISH_WORDS = re.compile(r"\b(hi|hello|thanks|availability|price|book|schedule)\b")
PORTUGUESE_WORDS = re.compile(r"\b(oi|olá|obrigad[oa]|disponibilidade|agenda|preço)\b")
PORTUGUESE_ACCENTS = re.compile(r"[áâãéêíóôõúç]")

CLASSIFY_INSTRUCTION = "Return ONLY one code: en, pt, or es."


def detect_language_heuristic(text: str) -> Optional[str]:
    """Keyword/diacritic match, checked Spanish, then English, then Portuguese."""
    normalized = (text or "").strip().lower()
    if not normalized:
        return None
    if SPANISH_MARKS.search(normalized) or SPANISH_WORDS.search(normalized):
        return "es"
    if ENGLISH_WORDS.search(normalized):
        return "en"
    if PORTUGUESE_WORDS.search(normalized) or PORTUGUESE_ACCENTS.search(normalized):
        return "pt"
    return None


def classify_language(text: str, provider: LLMProvider) -> Optional[str]:
    """Ask the model for a language code; only an exact supported code is accepted."""
    try:
        response = provider.create_response(
            [
                {"role": "system", "content": CLASSIFY_INSTRUCTION},
                {"role": "user", "content": f"Text: {text}"},
            ]
        )
    except TransportError as e:
        logger.warning(f"Language classifier unavailable: {e}")
        return None

    code = (response.content or "").strip().lower()
    if code in SUPPORTED_LANGUAGES:
        return code
    logger.info("Language classifier returned unusable answer", extra={"context": {"answer": code[:20]}})
    return None


def detect_language(text: str, provider: Optional[LLMProvider] = None) -> str:
    """Detect pt/en/es for a customer's first message, defaulting to en."""
    language = detect_language_heuristic(text)
    if language:
        return language

    if provider is None:
        provider = get_llm_provider()
    if provider is not None and (text or "").strip():
        language = classify_language(text, provider)
        if language:
            return language

    return DEFAULT_LANGUAGE
