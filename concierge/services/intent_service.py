import re
from typing import Optional

HANDOFF_KEYWORDS = ("human", "atendente", "humano")
HANDOFF_PATTERN = re.compile(r"\b(" + "|".join(HANDOFF_KEYWORDS) + r")\b", re.IGNORECASE)

NAME_PREFIX_PATTERN = re.compile(r"^(meu nome é|mi nombre es|my name is)\s+", re.IGNORECASE)
BARE_NAME_PATTERN = re.compile(r"^[a-zA-ZÀ-ÿ' ]{2,30}$")
NAME_WORD_PATTERN = re.compile(r"^[a-zA-ZÀ-ÿ']{2,30}$")

# Short answers that are never names
NOT_A_NAME = {
    "oi",
    "olá",
    "ola",
    "hi",
    "hello",
    "hey",
    "hola",
    "sim",
    "não",
    "nao",
    "yes",
    "no",
    "si",
    "sí",
    "ok",
    "obrigado",
    "obrigada",
    "thanks",
    "gracias",
    *HANDOFF_KEYWORDS,
}


def is_handoff_request(text: str) -> bool:
    """Customer asked for a human ("human", "atendente", "humano")."""
    return bool(text) and HANDOFF_PATTERN.search(text) is not None


def first_name(raw: Optional[str]) -> Optional[str]:
    """First word of a name, or None when it doesn't look like one."""
    if not raw:
        return None
    words = raw.strip().split()
    if not words:
        return None
    word = words[0].strip(".,;:!?\"")
    if not NAME_WORD_PATTERN.match(word):
        return None
    return word


def extract_name_from_text(text: str, allow_bare: bool = False) -> Optional[str]:
    """Pull a first name out of a customer message.

    "meu nome é X" / "mi nombre es X" / "my name is X" always count. A bare
    answer such as "Maria" only counts with ``allow_bare``, i.e. after the
    customer was asked for their name.
    """
    stripped = (text or "").strip()
    if not stripped:
        return None

    match = NAME_PREFIX_PATTERN.match(stripped)
    if match:
        return first_name(stripped[match.end():])

    if allow_bare and BARE_NAME_PATTERN.match(stripped):
        candidate = first_name(stripped)
        if candidate and candidate.casefold() not in NOT_A_NAME:
            return candidate
    return None
