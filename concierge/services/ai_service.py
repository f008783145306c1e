"""Reply generation: hosted agent, then direct model call, then canned text."""

from typing import List, Optional

from concierge.config import settings
from concierge.errors import TransportError
from concierge.logging_config import get_logger
from concierge.services.llm import LLMProvider, OpenAIProvider
from concierge.services.profile_service import Profile
from concierge.services.texts import LANGUAGE_NAMES, default_reply, normalize_language

logger = get_logger("ai_service")

MAX_HISTORY_MESSAGES = 6

# Global LLM provider instance, rebuilt when the OpenAI settings change
_llm_provider = None
_llm_provider_key = None


def get_llm_provider() -> Optional[OpenAIProvider]:
    """Get or create the LLM provider, None when no API key is configured."""
    global _llm_provider, _llm_provider_key
    if not settings.openai_api_key:
        return None
    key = (settings.openai_api_key, settings.openai_model, settings.openai_base_url, settings.http_timeout_seconds)
    if _llm_provider is None or _llm_provider_key != key:
        _llm_provider = OpenAIProvider(
            api_key=settings.openai_api_key,
            default_model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.http_timeout_seconds,
        )
        _llm_provider_key = key
    return _llm_provider


def trim_history(history: Optional[List[dict]], limit: Optional[int] = None) -> List[dict]:
    """Keep the last ``limit`` user/assistant entries (never more than six), oldest first."""
    limit = settings.history_limit if limit is None else limit
    limit = max(1, min(limit, MAX_HISTORY_MESSAGES))
    entries = [h for h in (history or []) if h.get("role") in ("user", "assistant") and h.get("content")]
    return entries[-limit:]


def build_instructions(profile: Profile) -> str:
    language = normalize_language(profile.language)
    instructions = (
        "You are a customer support agent answering on WhatsApp. "
        f"Always reply strictly in {LANGUAGE_NAMES[language]} (language code '{language}'), "
        "even if the customer writes in another language. Keep replies short."
    )
    if profile.name:
        instructions += f" The customer's name is {profile.name}; greet them by name."
    return instructions


def build_history_snippet(history: List[dict]) -> str:
    return "\n".join(f"{h['role']}: {h['content']}" for h in history)


def _agent_reply(provider: LLMProvider, message: str, profile: Profile, history: List[dict]) -> str:
    response = provider.run_agent(
        settings.agent_id,
        input=message,
        instructions=build_instructions(profile),
        metadata={
            "customer_name": profile.name or "",
            "customer_lang": normalize_language(profile.language),
            "history_snippet": build_history_snippet(history),
        },
    )
    return response.content


def _model_reply(provider: LLMProvider, message: str, profile: Profile, history: List[dict]) -> str:
    input_items = [{"role": "system", "content": build_instructions(profile)}]
    input_items.extend({"role": h["role"], "content": h["content"]} for h in history)
    # History comes from the log, which already holds the current message
    if not history or history[-1] != {"role": "user", "content": message}:
        input_items.append({"role": "user", "content": message})
    response = provider.create_response(input_items, model=settings.openai_model)
    return response.content


def generate_reply(
    message: str,
    profile: Profile,
    history: Optional[List[dict]] = None,
    provider: Optional[LLMProvider] = None,
) -> str:
    """Generate the customer reply. Never raises; the last tier is canned text."""
    provider = provider or get_llm_provider()
    recent = trim_history(history)
    context = {"wa_id": profile.wa_id, "history_messages": len(recent)}

    tiers = []
    if provider is not None:
        if settings.agent_id:
            tiers.append(("agent", _agent_reply))
        tiers.append(("model", _model_reply))

    for tier, call in tiers:
        try:
            reply = call(provider, message, profile, recent)
        except TransportError as e:
            logger.warning(f"Reply tier '{tier}' failed, falling through", extra={"context": {**context, "error": str(e)}})
            continue
        except Exception as e:
            logger.error(
                f"Reply tier '{tier}' raised unexpectedly, falling through",
                extra={"context": {**context, "error": str(e)}},
            )
            continue
        if reply and reply.strip():
            logger.info(f"Reply generated by '{tier}'", extra={"context": context})
            return reply.strip()

    logger.info("Using canned reply", extra={"context": context})
    return default_reply(profile.language, profile.name)
