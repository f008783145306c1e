"""Customer-facing canned texts, one entry per supported language."""

from typing import Optional

SUPPORTED_LANGUAGES = ("pt", "en", "es")
DEFAULT_LANGUAGE = "en"

TEXTS = {
    "ask_name": {
        "pt": "Oi! Como posso te chamar? 😊 (responda com seu primeiro nome)",
        "en": "Hi! How should I call you? 😊 (please reply with your first name)",
        "es": "¡Hola! ¿Cómo puedo llamarte? 😊 (responde con tu primer nombre)",
    },
    "ack_set_name": {
        "pt": "Obrigado, {name}!",
        "en": "Thanks, {name}!",
        "es": "¡Gracias, {name}!",
    },
    "handoff_confirm": {
        "pt": "Certo! Vou chamar um atendente humano. Ele vai responder por aqui em breve.",
        "en": "Sure! I'm bringing in a human agent. They will reply here shortly.",
        "es": "¡Claro! Voy a llamar a un agente humano. Te responderá por aquí en breve.",
    },
    "out_of_hours": {
        "pt": "Nosso atendimento funciona das {start}h às {end}h. Recebemos sua mensagem e respondemos assim que abrirmos. 😊",
        "en": "Our team is available from {start}:00 to {end}:00. We got your message and will reply as soon as we open. 😊",
        "es": "Nuestro horario de atención es de {start}h a {end}h. Recibimos tu mensaje y te responderemos en cuanto abramos. 😊",
    },
    "default_reply_named": {
        "pt": "Oi, {name}! Já estou verificando as opções para você. 😊",
        "en": "Hi, {name}! I'm checking options for you now. 😊",
        "es": "¡Hola, {name}! Ya estoy revisando opciones para ti. 😊",
    },
    "default_reply": {
        "pt": "Recebi sua mensagem e já estou verificando as opções para você. 😊",
        "en": "Got your message, I'm checking options for you now. 😊",
        "es": "Recibí tu mensaje y ya estoy revisando opciones para ti. 😊",
    },
}

LANGUAGE_NAMES = {"pt": "Portuguese", "en": "English", "es": "Spanish"}


def normalize_language(language: Optional[str]) -> str:
    if language in SUPPORTED_LANGUAGES:
        return language
    return DEFAULT_LANGUAGE


def localized(key: str, language: Optional[str], **kwargs) -> str:
    template = TEXTS[key][normalize_language(language)]
    return template.format(**kwargs) if kwargs else template


def default_reply(language: Optional[str], name: Optional[str]) -> str:
    """Deterministic reply used when no model tier produced one."""
    if name:
        return localized("default_reply_named", language, name=name)
    return localized("default_reply", language)
