"""Gemini-backed shopping assistant."""
import logging

from langchain_google_genai import ChatGoogleGenerativeAI

import config
from errors import DependencyFailure, InvalidInput

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """\
You are a dedicated expert assistant for 'Gemora', a specialist store for rare gems and
gemological instruments (loupes, microscopes, tweezers, refractometers).

User Question: "{message}"

Rules:
1. Only answer questions about gems, precious stones, jewelry and gemological tools.
2. Refuse questions about musical instruments: "I apologize, but Gemora only specializes in gems and gemological tools, not musical instruments."
3. Refuse general questions (weather, sports, etc.).
4. Keep answers short, professional and elegant.
5. If uncertain, suggest contacting Gemora directly.
"""


def build_chat_model():
    api_key = config.gemini_api_key()
    if not api_key:
        raise DependencyFailure("Chat failed", error="API key not configured", status_code=500)
    return ChatGoogleGenerativeAI(model=config.GEMINI_MODEL, google_api_key=api_key)


def get_model_factory():
    return build_chat_model


def _text(content) -> str:
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


def ask(model_factory, message: str) -> dict:
    if not message or not message.strip():
        raise InvalidInput("Chat failed", error="Message cannot be empty")
    model = model_factory()
    try:
        result = model.invoke(PROMPT_TEMPLATE.format(message=message.strip()))
    except Exception as e:
        text = str(e)
        logger.error("Chat Error: %s", text)
        if "403" in text or "leaked" in text.lower():
            raise DependencyFailure("Chat unavailable",
                                    error="Gemini API key is invalid or revoked. Please rotate the key.")
        raise DependencyFailure("Chat failed", error="The assistant could not answer right now", status_code=500)
    return {"success": True, "reply": _text(result.content)}
