import logging
from typing import Optional

from openai import AsyncOpenAI

from ..config import LLM_TIMEOUT_SECONDS, OPENAI_API_KEY, OPENAI_MODEL

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "Você é um assistente virtual amigável para um salão de beleza. "
    "Seja útil, educado e ajude os clientes com informações sobre agendamentos, "
    "serviços e preços. Mantenha as respostas concisas e profissionais. "
    "Se não souber algo específico, sugira que o cliente entre em contato diretamente."
)

_client: Optional[AsyncOpenAI] = None


def get_llm_client() -> Optional[AsyncOpenAI]:
    """Shared OpenAI client, or None when no API key is configured"""
    global _client
    if not OPENAI_API_KEY:
        return None
    if _client is None:
        _client = AsyncOpenAI(api_key=OPENAI_API_KEY, timeout=LLM_TIMEOUT_SECONDS, max_retries=2)
    return _client


async def generate_reply(message: str, system_prompt: Optional[str] = None) -> Optional[str]:
    """
    Ask the model for a short reply to a customer message.

    Returns None when the LLM is not configured and an empty string when
    the model answers with nothing.
    API errors propagate so the caller can fall back to canned replies.
    """
    client = get_llm_client()
    if client is None:
        return None

    resp = await client.chat.completions.create(
        model=OPENAI_MODEL,
        messages=[
            {"role": "system", "content": system_prompt or DEFAULT_SYSTEM_PROMPT},
            {"role": "user", "content": message},
        ],
        max_tokens=300,
        temperature=0.6,
    )
    return (resp.choices[0].message.content or "").strip()
