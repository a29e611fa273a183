# backend/perfume_chat/core/llm.py

from typing import AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI, OpenAI, OpenAIError

from perfume_chat.core.config_loader import settings
from perfume_chat.core.logger import logger
from perfume_chat.models.usage_models import AppUsage
from perfume_chat.utils.text_utils import truncate


# Initialize OpenAI clients
client = OpenAI(api_key=settings.OPENAI_API_KEY or "missing", base_url=settings.OPENAI_BASE_URL)
async_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY or "missing", base_url=settings.OPENAI_BASE_URL)


# ---------------------------------------------------------------------------
# MODEL PROVIDER: UI model ids -> OpenAI model names
# ---------------------------------------------------------------------------
def language_model_id(chat_model: str) -> str:
    models = {
        "chat-model": settings.gpt_model_mini,
        "chat-model-reasoning": settings.gpt_model_reasoning,
        "title-model": settings.gpt_model_nano,
    }
    if chat_model not in models:
        raise ValueError(f"Unknown chat model: {chat_model}")
    return models[chat_model]


# ---------------------------------------------------------------------------
# STREAMING COMPLETION
# ---------------------------------------------------------------------------
class CompletionStream:
    """
    Async iterator over the text deltas of one streamed completion.
    `usage` is filled once the stream has been fully drained.
    """

    def __init__(self, model: str, system: str, messages: List[Dict[str, str]]):
        self.model = model
        self.system = system
        self.messages = messages
        self.usage: Optional[AppUsage] = None

    async def __aiter__(self) -> AsyncIterator[str]:
        stream = await async_client.chat.completions.create(
            model=self.model,
            messages=[{"role": "system", "content": self.system}, *self.messages],
            stream=True,
            stream_options={"include_usage": True},
        )
        async for chunk in stream:
            if chunk.choices:
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
            if chunk.usage:
                self.usage = usage_from_openai(chunk.usage)


def usage_from_openai(raw) -> AppUsage:
    prompt_details = getattr(raw, "prompt_tokens_details", None)
    completion_details = getattr(raw, "completion_tokens_details", None)
    return AppUsage(
        input_tokens=raw.prompt_tokens or 0,
        output_tokens=raw.completion_tokens or 0,
        total_tokens=raw.total_tokens or 0,
        reasoning_tokens=getattr(completion_details, "reasoning_tokens", None),
        cached_input_tokens=getattr(prompt_details, "cached_tokens", None),
    )


def stream_completion(chat_model: str, system: str, messages: List[Dict[str, str]]) -> CompletionStream:
    return CompletionStream(language_model_id(chat_model), system, messages)


# ---------------------------------------------------------------------------
# TITLE GENERATION (cheap model)
# ---------------------------------------------------------------------------
TITLE_PROMPT = """
- you will generate a short title based on the first message a user begins a conversation with
- ensure it is not more than 80 characters long
- the title should be a summary of the user's message
- do not use quotes or colons
"""


def _gpt_nano(system: str, prompt: str) -> str:
    completion = client.chat.completions.create(
        model=language_model_id("title-model"),
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        temperature=0.0,
    )
    return completion.choices[0].message.content or ""


def generate_title_from_user_message(message_text: str) -> str:
    """Short chat title; falls back to the truncated message if the model fails."""
    fallback = truncate(message_text, 80) or "Nowa rozmowa"
    if not message_text.strip():
        return fallback
    try:
        title = _gpt_nano(TITLE_PROMPT, message_text).strip().strip('"')
    except OpenAIError as e:
        logger.warning(f"Title generation failed, using message text: {e}")
        return fallback
    return title[:80] or fallback
