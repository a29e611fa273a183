# backend/perfume_chat/utils/message_utils.py

from typing import Any, Dict, List
from uuid import uuid4


def generate_uuid() -> str:
    return str(uuid4())


def _part_value(part: Any, key: str):
    if isinstance(part, dict):
        return part.get(key)
    return getattr(part, key, None)


def get_text_from_parts(parts: List[Any]) -> str:
    """Concatenate the text parts of a message, ignoring files."""
    return "".join(
        _part_value(p, "text") or ""
        for p in parts
        if _part_value(p, "type") == "text"
    )


def get_text_from_message(message: Any) -> str:
    parts = message.get("parts", []) if isinstance(message, dict) else message.parts
    return get_text_from_parts(parts)


def convert_to_model_messages(db_messages: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Stored messages -> OpenAI chat messages.
    Messages without any text (e.g. image only) are dropped.
    """
    history = []
    for msg in db_messages:
        text = get_text_from_parts(msg.get("parts") or [])
        if not text:
            continue
        history.append({"role": msg["role"], "content": text})
    return history
