# backend/perfume_chat/core/entitlements.py

from dataclasses import dataclass
from typing import Dict, List

from perfume_chat.core.config_loader import settings


@dataclass(frozen=True)
class Entitlements:
    max_messages_per_day: int
    available_chat_model_ids: List[str]


CHAT_MODEL_IDS = ["chat-model", "chat-model-reasoning"]

entitlements_by_user_type: Dict[str, Entitlements] = {
    # Users without an account
    "guest": Entitlements(
        max_messages_per_day=settings.MAX_MESSAGES_GUEST,
        available_chat_model_ids=CHAT_MODEL_IDS,
    ),
    # Users with an account
    "regular": Entitlements(
        max_messages_per_day=settings.MAX_MESSAGES_REGULAR,
        available_chat_model_ids=CHAT_MODEL_IDS,
    ),
}
