# backend/perfume_chat/api/routes_history.py

from fastapi import APIRouter, Header
from typing import List, Optional

from perfume_chat.core.errors import ChatError
from perfume_chat.core.security import get_session
from perfume_chat.db.sqlite_memory import SQLiteMemory
from perfume_chat.models.chat_models import ChatOut, MessageOut, VisibilityIn

router = APIRouter(prefix="/api", tags=["history"])
db = SQLiteMemory()


def _require_session(authorization: Optional[str]):
    session = get_session(authorization)
    if not session:
        raise ChatError("unauthorized:chat")
    return session


def _get_owned_chat(chat_id: str, user_id: str) -> dict:
    chat = db.get_chat_by_id(chat_id)
    if not chat or chat["user_id"] != user_id:
        raise ChatError("forbidden:chat")
    return chat


# --------------------------
# List chats
# --------------------------
@router.get("/history", response_model=List[ChatOut])
def list_chats(limit: int = 50, authorization: Optional[str] = Header(None)):
    session = _require_session(authorization)
    if limit < 1 or limit > 100:
        raise ChatError("bad_request:api", cause="limit must be between 1 and 100")
    return db.list_chats(session.user.id, limit=limit)


# --------------------------
# Get messages for chat
# --------------------------
@router.get("/chat/{chat_id}/messages", response_model=List[MessageOut])
def get_messages(chat_id: str, authorization: Optional[str] = Header(None)):
    session = _require_session(authorization)

    chat = db.get_chat_by_id(chat_id)
    if not chat:
        raise ChatError("not_found:chat")
    if chat["visibility"] == "private" and chat["user_id"] != session.user.id:
        raise ChatError("forbidden:chat")

    return db.get_messages_by_chat_id(chat_id)


# --------------------------
# Update chat visibility
# --------------------------
@router.patch("/chat/{chat_id}/visibility", response_model=ChatOut)
def update_visibility(chat_id: str, data: VisibilityIn, authorization: Optional[str] = Header(None)):
    session = _require_session(authorization)
    _get_owned_chat(chat_id, session.user.id)

    db.update_chat_visibility(chat_id, data.visibility)
    return db.get_chat_by_id(chat_id)
