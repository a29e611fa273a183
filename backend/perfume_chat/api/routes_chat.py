# backend/perfume_chat/api/routes_chat.py

from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Header, Request, Response
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from perfume_chat.core.entitlements import entitlements_by_user_type
from perfume_chat.core.errors import ChatError
from perfume_chat.core.llm import generate_title_from_user_message, language_model_id, stream_completion
from perfume_chat.core.logger import logger
from perfume_chat.core.security import get_session
from perfume_chat.db.sqlite_memory import SQLiteMemory
from perfume_chat.models.chat_models import ChatOut, PostRequestBody
from perfume_chat.services.embedding_service import EmbeddingService
from perfume_chat.services.prompt_builder import build_system_prompt
from perfume_chat.services.stream_service import SSE_HEADERS, UIMessageStream, get_stream_context
from perfume_chat.services.usage_service import reconcile_usage
from perfume_chat.utils.message_utils import convert_to_model_messages, generate_uuid, get_text_from_message
from perfume_chat.utils.text_utils import smooth_words

router = APIRouter(prefix="/api/chat", tags=["chat"])
db = SQLiteMemory()
embeddings = EmbeddingService()

SEARCH_LIMIT = 5
# Prior text messages sent to the model with each turn
HISTORY_LIMIT = 20
SEARCH_ERROR_TEXT = "Przepraszam, wystąpił błąd podczas wyszukiwania perfum. Spróbuj ponownie."


# -----------------------------
# Response generator
# -----------------------------
async def generate_response(
    message_text: str,
    history: List[Dict[str, str]],
    selected_chat_model: str,
    usage_holder: Dict[str, Any],
) -> AsyncIterator[Dict[str, Any]]:
    """
    Chunks of one assistant turn: retrieval, prompt, streamed completion,
    usage. Failures in retrieval or the model call become an apology in
    the stream, since the HTTP response has already started.
    """
    yield {"type": "start", "messageId": generate_uuid()}

    open_text_id: Optional[str] = None
    try:
        query_embedding = await run_in_threadpool(embeddings.generate_embedding, message_text)
        perfumes = db.search_perfumes_by_embedding(query_embedding, limit=SEARCH_LIMIT)
        logger.info(f"Found {len(perfumes)} perfumes for query")

        completion = stream_completion(
            selected_chat_model,
            system=build_system_prompt(perfumes),
            messages=[*history, {"role": "user", "content": message_text}],
        )

        open_text_id = generate_uuid()
        yield {"type": "start-step"}
        yield {"type": "text-start", "id": open_text_id}
        async for delta in smooth_words(completion):
            yield {"type": "text-delta", "id": open_text_id, "delta": delta}
        yield {"type": "text-end", "id": open_text_id}
        open_text_id = None
    except Exception:
        logger.exception("Error in perfume search")
        if open_text_id:
            yield {"type": "text-end", "id": open_text_id}
        yield {"type": "text-delta", "id": generate_uuid(), "delta": SEARCH_ERROR_TEXT}
        yield {"type": "finish"}
        return

    if completion.usage:
        usage = await reconcile_usage(completion.usage, language_model_id(selected_chat_model))
        usage_holder["usage"] = usage
        yield {"type": "data-usage", "data": usage.to_wire()}

    yield {"type": "finish-step"}
    yield {"type": "finish"}


def _persist_on_finish(chat_id: str, usage_holder: Dict[str, Any]):
    async def on_finish(messages: List[Dict[str, Any]]):
        try:
            db.save_messages([
                {
                    "id": m["id"],
                    "chat_id": chat_id,
                    "role": m["role"],
                    "parts": m["parts"],
                    "attachments": [],
                    "created_at": datetime.utcnow().isoformat(),
                }
                for m in messages
            ])
        except Exception:
            logger.exception(f"Unable to save assistant message for chat {chat_id}")

        usage = usage_holder.get("usage")
        if usage:
            try:
                db.update_chat_last_context(chat_id, usage.to_wire())
            except Exception:
                logger.exception(f"Unable to persist last usage for chat {chat_id}")

    return on_finish


# -----------------------------
# POST /api/chat
# -----------------------------
@router.post("", summary="Send a message to the perfume assistant")
async def post_chat(request: Request, authorization: Optional[str] = Header(None)):
    try:
        body = PostRequestBody.model_validate(await request.json())
    except (ValueError, ValidationError):
        return ChatError("bad_request:api").to_response()

    try:
        chat_id = str(body.id)
        message = body.message

        session = get_session(authorization)
        if not session:
            return ChatError("unauthorized:chat").to_response()

        user_id = session.user.id
        entitlements = entitlements_by_user_type[session.user.type]
        if body.selected_chat_model not in entitlements.available_chat_model_ids:
            return ChatError("forbidden:model").to_response()

        message_count = db.get_message_count_by_user_id(user_id, difference_in_hours=24)
        if message_count >= entitlements.max_messages_per_day:
            return ChatError("rate_limit:chat").to_response()

        message_text = get_text_from_message(message)

        chat = db.get_chat_by_id(chat_id)
        history: List[Dict[str, str]] = []
        if chat:
            if chat["user_id"] != user_id:
                return ChatError("forbidden:chat").to_response()
            stored = db.get_messages_by_chat_id(chat_id, limit=HISTORY_LIMIT * 2)
            history = convert_to_model_messages(stored)[-HISTORY_LIMIT:]
        else:
            title = await run_in_threadpool(generate_title_from_user_message, message_text)
            db.save_chat(chat_id, user_id, title, body.selected_visibility_type)

        db.save_messages([{
            "id": str(message.id),
            "chat_id": chat_id,
            "role": "user",
            "parts": [p.model_dump(mode="json", by_alias=True) for p in message.parts],
            "attachments": [],
            "created_at": datetime.utcnow().isoformat(),
        }])

        stream_id = generate_uuid()
        db.create_stream_id(stream_id, chat_id)

        usage_holder: Dict[str, Any] = {}
        stream = UIMessageStream(
            generate_response(message_text, history, body.selected_chat_model, usage_holder),
            on_finish=_persist_on_finish(chat_id, usage_holder),
            stream_id=stream_id,
            stream_context=get_stream_context(),
        ).start()

        return StreamingResponse(stream.sse(), media_type="text/event-stream", headers=SSE_HEADERS)
    except ChatError as e:
        return e.to_response()
    except Exception:
        request_id = request.headers.get("x-request-id") or generate_uuid()
        logger.exception(f"Unhandled error in chat API (request_id={request_id})")
        return ChatError("offline:chat").to_response()


# -----------------------------
# DELETE /api/chat?id=...
# -----------------------------
@router.delete("", response_model=ChatOut, summary="Delete a chat")
def delete_chat(id: Optional[str] = None, authorization: Optional[str] = Header(None)):
    if not id:
        return ChatError("bad_request:api").to_response()

    session = get_session(authorization)
    if not session:
        return ChatError("unauthorized:chat").to_response()

    chat = db.get_chat_by_id(id)
    if not chat or chat["user_id"] != session.user.id:
        return ChatError("forbidden:chat").to_response()

    return db.delete_chat(id)


# -----------------------------
# GET /api/chat/{chat_id}/stream (resume)
# -----------------------------
@router.get("/{chat_id}/stream", summary="Resume the latest response stream of a chat")
async def resume_stream(chat_id: str, authorization: Optional[str] = Header(None)):
    session = get_session(authorization)
    if not session:
        return ChatError("unauthorized:chat").to_response()

    context = get_stream_context()
    if not context:
        return Response(status_code=204)

    chat = db.get_chat_by_id(chat_id)
    if not chat:
        return ChatError("not_found:chat").to_response()
    if chat["visibility"] == "private" and chat["user_id"] != session.user.id:
        return ChatError("forbidden:chat").to_response()

    stream_ids = db.get_stream_ids_by_chat_id(chat_id)
    if not stream_ids:
        return ChatError("not_found:stream").to_response()

    replay = await context.resume(stream_ids[-1])
    if replay is None:
        return Response(status_code=204)

    return StreamingResponse(replay, media_type="text/event-stream", headers=SSE_HEADERS)
