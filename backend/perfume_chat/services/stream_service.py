# backend/perfume_chat/services/stream_service.py
"""
UI message streaming over server-sent events.

A response is produced by an async generator of typed chunks
(`start`, `text-delta`, `data-usage`, `finish`, ...). A background
producer task drains that generator into a queue; the HTTP response
reads from the queue. The producer is not tied to the HTTP connection,
so a client disconnect does not stop the model call or the persistence
that runs after it.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set

import redis.asyncio as aioredis

from perfume_chat.core.config_loader import settings
from perfume_chat.core.logger import logger


Chunk = Dict[str, Any]
OnFinish = Callable[[List[Dict[str, Any]]], Awaitable[None]]

SSE_DONE = "data: [DONE]\n\n"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Producer tasks stay referenced until they finish
_background_tasks: Set[asyncio.Task] = set()


def sse_encode(chunk: Chunk) -> str:
    return f"data: {json.dumps(chunk, ensure_ascii=False)}\n\n"


# ---------------------------------------------------------------------------
# RESUMABLE STREAMS (Redis)
# ---------------------------------------------------------------------------
class ResumableStreamContext:
    """Mirrors SSE lines into Redis lists so a client can replay a stream."""

    KEY_PREFIX = "perfume-chat:stream"
    TTL_SECONDS = 24 * 60 * 60
    POLL_INTERVAL = 0.25

    def __init__(self, redis_url: str):
        self.redis = aioredis.from_url(redis_url, decode_responses=True)

    def _key(self, stream_id: str) -> str:
        return f"{self.KEY_PREFIX}:{stream_id}"

    def _done_key(self, stream_id: str) -> str:
        return f"{self.KEY_PREFIX}:{stream_id}:done"

    async def append(self, stream_id: str, line: str) -> None:
        key = self._key(stream_id)
        await self.redis.rpush(key, line)
        await self.redis.expire(key, self.TTL_SECONDS)

    async def mark_done(self, stream_id: str) -> None:
        await self.redis.set(self._done_key(stream_id), "1", ex=self.TTL_SECONDS)

    async def resume(self, stream_id: str, max_wait: float = 60) -> Optional[AsyncIterator[str]]:
        """Replay a stream from the start; None when nothing was recorded."""
        if not await self.redis.exists(self._key(stream_id)):
            return None

        async def _replay():
            sent = 0
            waited = 0.0
            while True:
                lines = await self.redis.lrange(self._key(stream_id), sent, -1)
                for line in lines:
                    yield line
                sent += len(lines)
                if await self.redis.exists(self._done_key(stream_id)):
                    # Lines pushed between lrange and the done check
                    for line in await self.redis.lrange(self._key(stream_id), sent, -1):
                        yield line
                    return
                if waited >= max_wait:
                    return
                await asyncio.sleep(self.POLL_INTERVAL)
                waited += self.POLL_INTERVAL

        return _replay()


_stream_context: Optional[ResumableStreamContext] = None
_stream_context_checked = False


def get_stream_context() -> Optional[ResumableStreamContext]:
    global _stream_context, _stream_context_checked
    if _stream_context_checked:
        return _stream_context

    _stream_context_checked = True
    if not settings.REDIS_URL:
        logger.info(" > Resumable streams are disabled due to missing REDIS_URL")
        return None

    try:
        _stream_context = ResumableStreamContext(settings.REDIS_URL)
    except (ValueError, aioredis.RedisError) as e:
        logger.error(f"Resumable streams are disabled: {e}")
    return _stream_context


# ---------------------------------------------------------------------------
# UI MESSAGE STREAM
# ---------------------------------------------------------------------------
class UIMessageStream:
    def __init__(
        self,
        chunks: AsyncIterator[Chunk],
        on_finish: Optional[OnFinish] = None,
        on_error: Callable[[Exception], str] = lambda e: "Oops, an error occurred!",
        stream_id: Optional[str] = None,
        stream_context: Optional[ResumableStreamContext] = None,
    ):
        self._chunks = chunks
        self._on_finish = on_finish
        self._on_error = on_error
        self._stream_id = stream_id
        self._context = stream_context if stream_id else None
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

        self.message_id: Optional[str] = None
        self._parts: Dict[str, str] = {}

    @property
    def messages(self) -> List[Dict[str, Any]]:
        """Assistant message assembled from the text streamed so far."""
        if not self.message_id:
            return []
        parts = [{"type": "text", "text": text} for text in self._parts.values()]
        return [{"id": self.message_id, "role": "assistant", "parts": parts}]

    def start(self) -> "UIMessageStream":
        self._task = asyncio.create_task(self._produce())
        _background_tasks.add(self._task)
        self._task.add_done_callback(_background_tasks.discard)
        return self

    async def wait(self) -> None:
        if self._task:
            await self._task

    def _record(self, chunk: Chunk) -> None:
        kind = chunk.get("type")
        if kind == "start" and chunk.get("messageId"):
            self.message_id = chunk["messageId"]
        elif kind == "text-delta":
            part_id = chunk.get("id", "")
            self._parts[part_id] = self._parts.get(part_id, "") + chunk.get("delta", "")

    async def _emit(self, line: str) -> None:
        self._queue.put_nowait(line)
        if self._context:
            try:
                await self._context.append(self._stream_id, line)
            except aioredis.RedisError as e:
                logger.warning(f"Could not record stream {self._stream_id}: {e}")

    async def _produce(self) -> None:
        try:
            async for chunk in self._chunks:
                self._record(chunk)
                await self._emit(sse_encode(chunk))
        except Exception as e:
            logger.exception("UI message stream failed")
            await self._emit(sse_encode({"type": "error", "errorText": self._on_error(e)}))

        await self._emit(SSE_DONE)
        self._queue.put_nowait(None)

        if self._context:
            try:
                await self._context.mark_done(self._stream_id)
            except aioredis.RedisError as e:
                logger.warning(f"Could not close stream {self._stream_id}: {e}")

        if self._on_finish:
            try:
                await self._on_finish(self.messages)
            except Exception:
                logger.exception("Stream finish callback failed")

    async def sse(self) -> AsyncIterator[str]:
        while True:
            line = await self._queue.get()
            if line is None:
                return
            yield line
