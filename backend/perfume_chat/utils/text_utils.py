# backend/perfume_chat/utils/text_utils.py

import re
from typing import AsyncIterable, AsyncIterator

# A word plus the whitespace that follows it
_WORD_RE = re.compile(r"\s*\S+\s+")


def truncate(text: str, length: int = 80) -> str:
    text = " ".join(text.split())
    return text[:length] + ("..." if len(text) > length else "")


async def smooth_words(deltas: AsyncIterable[str]) -> AsyncIterator[str]:
    """
    Re-chunk a stream of text deltas so that each emitted chunk ends on a
    word boundary. Whatever is left in the buffer is flushed at the end.
    """
    buffer = ""
    async for delta in deltas:
        buffer += delta
        while True:
            match = _WORD_RE.match(buffer)
            if not match:
                break
            yield match.group(0)
            buffer = buffer[match.end():]
    if buffer:
        yield buffer
