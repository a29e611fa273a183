# backend/perfume_chat/core/errors.py

from typing import Optional

from fastapi.responses import JSONResponse

from perfume_chat.core.logger import logger


# ---------------------------------------------------------------------------
# ERROR TAXONOMY
# code = "<type>:<surface>", e.g. "forbidden:chat"
# ---------------------------------------------------------------------------
STATUS_BY_TYPE = {
    "bad_request": 400,
    "unauthorized": 401,
    "forbidden": 403,
    "not_found": 404,
    "rate_limit": 429,
    "offline": 503,
}

# Surfaces whose details never reach the client
LOG_ONLY_SURFACES = {"database"}

MESSAGES = {
    "bad_request:api": "The request couldn't be processed. Please check your input and try again.",
    "unauthorized:auth": "You need to sign in before continuing.",
    "forbidden:auth": "Your account does not have access to this feature.",
    "rate_limit:chat": "You have exceeded your maximum number of messages for the day. Please try again later.",
    "not_found:chat": "The requested chat was not found. Please check the chat ID and try again.",
    "forbidden:chat": "This chat belongs to another user. Please check the chat ID and try again.",
    "forbidden:model": "The selected model is not available for your account.",
    "unauthorized:chat": "You need to sign in to view this chat. Please sign in and try again.",
    "offline:chat": "We're having trouble sending your message. Please check your internet connection and try again.",
}

DEFAULT_MESSAGE = "Something went wrong. Please try again later."
DATABASE_MESSAGE = "An error occurred while executing a database query."


class ChatError(Exception):
    """
    Application error carrying a "<type>:<surface>" code.

    The type decides the HTTP status, the full code decides the
    user-facing message.
    """

    def __init__(self, code: str, cause: Optional[str] = None):
        error_type, _, surface = code.partition(":")
        if error_type not in STATUS_BY_TYPE:
            raise ValueError(f"Unknown error type: {error_type}")

        self.code = code
        self.type = error_type
        self.surface = surface
        self.cause = cause
        self.message = MESSAGES.get(code, DEFAULT_MESSAGE)
        self.status_code = STATUS_BY_TYPE[error_type]
        super().__init__(self.message)

    def to_response(self) -> JSONResponse:
        if self.surface in LOG_ONLY_SURFACES:
            logger.error("%s | %s | %s", self.code, self.message, self.cause)
            return JSONResponse(
                status_code=self.status_code,
                content={"code": "", "message": DATABASE_MESSAGE},
            )

        return JSONResponse(
            status_code=self.status_code,
            content={"code": self.code, "message": self.message, "cause": self.cause},
        )
