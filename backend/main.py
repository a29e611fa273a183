import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from perfume_chat.api.routes_auth import router as auth_router
from perfume_chat.api.routes_chat import router as chat_router
from perfume_chat.api.routes_history import router as history_router

from perfume_chat.core.config_loader import settings
from perfume_chat.core.errors import ChatError


app = FastAPI(
    title="Perfume Assistant",
    description="Perfume recommendation chat backend: vector search over the catalog + streamed GPT answers",
    version="1.0.0"
)

# -------------------------------------------------------------
# CORS
# -------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # update to frontend domain in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------------------------------------------------
# ERRORS
# -------------------------------------------------------------
@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    return exc.to_response()


# -------------------------------------------------------------
# ROUTES
# -------------------------------------------------------------
app.include_router(auth_router)
app.include_router(chat_router)
app.include_router(history_router)


# -------------------------------------------------------------
# ROOT ENDPOINT
# -------------------------------------------------------------
@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "Perfume Assistant backend is running",
        "env": settings.environment
    }


# -------------------------------------------------------------
# RUN LOCAL
# -------------------------------------------------------------
if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
