"""Root conftest: isolated database and settings for every test."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

# Settings are read at import time, so the environment comes first
_TMP_DIR = Path(tempfile.mkdtemp(prefix="perfume-chat-tests-"))
os.environ["DB_PATH"] = str(_TMP_DIR / "test.sqlite3")
os.environ["LOG_DIR"] = str(_TMP_DIR / "logs")
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["REDIS_URL"] = ""
os.environ["environment"] = "test"

import pytest
from fastapi.testclient import TestClient

from perfume_chat.core.security import create_access_token
from perfume_chat.db.sqlite_memory import SQLiteMemory


@pytest.fixture(autouse=True)
def _clean_db():
    """Empty all tables before each test."""
    store = SQLiteMemory()
    for table in ("messages", "streams", "chats", "users", "perfumes"):
        store.conn.execute(f"DELETE FROM {table}")
    store.conn.commit()
    yield
    store.conn.close()


@pytest.fixture
def db():
    store = SQLiteMemory()
    try:
        yield store
    finally:
        store.conn.close()


@pytest.fixture
def client():
    from main import app

    return TestClient(app)


def bearer(user_id: str = "1", user_type: str = "regular") -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject=user_id, user_type=user_type)}"}


@pytest.fixture
def auth_headers():
    return bearer("1")


@pytest.fixture
def other_headers():
    return bearer("2")
