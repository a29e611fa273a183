# backend/perfume_chat/db/sqlite_memory.py

import sqlite3
import json
import math
import time
from pathlib import Path
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from perfume_chat.core.config_loader import settings
from perfume_chat.models.catalog_models import PerfumeRecord


# Retry configuration
MAX_RETRIES = 5
RETRY_DELAY = 0.1  # 100ms

# JSON columns of the perfumes table
PERFUME_JSON_FIELDS = (
    "notes", "season", "gender", "longevity", "sillage", "time_of_day",
    "value_for_money", "pros", "cons", "similar_perfumes",
)


def _now() -> str:
    return datetime.utcnow().isoformat()


def cosine_similarity(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class SQLiteMemory:
    def __init__(self, db_path: Optional[str] = None):
        path = Path(db_path or settings.DB_PATH)
        path.parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(
            str(path),
            check_same_thread=False,
            timeout=30.0
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA synchronous=NORMAL")
        self.conn.execute("PRAGMA busy_timeout=30000")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._init_tables()

    def _execute_with_retry(self, operation, *args, **kwargs):
        """Execute database operation with retry logic for handling locked database"""
        for attempt in range(MAX_RETRIES):
            try:
                return operation(*args, **kwargs)
            except sqlite3.OperationalError as e:
                if "locked" in str(e).lower() and attempt < MAX_RETRIES - 1:
                    time.sleep(RETRY_DELAY * (attempt + 1))
                    continue
                raise

    # ----------------------------------------------------------------------
    # CREATE TABLES
    # ----------------------------------------------------------------------
    def _init_tables(self):
        cur = self.conn.cursor()

        # USERS
        cur.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT UNIQUE,
            hashed_password TEXT,
            user_type TEXT DEFAULT 'regular',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """)

        # CHATS
        cur.execute("""
        CREATE TABLE IF NOT EXISTS chats (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            title TEXT,
            visibility TEXT DEFAULT 'private',
            last_context_json TEXT,
            created_at TIMESTAMP,
            updated_at TIMESTAMP
        );
        """)

        # MESSAGES
        cur.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id TEXT PRIMARY KEY,
            chat_id TEXT NOT NULL,
            role TEXT,
            parts_json TEXT,
            attachments_json TEXT,
            created_at TIMESTAMP,
            FOREIGN KEY (chat_id) REFERENCES chats(id) ON DELETE CASCADE
        );
        """)

        # STREAMS (resumable responses)
        cur.execute("""
        CREATE TABLE IF NOT EXISTS streams (
            id TEXT PRIMARY KEY,
            chat_id TEXT NOT NULL,
            created_at TIMESTAMP,
            FOREIGN KEY (chat_id) REFERENCES chats(id) ON DELETE CASCADE
        );
        """)

        # PERFUME CATALOG
        cur.execute("""
        CREATE TABLE IF NOT EXISTS perfumes (
            id TEXT PRIMARY KEY,
            perfume_name TEXT NOT NULL,
            brand TEXT,
            description TEXT,
            rating REAL,
            rating_count INTEGER,
            notes TEXT,
            season TEXT,
            gender TEXT,
            longevity TEXT,
            sillage TEXT,
            time_of_day TEXT,
            value_for_money TEXT,
            pros TEXT,
            cons TEXT,
            similar_perfumes TEXT,
            embedding_json TEXT
        );
        """)

        # INDEXES
        cur.execute("CREATE INDEX IF NOT EXISTS idx_chat_user ON chats(user_id);")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_msg_chat ON messages(chat_id);")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_stream_chat ON streams(chat_id);")

        self.conn.commit()

    # ----------------------------------------------------------------------
    # USERS
    # ----------------------------------------------------------------------
    def create_user(self, email: str, hashed_password: Optional[str], user_type: str = "regular") -> int:
        def _create_user():
            cur = self.conn.cursor()
            cur.execute("""
            INSERT INTO users (email, hashed_password, user_type, created_at)
            VALUES (?, ?, ?, ?)
            """, (email, hashed_password, user_type, _now()))
            self.conn.commit()
            return cur.lastrowid

        return self._execute_with_retry(_create_user)

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM users WHERE email = ?", (email,))
        row = cur.fetchone()
        return dict(row) if row else None

    def get_user_by_id(self, user_id) -> Optional[Dict[str, Any]]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM users WHERE id = ?", (user_id,))
        row = cur.fetchone()
        return dict(row) if row else None

    # ----------------------------------------------------------------------
    # CHATS
    # ----------------------------------------------------------------------
    def save_chat(self, chat_id: str, user_id: str, title: str, visibility: str = "private"):
        def _save_chat():
            now = _now()
            cur = self.conn.cursor()
            cur.execute("""
            INSERT INTO chats (id, user_id, title, visibility, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """, (chat_id, str(user_id), title, visibility, now, now))
            self.conn.commit()

        self._execute_with_retry(_save_chat)

    def get_chat_by_id(self, chat_id: str) -> Optional[Dict[str, Any]]:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM chats WHERE id = ?", (chat_id,))
        row = cur.fetchone()
        return self._chat_from_row(row) if row else None

    def list_chats(self, user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        cur = self.conn.cursor()
        cur.execute("""
        SELECT * FROM chats
        WHERE user_id = ?
        ORDER BY updated_at DESC
        LIMIT ?
        """, (str(user_id), limit))
        return [self._chat_from_row(r) for r in cur.fetchall()]

    def update_chat_visibility(self, chat_id: str, visibility: str):
        def _update_visibility():
            cur = self.conn.cursor()
            cur.execute("""
            UPDATE chats SET visibility=?, updated_at=?
            WHERE id = ?
            """, (visibility, _now(), chat_id))
            self.conn.commit()

        self._execute_with_retry(_update_visibility)

    def update_chat_last_context(self, chat_id: str, context: Dict[str, Any]):
        def _update_context():
            cur = self.conn.cursor()
            cur.execute("""
            UPDATE chats SET last_context_json=?
            WHERE id = ?
            """, (json.dumps(context), chat_id))
            self.conn.commit()

        self._execute_with_retry(_update_context)

    def delete_chat(self, chat_id: str) -> Optional[Dict[str, Any]]:
        """Delete a chat with its messages and streams; returns the deleted chat."""
        def _delete_chat():
            chat = self.get_chat_by_id(chat_id)
            if not chat:
                return None
            cur = self.conn.cursor()
            # Explicit deletes keep older databases without the FK pragma consistent
            cur.execute("DELETE FROM messages WHERE chat_id = ?", (chat_id,))
            cur.execute("DELETE FROM streams WHERE chat_id = ?", (chat_id,))
            cur.execute("DELETE FROM chats WHERE id = ?", (chat_id,))
            self.conn.commit()
            return chat

        return self._execute_with_retry(_delete_chat)

    @staticmethod
    def _chat_from_row(row) -> Dict[str, Any]:
        item = dict(row)
        raw_context = item.pop("last_context_json", None)
        item["last_context"] = json.loads(raw_context) if raw_context else None
        return item

    # ----------------------------------------------------------------------
    # MESSAGES
    # ----------------------------------------------------------------------
    def save_messages(self, messages: List[Dict[str, Any]]):
        """
        Insert messages in a single transaction.

        Each message dict carries id, chat_id, role, parts, attachments
        and an optional created_at.
        """
        def _save_messages():
            cur = self.conn.cursor()
            touched = set()
            for msg in messages:
                cur.execute("""
                INSERT INTO messages (id, chat_id, role, parts_json, attachments_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    msg["id"],
                    msg["chat_id"],
                    msg["role"],
                    json.dumps(msg.get("parts") or []),
                    json.dumps(msg.get("attachments") or []),
                    msg.get("created_at") or _now(),
                ))
                touched.add(msg["chat_id"])
            for chat_id in touched:
                cur.execute("UPDATE chats SET updated_at=? WHERE id = ?", (_now(), chat_id))
            self.conn.commit()

        self._execute_with_retry(_save_messages)

    def get_messages_by_chat_id(self, chat_id: str, limit: int = 1000) -> List[Dict[str, Any]]:
        """The newest `limit` messages of a chat, oldest first."""
        cur = self.conn.cursor()
        cur.execute("""
        SELECT * FROM messages
        WHERE chat_id = ?
        ORDER BY created_at DESC, rowid DESC
        LIMIT ?
        """, (chat_id, limit))

        messages = []
        for r in reversed(cur.fetchall()):
            item = dict(r)
            item["parts"] = json.loads(item.pop("parts_json") or "[]")
            item["attachments"] = json.loads(item.pop("attachments_json") or "[]")
            messages.append(item)
        return messages

    def get_message_count_by_user_id(self, user_id: str, difference_in_hours: int = 24) -> int:
        """Count user-role messages sent by a user within the last N hours."""
        since = (datetime.utcnow() - timedelta(hours=difference_in_hours)).isoformat()
        cur = self.conn.cursor()
        cur.execute("""
        SELECT COUNT(m.id) AS total
        FROM messages m
        JOIN chats c ON c.id = m.chat_id
        WHERE c.user_id = ? AND m.role = 'user' AND m.created_at >= ?
        """, (str(user_id), since))
        row = cur.fetchone()
        return row["total"] if row else 0

    # ----------------------------------------------------------------------
    # STREAMS
    # ----------------------------------------------------------------------
    def create_stream_id(self, stream_id: str, chat_id: str):
        def _create_stream():
            cur = self.conn.cursor()
            cur.execute("""
            INSERT INTO streams (id, chat_id, created_at)
            VALUES (?, ?, ?)
            """, (stream_id, chat_id, _now()))
            self.conn.commit()

        self._execute_with_retry(_create_stream)

    def get_stream_ids_by_chat_id(self, chat_id: str) -> List[str]:
        cur = self.conn.cursor()
        cur.execute("""
        SELECT id FROM streams
        WHERE chat_id = ?
        ORDER BY created_at ASC
        """, (chat_id,))
        return [r["id"] for r in cur.fetchall()]

    # ----------------------------------------------------------------------
    # PERFUME CATALOG
    # ----------------------------------------------------------------------
    def upsert_perfume(self, record: PerfumeRecord):
        def _upsert():
            data = record.model_dump()
            values = [data["id"], data["perfume_name"], data["brand"], data["description"],
                      data["rating"], data["rating_count"]]
            values += [json.dumps(data[f]) if data[f] is not None else None for f in PERFUME_JSON_FIELDS]
            values.append(json.dumps(record.embedding) if record.embedding else None)

            cur = self.conn.cursor()
            cur.execute(f"""
            REPLACE INTO perfumes (id, perfume_name, brand, description, rating, rating_count,
                                   {", ".join(PERFUME_JSON_FIELDS)}, embedding_json)
            VALUES ({", ".join("?" * len(values))})
            """, values)
            self.conn.commit()

        self._execute_with_retry(_upsert)

    def search_perfumes_by_embedding(self, query_embedding: List[float], limit: int = 5) -> List[PerfumeRecord]:
        """
        Return the `limit` perfumes closest to the query embedding,
        most similar first. Rows without an embedding, or with an
        embedding of a different dimension, are skipped.
        """
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM perfumes WHERE embedding_json IS NOT NULL")

        scored = []
        for row in cur.fetchall():
            embedding = json.loads(row["embedding_json"])
            if len(embedding) != len(query_embedding):
                continue
            scored.append((cosine_similarity(query_embedding, embedding), row))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [self._perfume_from_row(row, score) for score, row in scored[:limit]]

    @staticmethod
    def _perfume_from_row(row, similarity: Optional[float] = None) -> PerfumeRecord:
        item = dict(row)
        item.pop("embedding_json", None)
        for field in PERFUME_JSON_FIELDS:
            if item.get(field) is not None:
                item[field] = json.loads(item[field])
        return PerfumeRecord(**item, similarity=similarity)
