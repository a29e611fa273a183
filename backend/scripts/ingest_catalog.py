"""
scripts/ingest_catalog.py: perfume catalog ingestion (offline)

Reads a JSON array of perfume records, embeds each one through the
OpenAI embeddings API and upserts it into the perfumes table that the
chat endpoint searches.

    Run:  python scripts/ingest_catalog.py data/perfumes.json
"""

import argparse
import json
import sys
from pathlib import Path

_BACKEND_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_BACKEND_ROOT))

from dotenv import load_dotenv
load_dotenv(_BACKEND_ROOT / ".env")

from perfume_chat.core.logger import logger
from perfume_chat.db.sqlite_memory import SQLiteMemory
from perfume_chat.services.catalog_service import ingest_records
from perfume_chat.services.embedding_service import EmbeddingService


def main() -> int:
    parser = argparse.ArgumentParser(description="Embed and store perfume records")
    parser.add_argument("path", type=Path, help="JSON file with a list of perfumes")
    parser.add_argument("--db", default=None, help="SQLite path (defaults to DB_PATH)")
    args = parser.parse_args()

    records = json.loads(args.path.read_text(encoding="utf-8"))
    if not isinstance(records, list):
        logger.error("Expected a JSON array of perfume records")
        return 1

    stored = ingest_records(records, SQLiteMemory(args.db), EmbeddingService())
    logger.info(f"Ingested {len(stored)} perfumes from {args.path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
