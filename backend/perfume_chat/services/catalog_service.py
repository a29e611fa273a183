# backend/perfume_chat/services/catalog_service.py

import re
from typing import Any, Dict, Iterable, List

from perfume_chat.core.logger import logger
from perfume_chat.db.sqlite_memory import SQLiteMemory
from perfume_chat.models.catalog_models import PerfumeRecord
from perfume_chat.services.embedding_service import EmbeddingService

# Scraped exports use camelCase keys
FIELD_ALIASES = {
    "name": "perfume_name",
    "ratingCount": "rating_count",
    "timeOfDay": "time_of_day",
    "valueForMoney": "value_for_money",
    "similarPerfumes": "similar_perfumes",
}


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def normalize_record(raw: Dict[str, Any]) -> PerfumeRecord:
    data = {FIELD_ALIASES.get(k, k): v for k, v in raw.items()}
    record = PerfumeRecord(**data)
    if not record.id:
        record.id = slugify(f"{record.brand or ''} {record.perfume_name}")
    return record


def build_embedding_text(record: PerfumeRecord) -> str:
    """Text that represents a perfume in the vector space."""
    parts = [record.perfume_name]
    if record.brand:
        parts.append(record.brand)
    if record.description:
        parts.append(record.description)
    for value in (record.notes, record.season, record.gender):
        if isinstance(value, list) and value:
            parts.append(", ".join(str(v) for v in value))
    return "\n".join(parts)


def ingest_records(raw_records: Iterable[Dict[str, Any]], db: SQLiteMemory,
                   embedder: EmbeddingService) -> List[str]:
    """Embed and upsert each record; returns the stored ids."""
    stored = []
    for raw in raw_records:
        record = normalize_record(raw)
        record.embedding = embedder.generate_embedding(build_embedding_text(record))
        db.upsert_perfume(record)
        stored.append(record.id)
        logger.info(f"Stored perfume {record.id}")
    return stored
