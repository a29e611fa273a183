# backend/perfume_chat/models/catalog_models.py

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class PerfumeRecord(BaseModel):
    """One perfume of the catalog as returned by similarity search."""

    id: Optional[str] = None
    perfume_name: str
    brand: Optional[str] = None
    description: Optional[str] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None

    # Free-form attributes come from scraped data: usually lists,
    # sometimes vote dictionaries or plain strings.
    notes: Optional[Any] = None
    season: Optional[Any] = None
    gender: Optional[Any] = None
    longevity: Optional[Any] = None
    sillage: Optional[Any] = None
    time_of_day: Optional[Any] = None
    value_for_money: Optional[Any] = None
    pros: Optional[Any] = None
    cons: Optional[Any] = None
    similar_perfumes: Optional[Any] = None

    embedding: Optional[List[float]] = Field(default=None, exclude=True)
    similarity: Optional[float] = None
