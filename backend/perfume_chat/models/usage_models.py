# backend/perfume_chat/models/usage_models.py

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class CostUSD(_CamelModel):
    input_usd: Optional[float] = Field(default=None, alias="inputUSD")
    output_usd: Optional[float] = Field(default=None, alias="outputUSD")
    cache_read_usd: Optional[float] = Field(default=None, alias="cacheReadUSD")
    total_usd: Optional[float] = Field(default=None, alias="totalUSD")


class ContextLimits(_CamelModel):
    total_max: Optional[int] = None
    input_max: Optional[int] = None
    output_max: Optional[int] = None


class AppUsage(_CamelModel):
    """Raw token counts, optionally enriched with cost and context limits."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: Optional[int] = None
    cached_input_tokens: Optional[int] = None

    cost_usd: Optional[CostUSD] = Field(default=None, alias="costUSD")
    context: Optional[ContextLimits] = None
    model_id: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
