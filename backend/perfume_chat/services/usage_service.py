# backend/perfume_chat/services/usage_service.py
"""Token usage reconciliation against the models.dev pricing catalog."""

import asyncio
import time
from typing import Any, Dict, Optional

import requests
from starlette.concurrency import run_in_threadpool

from perfume_chat.core.config_loader import settings
from perfume_chat.core.logger import logger
from perfume_chat.models.usage_models import AppUsage, ContextLimits, CostUSD


CATALOG_TTL_SECONDS = 24 * 60 * 60
DEFAULT_PROVIDER = "openai"

ModelCatalog = Dict[str, Any]


class ModelCatalogCache:
    """
    Process-wide cache of the model catalog, refreshed at most once per TTL.
    Concurrent refreshes wait on the same lock and reuse the first result.
    A failed fetch is cached too, so a dead catalog is retried once per TTL.
    """

    def __init__(self, url: Optional[str] = None, ttl: int = CATALOG_TTL_SECONDS, timeout: float = 10):
        self.url = url or settings.MODEL_CATALOG_URL
        self._ttl = ttl
        self._timeout = timeout
        self._lock = asyncio.Lock()
        self._fetched_at: Optional[float] = None
        self._catalog: Optional[ModelCatalog] = None

    def _fresh(self) -> bool:
        return self._fetched_at is not None and time.monotonic() - self._fetched_at < self._ttl

    async def get(self) -> Optional[ModelCatalog]:
        if self._fresh():
            return self._catalog

        async with self._lock:
            if self._fresh():
                return self._catalog
            self._catalog = await run_in_threadpool(self._fetch)
            self._fetched_at = time.monotonic()
            return self._catalog

    def _fetch(self) -> Optional[ModelCatalog]:
        try:
            response = requests.get(self.url, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Model catalog fetch failed, usage will not be enriched: {e}")
            return None

    def clear(self) -> None:
        self._fetched_at = None
        self._catalog = None


catalog_cache = ModelCatalogCache()


# ---------------------------------------------------------------------------
# CATALOG LOOKUP
# ---------------------------------------------------------------------------
def find_model(catalog: ModelCatalog, model_id: str) -> Optional[Dict[str, Any]]:
    """
    Look up "provider:model", "provider/model" or a bare model name.
    Bare names are searched in the default provider first.
    """
    for sep in (":", "/"):
        if sep in model_id:
            provider, _, name = model_id.partition(sep)
            return (catalog.get(provider) or {}).get("models", {}).get(name)

    providers = [DEFAULT_PROVIDER] + [p for p in catalog if p != DEFAULT_PROVIDER]
    for provider in providers:
        model = (catalog.get(provider) or {}).get("models", {}).get(model_id)
        if model:
            return model
    return None


def get_usage_summary(model_id: str, usage: AppUsage, catalog: ModelCatalog) -> Dict[str, Any]:
    """Cost and context limits for a usage; empty when the model is unknown."""
    model = find_model(catalog, model_id)
    if not model:
        return {}

    summary: Dict[str, Any] = {}

    cost = model.get("cost") or {}
    if cost:
        cached = usage.cached_input_tokens or 0
        cache_rate = cost.get("cache_read")
        billed_input = usage.input_tokens - cached if cache_rate is not None else usage.input_tokens

        input_usd = billed_input * float(cost.get("input", 0)) / 1_000_000
        output_usd = usage.output_tokens * float(cost.get("output", 0)) / 1_000_000
        cache_read_usd = cached * float(cache_rate) / 1_000_000 if cache_rate is not None else None

        total = input_usd + output_usd + (cache_read_usd or 0)
        summary["cost_usd"] = CostUSD(
            input_usd=round(input_usd, 6),
            output_usd=round(output_usd, 6),
            cache_read_usd=round(cache_read_usd, 6) if cache_read_usd is not None else None,
            total_usd=round(total, 6),
        )

    limit = model.get("limit") or {}
    if limit:
        summary["context"] = ContextLimits(
            total_max=limit.get("context"),
            input_max=limit.get("input"),
            output_max=limit.get("output"),
        )

    return summary


# ---------------------------------------------------------------------------
# RECONCILE
# ---------------------------------------------------------------------------
async def reconcile_usage(usage: AppUsage, model_id: Optional[str],
                          cache: Optional[ModelCatalogCache] = None) -> AppUsage:
    """
    Enrich raw usage with cost data. Falls back to the raw usage when
    there is no model id, no catalog, or enrichment fails. Never raises.
    """
    cache = cache or catalog_cache
    try:
        if not model_id:
            return usage

        catalog = await cache.get()
        if not catalog:
            return usage

        summary = get_usage_summary(model_id, usage, catalog)
        return usage.model_copy(update={**summary, "model_id": model_id})
    except Exception as e:
        logger.warning(f"Usage enrichment failed for {model_id}: {e}")
        return usage
