"""Tests for services/usage_service.py: catalog cache and usage reconciliation."""

from __future__ import annotations

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock, patch

import requests

from perfume_chat.models.usage_models import AppUsage
from perfume_chat.services.usage_service import (
    ModelCatalogCache,
    find_model,
    get_usage_summary,
    reconcile_usage,
)

CATALOG = {
    "openai": {
        "id": "openai",
        "models": {
            "gpt-4.1-mini": {
                "id": "gpt-4.1-mini",
                "cost": {"input": 0.4, "output": 1.6, "cache_read": 0.1},
                "limit": {"context": 1047576, "output": 32768},
            },
        },
    },
    "other": {"models": {"local-model": {"id": "local-model"}}},
}


def _usage(**kwargs) -> AppUsage:
    return AppUsage(input_tokens=1_000_000, output_tokens=500_000, total_tokens=1_500_000, **kwargs)


def _cache_returning(catalog):
    cache = MagicMock(spec=ModelCatalogCache)
    cache.get = AsyncMock(return_value=catalog)
    return cache


class TestFindModel:
    def test_bare_name_in_default_provider(self):
        assert find_model(CATALOG, "gpt-4.1-mini")["id"] == "gpt-4.1-mini"

    def test_bare_name_in_other_provider(self):
        assert find_model(CATALOG, "local-model")["id"] == "local-model"

    def test_provider_prefixed(self):
        assert find_model(CATALOG, "openai:gpt-4.1-mini") is not None
        assert find_model(CATALOG, "openai/gpt-4.1-mini") is not None

    def test_unknown(self):
        assert find_model(CATALOG, "nope") is None
        assert find_model(CATALOG, "ghost:gpt-4.1-mini") is None


class TestGetUsageSummary:
    def test_cost_and_context(self):
        summary = get_usage_summary("gpt-4.1-mini", _usage(), CATALOG)
        assert summary["cost_usd"].input_usd == 0.4
        assert summary["cost_usd"].output_usd == 0.8
        assert summary["cost_usd"].total_usd == 1.2
        assert summary["context"].total_max == 1047576

    def test_cached_tokens_billed_at_cache_rate(self):
        summary = get_usage_summary("gpt-4.1-mini", _usage(cached_input_tokens=500_000), CATALOG)
        assert summary["cost_usd"].input_usd == 0.2
        assert summary["cost_usd"].cache_read_usd == 0.05
        assert summary["cost_usd"].total_usd == 1.05

    def test_unknown_model_is_empty(self):
        assert get_usage_summary("nope", _usage(), CATALOG) == {}


class TestReconcileUsage:
    def test_enriched(self):
        result = asyncio.run(reconcile_usage(_usage(), "gpt-4.1-mini", _cache_returning(CATALOG)))
        wire = result.to_wire()
        assert wire["inputTokens"] == 1_000_000
        assert wire["modelId"] == "gpt-4.1-mini"
        assert wire["costUSD"]["totalUSD"] == 1.2
        assert wire["context"]["totalMax"] == 1047576

    def test_no_model_id_returns_raw(self):
        cache = _cache_returning(CATALOG)
        usage = _usage()
        assert asyncio.run(reconcile_usage(usage, None, cache)) is usage
        assert asyncio.run(reconcile_usage(usage, "", cache)) is usage
        cache.get.assert_not_called()

    def test_no_catalog_returns_raw(self):
        usage = _usage()
        assert asyncio.run(reconcile_usage(usage, "gpt-4.1-mini", _cache_returning(None))) is usage

    def test_enrichment_error_returns_raw(self):
        cache = MagicMock(spec=ModelCatalogCache)
        cache.get = AsyncMock(side_effect=RuntimeError("catalog exploded"))
        usage = _usage()
        result = asyncio.run(reconcile_usage(usage, "gpt-4.1-mini", cache))
        assert result is usage
        assert result.to_wire()["totalTokens"] == 1_500_000

    @patch("perfume_chat.services.usage_service.requests.get")
    def test_failed_fetch_still_returns_usage(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("offline")
        cache = ModelCatalogCache(url="https://catalog.example/api.json")
        result = asyncio.run(reconcile_usage(_usage(), "gpt-4.1-mini", cache))
        assert result.input_tokens == 1_000_000
        assert result.cost_usd is None


class TestModelCatalogCache:
    @patch("perfume_chat.services.usage_service.requests.get")
    def test_fetched_once_within_ttl(self, mock_get):
        mock_get.return_value.json.return_value = CATALOG
        cache = ModelCatalogCache(url="https://catalog.example/api.json", ttl=60)

        async def _run():
            return await asyncio.gather(*(cache.get() for _ in range(5)))

        results = asyncio.run(_run())
        assert all(r == CATALOG for r in results)
        assert mock_get.call_count == 1

    @patch("perfume_chat.services.usage_service.requests.get")
    def test_concurrent_refresh_during_slow_fetch_is_coalesced(self, mock_get):
        def _slow_get(*args, **kwargs):
            time.sleep(0.05)
            response = MagicMock()
            response.json.return_value = CATALOG
            return response

        mock_get.side_effect = _slow_get
        cache = ModelCatalogCache(url="https://catalog.example/api.json", ttl=60)

        async def _run():
            return await asyncio.gather(*(cache.get() for _ in range(5)))

        results = asyncio.run(_run())
        assert results == [CATALOG] * 5
        assert mock_get.call_count == 1

    @patch("perfume_chat.services.usage_service.requests.get")
    def test_refetched_after_expiry(self, mock_get):
        mock_get.return_value.json.return_value = CATALOG
        cache = ModelCatalogCache(url="https://catalog.example/api.json", ttl=0)

        asyncio.run(cache.get())
        asyncio.run(cache.get())
        assert mock_get.call_count == 2

    @patch("perfume_chat.services.usage_service.requests.get")
    def test_failure_yields_none(self, mock_get):
        mock_get.return_value.raise_for_status.side_effect = requests.HTTPError("503")
        cache = ModelCatalogCache(url="https://catalog.example/api.json")
        assert asyncio.run(cache.get()) is None
