# backend/perfume_chat/services/embedding_service.py

import requests
from typing import List, Optional

from perfume_chat.core.config_loader import settings


class EmbeddingError(Exception):
    pass


class EmbeddingService:
    """
    Thin client for the OpenAI embeddings endpoint.

    One POST per call, no retries: a failure aborts whatever asked
    for the embedding.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 base_url: Optional[str] = None, timeout: float = 20):
        self.api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self.model = model or settings.EMBEDDING_MODEL
        self.url = (base_url or settings.OPENAI_BASE_URL).rstrip("/") + "/embeddings"
        self.timeout = timeout

    def generate_embedding(self, text: str) -> List[float]:
        try:
            return self._request_embedding(text)
        except EmbeddingError as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e
        except requests.RequestException as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e

    def _request_embedding(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise EmbeddingError("text is empty")
        if not self.api_key:
            raise EmbeddingError("OPENAI_API_KEY is not set")

        response = requests.post(
            self.url,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
            json={"model": self.model, "input": text},
            timeout=self.timeout,
        )

        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise EmbeddingError(
                f"OpenAI API error: {response.status_code} {response.reason} - {body}"
            )

        data = response.json().get("data") or []
        embedding = data[0].get("embedding") if data else None
        if not embedding:
            raise EmbeddingError("no embedding in response")

        return embedding
