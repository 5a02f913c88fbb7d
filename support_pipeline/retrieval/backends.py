from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

from support_pipeline.domain.exceptions import RetrievalUnavailableError

class EmbeddingBackend(ABC):
    """Anything that can turn a batch of texts into vectors."""

    @abstractmethod
    async def embed(self, texts: List[str]) -> List[List[float]]:
        pass

class HttpEmbeddingBackend(EmbeddingBackend):
    """
    Calls an OpenAI-compatible embeddings endpoint:
    POST {"model": ..., "input": [...]} -> {"data": [{"index": i, "embedding": [...]}, ...]}
    """
    def __init__(self, url: str, model: str, timeout_s: float = 1.5, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.model = model
        self.timeout_s = timeout_s
        self._transport = transport

    async def embed(self, texts: List[str]) -> List[List[float]]:
        payload = {"model": self.model, "input": texts}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            raise RetrievalUnavailableError(f"Embedding request to {self.url} failed: {e}") from e
        except ValueError as e:
            raise RetrievalUnavailableError(f"Embedding endpoint returned invalid JSON: {e}") from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list) or len(data) != len(texts):
            raise RetrievalUnavailableError("Embedding endpoint returned an unexpected payload.")
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in ordered]
