from __future__ import annotations

import asyncio
from typing import Any

from app.config import settings
from app.extract.interfaces import ScoredLink


class LocalEmbeddingService:
    """sentence-transformers embeddings, loaded lazily off the event loop."""

    def __init__(self, model_name: str | None = None, batch_size: int | None = None):
        self.model_name = model_name or settings.local_embed_model
        self.batch_size = batch_size or int(settings.local_embed_batch_size)
        self._model: Any | None = None
        self._lock = asyncio.Lock()

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        async with self._lock:
            if self._model is None:
                self._model = await asyncio.to_thread(self._load_model)
        return await asyncio.to_thread(self._embed_sync, texts)

    def _load_model(self) -> Any:
        from sentence_transformers import SentenceTransformer

        return SentenceTransformer(self.model_name)

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        vectors = self._model.encode(
            texts,
            batch_size=self.batch_size,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return [list(map(float, row)) for row in vectors]


def cosine_similarity(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = sum(x * x for x in a) ** 0.5
    norm_b = sum(y * y for y in b) ** 0.5
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class EmbeddingRanker:
    """Scores link descriptions against a query by embedding similarity."""

    def __init__(self, embeddings: LocalEmbeddingService | None = None):
        self.embeddings = embeddings or LocalEmbeddingService()

    async def score(self, query: str, texts: list[str], links: list[str]) -> list[ScoredLink]:
        if not texts:
            return []
        vectors = await self.embeddings.embed_texts([query, *texts])
        query_vector, doc_vectors = vectors[0], vectors[1:]

        scored = [
            ScoredLink(
                link=link,
                link_with_context=text,
                score=cosine_similarity(query_vector, vector),
                original_index=index,
            )
            for index, (link, text, vector) in enumerate(zip(links, texts, doc_vectors))
        ]
        scored.sort(key=lambda item: item.score, reverse=True)
        return scored
