"""Entity embedding clients for the semantic similarity signal."""

from __future__ import annotations

import hashlib
import json
import math
import re
from dataclasses import dataclass
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

from saga_suggestions.config import Settings, get_settings

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class EmbeddingError(RuntimeError):
    """Raised when embedding generation fails."""


class EmbeddingClient(Protocol):
    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input text, in input order."""


@dataclass(slots=True)
class OpenAIEmbeddingsClient:
    api_key: str
    model: str
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: int = 60

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        req = urllib_request.Request(
            url=f"{self.base_url.rstrip('/')}/embeddings",
            data=json.dumps({"model": self.model, "input": texts}).encode("utf-8"),
            method="POST",
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
        )
        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                rows = json.loads(resp.read().decode("utf-8"))["data"]
        except urllib_error.HTTPError as exc:
            raise EmbeddingError(f"OpenAI embeddings HTTP {exc.code}") from exc
        except urllib_error.URLError as exc:
            raise EmbeddingError(f"OpenAI embeddings request failed: {exc.reason}") from exc
        except (KeyError, TypeError, json.JSONDecodeError) as exc:
            raise EmbeddingError("OpenAI embeddings response was invalid") from exc

        try:
            return [list(map(float, row["embedding"])) for row in sorted(rows, key=lambda row: row["index"])]
        except (KeyError, TypeError, ValueError) as exc:
            raise EmbeddingError("OpenAI embeddings response was invalid") from exc


@dataclass(slots=True)
class HashEmbeddingsClient:
    """Token-hash vectors; shared words between descriptions raise the cosine."""

    dimensions: int = 256

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        vectors = []
        for text in texts:
            vector = [0.0] * self.dimensions
            for token in _TOKEN_RE.findall((text or "").lower()):
                digest = hashlib.sha256(token.encode("utf-8")).digest()
                vector[int.from_bytes(digest[:4], "big") % self.dimensions] += 1.0
            vectors.append(vector)
        return vectors


def get_default_embedding_client(settings: Settings | None = None) -> EmbeddingClient:
    settings = settings or get_settings()
    if settings.openai_api_key:
        return OpenAIEmbeddingsClient(
            api_key=settings.openai_api_key,
            model=settings.openai_embedding_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.openai_timeout_seconds,
        )
    return HashEmbeddingsClient()


def build_entity_embedding_text(name: str, entity_type: str | None, description: str | None) -> str:
    parts = [name.strip()]
    if entity_type:
        parts.append(f"type: {entity_type.strip()}")
    if description and description.strip():
        parts.append(description.strip())
    return "\n".join(parts)


def cosine_similarity(left: list[float] | None, right: list[float] | None) -> float | None:
    """Cosine similarity rescaled to [0, 1]; None when the vectors are not comparable."""

    if not left or not right or len(left) != len(right):
        return None
    norm = math.hypot(*left) * math.hypot(*right)
    if norm == 0.0:
        return None
    dot = sum(l * r for l, r in zip(left, right, strict=True))
    return max(0.0, min(1.0, (dot / norm + 1.0) / 2.0))


def ensure_embedding(value: Any) -> list[float] | None:
    """Stored JSON array as a float vector, or None when malformed."""

    if not isinstance(value, list):
        return None
    try:
        return [float(item) for item in value]
    except (TypeError, ValueError):
        return None
