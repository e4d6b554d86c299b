"""
Capability Interfaces

Narrow contracts for the external services the core depends on. The Ollama
and FAISS implementations satisfy them; tests substitute fakes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Sequence


class StructuringCapability(Protocol):
    async def structure(self, html: str, url: str) -> str:
        """Return the raw model response for an HTML-to-JSON extraction."""


class EmbeddingCapability(Protocol):
    async def embed(self, text: str) -> List[float]:
        """Return a fixed-dimension vector for the text."""


class TextGenerationCapability(Protocol):
    async def generate(self, prompt: str) -> str:
        """Return a plain-text completion for the prompt."""


@dataclass
class IndexDescription:
    name: str
    dimension: int
    metric: str = "cosine"
    ready: bool = False


@dataclass
class IndexRecord:
    id: str
    values: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class IndexMatch:
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class VectorIndexClient(Protocol):
    async def list_indexes(self) -> List[str]:
        ...

    async def create_index(self, name: str, dimension: int, metric: str = "cosine") -> None:
        ...

    async def describe_index(self, name: str) -> IndexDescription:
        ...

    async def fetch(self, name: str, ids: Sequence[str]) -> Dict[str, IndexRecord]:
        ...

    async def upsert(self, name: str, records: Sequence[IndexRecord]) -> None:
        ...

    async def query(self, name: str, vector: Sequence[float], top_k: int) -> List[IndexMatch]:
        ...
