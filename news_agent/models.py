"""
Data Model

Plain dataclasses shared by the ingestion and query paths.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional

# Placeholder used when the structuring step finds no title
UNTITLED_ARTICLE = "Untitled Article"


@dataclass(frozen=True)
class Article:
    """A structured news article extracted from a web page."""
    title: str
    content: str
    url: str
    date: str = ""  # YYYY-MM-DD or empty

    def to_metadata(self) -> Dict[str, str]:
        """Metadata stored alongside the article's vector."""
        return {
            'title': self.title,
            'content': self.content,
            'url': self.url,
            'date': self.date,
        }

    def to_source(self) -> "Source":
        return Source(
            title=self.title,
            url=self.url,
            date=self.date,
            content=self.content
        )


@dataclass(frozen=True)
class Source:
    """
    Read view of a stored article.

    ``content`` is only populated internally while building prompts;
    ``to_public`` is the only shape that leaves the system.
    """
    title: str
    url: str
    date: str = ""
    content: Optional[str] = None

    def to_public(self) -> Dict[str, str]:
        return {
            'title': self.title,
            'url': self.url,
            'date': self.date,
        }


@dataclass
class QueryResponse:
    """Answer returned to query callers."""
    answer: str
    sources: List[Dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_sources(cls, answer: str, sources: List[Source]) -> "QueryResponse":
        """Build a response, stripping internal fields from the sources."""
        return cls(answer=answer, sources=[s.to_public() for s in sources])

    def to_dict(self) -> Dict:
        return {
            'answer': self.answer,
            'sources': [dict(s) for s in self.sources],
        }


class IngestionStatus:
    """Outcome labels for a single URL ingestion."""
    INVALID_URL = "invalid_url"
    DUPLICATE = "duplicate"
    EXTRACTION_FAILED = "extraction_failed"
    ALREADY_STORED = "already_stored"
    STORED = "stored"


@dataclass
class IngestionResult:
    url: str
    status: str
    processing_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.status in (IngestionStatus.STORED, IngestionStatus.ALREADY_STORED)

    def to_dict(self) -> Dict:
        return {
            'url': self.url,
            'status': self.status,
            'success': self.success,
            'processing_time': self.processing_time,
        }
