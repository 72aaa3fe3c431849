"""External collaborators used by the journal and profile services.

Each collaborator is a Protocol plus a local, in-process implementation that
is good enough for development and tests.
"""

import logging
import mimetypes
import uuid
from collections import Counter
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Protocol

from ..core.query import QuerySpec, evaluate
from ..core.text_analysis import heuristic_key_phrases, keyword_sentiment
from .store import DocumentStore


logger = logging.getLogger(__name__)

FACET_FIELDS = ("tags", "sentimentScore")
SENTIMENT_BUCKET = 0.1


# ==================== Text analytics ====================


class TextAnalytics(Protocol):
    async def analyze_sentiment(self, text: str) -> float: ...

    async def extract_key_phrases(self, text: str) -> list[str]: ...


class LocalTextAnalytics:
    """Keyword sentiment and heuristic key phrases."""

    async def analyze_sentiment(self, text: str) -> float:
        return keyword_sentiment(text)

    async def extract_key_phrases(self, text: str) -> list[str]:
        return heuristic_key_phrases(text)


# ==================== Search ====================


@dataclass
class SearchRequest:
    """A search over indexed journal documents.

    Attributes:
        filter: Predicate every result must satisfy (owner plus filters)
        skip: Results to skip
        top: Maximum results to return
        order_by: Descending sort field
        facets: Fields to facet on
    """

    filter: QuerySpec
    skip: int
    top: int
    order_by: str = "date"
    facets: tuple[str, ...] = FACET_FIELDS


@dataclass
class SearchResponse:
    documents: list[dict[str, Any]]
    count: int
    facets: dict[str, list[dict[str, Any]]] = field(default_factory=dict)


class SearchIndex(Protocol):
    async def index(self, document: dict[str, Any]) -> None: ...

    async def remove(self, document_id: str) -> None: ...

    async def search(self, text: str, request: SearchRequest) -> SearchResponse: ...


def _matches_terms(document: dict[str, Any], terms: list[str]) -> bool:
    haystack = " ".join([document.get("content", ""), *document.get("tags", [])]).lower()
    return all(term in haystack for term in terms)


def sentiment_bucket(score: float) -> str:
    """Label of the 0.1-wide bucket containing score, e.g. 0.73 -> "0.7"."""
    return f"{int(round(score * 100)) // 10 / 10:.1f}"


def compute_facets(documents: list[dict[str, Any]], fields: tuple[str, ...]) -> dict[str, list[dict[str, Any]]]:
    """Value counts per facet field, most frequent first."""
    facets: dict[str, list[dict[str, Any]]] = {}
    for facet in fields:
        counts: Counter[str] = Counter()
        for document in documents:
            if facet == "sentimentScore":
                if document.get("sentimentScore") is not None:
                    counts[sentiment_bucket(document["sentimentScore"])] += 1
            elif isinstance(document.get(facet), list):
                counts.update(document[facet])
            elif document.get(facet) is not None:
                counts[str(document[facet])] += 1
        ordered = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        facets[facet] = [{"value": value, "count": count} for value, count in ordered]
    return facets


class StoreSearchIndex:
    """Searches documents straight from a store container.

    The store is the index: every stored entry is searchable, whichever
    process wrote it. Candidates are fetched with the request filter, then
    every term must appear in content or tags.
    """

    def __init__(self, store: DocumentStore, container_name: str = "journals") -> None:
        self.store = store
        self.container_name = container_name

    async def index(self, document: dict[str, Any]) -> None:
        # Already stored by the service
        return None

    async def remove(self, document_id: str) -> None:
        return None

    async def search(self, text: str, request: SearchRequest) -> SearchResponse:
        terms = [] if text.strip() in ("", "*") else text.lower().split()
        container = await self.store.container(self.container_name)
        candidates = await container.query(request.filter)

        filtered = [d for d in evaluate(request.filter, candidates) if _matches_terms(d, terms)]
        page = evaluate(request.filter.page(request.order_by, request.top, request.skip), filtered)

        logger.debug("Search %r matched %d documents", text, len(filtered))
        return SearchResponse(
            documents=page,
            count=len(filtered),
            facets=compute_facets(filtered, request.facets),
        )


# ==================== Blob storage ====================


class BlobStore(Protocol):
    async def upload(
        self, owner_id: str, data: bytes, content_type: str, file_name: str | None = None
    ) -> str: ...


class InMemoryBlobStore:
    """Keeps uploaded bytes in memory and hands out stable URLs."""

    def __init__(self, base_url: str, container: str) -> None:
        self.base_url = base_url.rstrip("/")
        self.container = container
        self.blobs: dict[str, tuple[bytes, str]] = {}

    async def upload(
        self, owner_id: str, data: bytes, content_type: str, file_name: str | None = None
    ) -> str:
        """Store bytes and return their URL.

        Args:
            owner_id: Owner of the file, used as the blob name prefix
            data: File content
            content_type: MIME type
            file_name: Original file name; only its extension is kept

        Returns:
            <base_url>/<container>/<owner>-<uuid><ext>
        """
        extension = PurePosixPath(file_name).suffix if file_name else ""
        if not extension:
            extension = mimetypes.guess_extension(content_type) or ""

        blob_name = f"{owner_id}-{uuid.uuid4()}{extension}"
        self.blobs[blob_name] = (data, content_type)

        logger.info("Stored blob %s/%s (%d bytes)", self.container, blob_name, len(data))
        return f"{self.base_url}/{self.container}/{blob_name}"
