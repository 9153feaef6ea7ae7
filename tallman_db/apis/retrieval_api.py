"""
Retrieval API - keyword-overlap ranking of knowledge items.

The ranking is deliberately minimal and deterministic:

    1. Query tokens: whitespace split, lowercased, longer than two
       characters, de-duplicated. No tokens means no results.
    2. Document tokens: whitespace split, lowercased, de-duplicated.
    3. Score: number of distinct query tokens present in the document.
    4. Order by score descending, then timestamp descending.
    5. Drop zero scores and keep the first `limit` (default 3).

Documents are not normalised by length: a long and a short document
matching the same number of tokens score the same.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Set

from ..repositories.knowledge_repository import KnowledgeRepository
from ..repositories.models import KnowledgeItem

MAX_CONTEXT_DOCUMENTS = 3
MIN_QUERY_TOKEN_LENGTH = 3

CONTEXT_HEADER = "--- Relevant Information from Knowledge Base ---"
CONTEXT_FOOTER = "--- End of Knowledge Base Information ---"


@dataclass
class ScoredDocument:
    item: KnowledgeItem
    score: int


# ----------------------------------------------------------------------
# Internal helpers
# ----------------------------------------------------------------------


def _tokens(text: str) -> Set[str]:
    return set(text.lower().split())


def query_tokens(query: str) -> Set[str]:
    return {t for t in _tokens(query) if len(t) >= MIN_QUERY_TOKEN_LENGTH}


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------


def rank_documents(query: str, documents: Iterable[KnowledgeItem]) -> List[ScoredDocument]:
    """
    Score and order every document with a non-zero score.

    Ties on both score and timestamp keep their input order.
    """
    wanted = query_tokens(query)
    if not wanted:
        return []

    scored: List[ScoredDocument] = []
    for doc in documents:
        score = len(wanted & _tokens(doc.content))
        if score > 0:
            scored.append(ScoredDocument(item=doc, score=score))

    scored.sort(key=lambda s: (-s.score, -s.item.timestamp))
    return scored


def retrieve_context(
    query: str,
    documents: Iterable[KnowledgeItem],
    *,
    limit: int = MAX_CONTEXT_DOCUMENTS,
) -> List[str]:
    """Contents of the best-matching documents, at most `limit` of them."""
    return [s.item.content for s in rank_documents(query, documents)[:limit]]


def format_context(items: List[str]) -> str:
    """
    Wrap retrieved documents in the knowledge-base markers expected by
    the prompt assembler. Returns "" when there is nothing to add.
    """
    if not items:
        return ""
    return f"{CONTEXT_HEADER}\n" + "\n\n".join(items) + f"\n{CONTEXT_FOOTER}\n\n"


class ContextRetriever:
    """Runs retrieve_context over a snapshot of a KnowledgeRepository."""

    def __init__(self, repository: KnowledgeRepository, *, limit: int = MAX_CONTEXT_DOCUMENTS):
        self._repository = repository
        self._limit = limit

    def retrieve(self, query: str) -> List[str]:
        if not query_tokens(query):
            return []
        return retrieve_context(query, self._repository.get_all(), limit=self._limit)

    def get_context_string(self, query: str) -> str:
        return format_context(self.retrieve(query))


__all__ = [
    "MAX_CONTEXT_DOCUMENTS",
    "ScoredDocument",
    "query_tokens",
    "rank_documents",
    "retrieve_context",
    "format_context",
    "ContextRetriever",
]
