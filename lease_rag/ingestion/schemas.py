"""
Record types shared by the chunker, index and retriever.
"""

from typing import List, Optional
from dataclasses import dataclass


@dataclass(frozen=True)
class PageText:
    """One page of extracted text, 1-indexed."""
    page_number: int
    text: str


@dataclass
class Chunk:
    """
    A single-page slice of document text.

    `embedding is None` is the "absent" state: the chunk was chunked (or
    persisted) but never embedded. Only backfill may set it afterwards.
    """
    text: str
    page_number: int
    chunk_index: int
    start_index: int
    end_index: int
    embedding: Optional[List[float]] = None

    @property
    def is_embedded(self) -> bool:
        return self.embedding is not None

    @property
    def chunk_id(self) -> str:
        return f"chunk_{self.chunk_index}_page_{self.page_number}"


@dataclass(frozen=True)
class ScoredChunk:
    """A retrieved chunk with its cosine similarity to the query."""
    chunk: Chunk
    score: float


@dataclass(frozen=True)
class SourceMatch:
    """Best-matching source for a claim."""
    text: str
    page_number: int
    chunk_index: int
    score: float
