"""
Page-attributable retrieval engine for lease documents.
Chunks extracted pages, embeds them, ranks them against queries, and
persists/rebuilds the index between requests.
"""

from lease_rag.core.exception import (
    CustomException,
    EmbeddingProviderError,
    EmptyIndexError,
    NotReadyError,
    ValidationError,
)
from lease_rag.ingestion.chunker import chunk_pages
from lease_rag.ingestion.embedder import Embedder
from lease_rag.ingestion.schemas import Chunk, PageText, ScoredChunk, SourceMatch
from lease_rag.retrieval.index import ChunkIndex, IndexState, build_index
from lease_rag.retrieval.persistence import backfill_embeddings, rebuild_index, serialize_index
from lease_rag.retrieval.rag_pipeline import DocumentRAG
from lease_rag.retrieval.retriever import Retriever

__all__ = [
    "CustomException",
    "EmbeddingProviderError",
    "EmptyIndexError",
    "NotReadyError",
    "ValidationError",
    "chunk_pages",
    "Embedder",
    "Chunk",
    "PageText",
    "ScoredChunk",
    "SourceMatch",
    "ChunkIndex",
    "IndexState",
    "build_index",
    "backfill_embeddings",
    "rebuild_index",
    "serialize_index",
    "DocumentRAG",
    "Retriever",
]
