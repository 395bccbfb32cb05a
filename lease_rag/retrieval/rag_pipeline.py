"""
Per-request retrieval facade.

One DocumentRAG wraps one document's index for the lifetime of a single
request. Callers create it, pass it along, and drop it; there is no
module-level index.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from lease_rag.core.logger import logger
from lease_rag.generation.context import build_context
from lease_rag.ingestion.chunker import PageInput
from lease_rag.ingestion.embedder import Embedder
from lease_rag.ingestion.schemas import Chunk, ScoredChunk, SourceMatch
from lease_rag.retrieval.index import ChunkIndex, IndexState, build_index
from lease_rag.retrieval.persistence import (
    backfill_embeddings,
    rebuild_index,
    serialize_index,
)
from lease_rag.retrieval.retriever import Retriever


class DocumentRAG:
    def __init__(
        self,
        index: ChunkIndex,
        embedder: Embedder,
        min_source_similarity: Optional[float] = None,
    ):
        self.index = index
        self.embedder = embedder
        self.retriever = Retriever(index, embedder, min_source_similarity=min_source_similarity)

    @classmethod
    def from_pages(
        cls,
        pages: Iterable[PageInput],
        embedder: Embedder,
        embed: bool = True,
        min_source_similarity: Optional[float] = None,
        **chunk_options,
    ) -> "DocumentRAG":
        """Chunk and embed a freshly extracted document."""
        index = build_index(pages, embedder=embedder, embed=embed, **chunk_options)
        return cls(index, embedder, min_source_similarity=min_source_similarity)

    @classmethod
    def from_records(
        cls,
        records: Sequence[Mapping[str, Any]],
        embedder: Embedder,
        backfill: bool = False,
        min_source_similarity: Optional[float] = None,
    ) -> "DocumentRAG":
        """
        Rebuild from persisted records. With backfill=True, missing
        embeddings are computed right away; the caller should then
        re-persist serialize().
        """
        rag = cls(rebuild_index(records), embedder, min_source_similarity=min_source_similarity)
        if backfill:
            rag.backfill()
        return rag

    @property
    def state(self) -> IndexState:
        return self.index.state

    def retrieve(self, query: str, k: Optional[int] = None) -> List[Chunk]:
        return self.retriever.retrieve(query, k)

    def retrieve_with_scores(self, query: str, k: Optional[int] = None) -> List[ScoredChunk]:
        return self.retriever.retrieve_with_scores(query, k)

    def build_context(self, query: str, k: Optional[int] = None) -> str:
        return build_context(self.retriever, query, k)

    def find_source(self, claim: str, context: str = "") -> Optional[SourceMatch]:
        return self.retriever.find_source(claim, context)

    def backfill(self) -> int:
        filled = backfill_embeddings(self.index, self.embedder)
        if filled:
            logger.info(f"Backfilled {filled} embeddings; records need re-persisting")
        return filled

    def serialize(self) -> List[Dict[str, Any]]:
        return serialize_index(self.index)

    def get_chunks_for_page(self, page_number: int) -> List[Chunk]:
        return self.index.get_chunks_for_page(page_number)

    def get_stats(self) -> Dict:
        return self.index.get_stats()
