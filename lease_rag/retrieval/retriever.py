from typing import List, Optional, Sequence

from lease_rag.core.config import settings
from lease_rag.core.exception import EmbeddingProviderError, EmptyIndexError, ValidationError
from lease_rag.core.logger import logger
from lease_rag.core.monitor import track_latency
from lease_rag.ingestion.embedder import Embedder
from lease_rag.ingestion.schemas import Chunk, ScoredChunk, SourceMatch
from lease_rag.retrieval.index import ChunkIndex
from lease_rag.retrieval.similarity import cosine_scores, rank_indices


class Retriever:
    """
    Ranks every chunk of one index against a query by cosine similarity.

    A linear scan: documents hold tens to low hundreds of chunks, so no
    approximate structure is used. Queries against an index with missing
    embeddings fail with NotReadyError before the provider is called.
    """

    def __init__(
        self,
        index: ChunkIndex,
        embedder: Embedder,
        min_source_similarity: Optional[float] = None,
    ):
        self.index = index
        self.embedder = embedder
        self.min_source_similarity = (
            settings.SOURCE_MIN_SIMILARITY if min_source_similarity is None else min_source_similarity
        )

    def retrieve_by_vector(self, query_embedding: Sequence[float], k: Optional[int] = None) -> List[ScoredChunk]:
        k = settings.DEFAULT_TOP_K if k is None else k
        if k < 1:
            raise ValidationError(f"k must be at least 1, got {k}")
        if not self.index.chunks:
            return []

        self.index.ensure_ready()

        if len(query_embedding) != self.index.dimension:
            raise EmbeddingProviderError(
                f"Query embedding dimension {len(query_embedding)} does not match index dimension {self.index.dimension}"
            )

        chunks = self.index.chunks
        scores = cosine_scores(query_embedding, self.index.embedding_matrix())
        top = rank_indices(scores, [c.chunk_index for c in chunks], k)

        return [ScoredChunk(chunk=chunks[i], score=float(scores[i])) for i in top]

    @track_latency
    def retrieve_with_scores(self, query: str, k: Optional[int] = None) -> List[ScoredChunk]:
        k = settings.DEFAULT_TOP_K if k is None else k
        if k < 1:
            raise ValidationError(f"k must be at least 1, got {k}")
        if not self.index.chunks:
            logger.warning("Retrieval against an empty index")
            return []

        self.index.ensure_ready()

        query_embedding = self.embedder.embed_single(query)
        results = self.retrieve_by_vector(query_embedding, k)

        logger.info(f"Retrieved {len(results)} of {len(self.index)} chunks")
        return results

    def retrieve(self, query: str, k: Optional[int] = None) -> List[Chunk]:
        return [r.chunk for r in self.retrieve_with_scores(query, k)]

    def find_source(self, claim: str, context: str = "") -> Optional[SourceMatch]:
        """
        Attribute a generated statement to its best-matching chunk.

        Returns None when even the best chunk scores below
        min_source_similarity.
        """
        if not self.index.chunks:
            raise EmptyIndexError("Cannot find a source in an index with no chunks")

        query = f"{claim} {context}".strip()
        results = self.retrieve_with_scores(query, k=1)
        best = results[0]

        if best.score < self.min_source_similarity:
            logger.info(
                f"Best source scored {best.score:.3f}, below threshold {self.min_source_similarity}"
            )
            return None

        return SourceMatch(
            text=best.chunk.text,
            page_number=best.chunk.page_number,
            chunk_index=best.chunk.chunk_index,
            score=best.score,
        )
