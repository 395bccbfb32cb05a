"""
In-memory chunk index for a single document.

An index is built once per request, either from fresh pages or from
persisted records, and discarded afterwards. The only mutation allowed
after construction is filling in embeddings that are missing.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence
import numpy as np

from lease_rag.core.exception import NotReadyError, ValidationError
from lease_rag.core.logger import logger
from lease_rag.ingestion.chunker import PageInput, chunk_pages
from lease_rag.ingestion.embedder import Embedder
from lease_rag.ingestion.schemas import Chunk


class IndexState(str, Enum):
    PARTIALLY_EMBEDDED = "partially_embedded"
    FULLY_EMBEDDED = "fully_embedded"


class ChunkIndex:
    """Ordered chunks plus a page -> chunks lookup."""

    def __init__(self, chunks: Sequence[Chunk]):
        self.chunks: List[Chunk] = list(chunks)
        self.page_map: Dict[int, List[Chunk]] = {}
        self._dimension: Optional[int] = None

        previous_index = -1
        for chunk in self.chunks:
            if chunk.chunk_index <= previous_index:
                raise ValidationError(
                    f"chunk_index must be strictly increasing, got {chunk.chunk_index} after {previous_index}"
                )
            previous_index = chunk.chunk_index

            if chunk.embedding is not None:
                self._check_dimension(chunk.embedding, chunk.chunk_index)

            self.page_map.setdefault(chunk.page_number, []).append(chunk)

        logger.info(
            f"Chunk index built: {len(self.chunks)} chunks, {len(self.page_map)} pages, "
            f"{len(self.missing_embeddings())} without embeddings"
        )

    def _check_dimension(self, vector: Sequence[float], chunk_index: int):
        if len(vector) == 0:
            raise ValidationError(f"Chunk {chunk_index} has an empty embedding")
        if not np.isfinite(np.asarray(vector, dtype=np.float64)).all():
            raise ValidationError(f"Chunk {chunk_index} embedding contains NaN or infinite values")
        if self._dimension is None:
            self._dimension = len(vector)
        elif len(vector) != self._dimension:
            raise ValidationError(
                f"Chunk {chunk_index} embedding has dimension {len(vector)}, index uses {self._dimension}"
            )

    def __len__(self) -> int:
        return len(self.chunks)

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    @property
    def pages(self) -> List[int]:
        return sorted(self.page_map)

    def missing_embeddings(self) -> List[Chunk]:
        return [c for c in self.chunks if c.embedding is None]

    @property
    def state(self) -> IndexState:
        if self.missing_embeddings():
            return IndexState.PARTIALLY_EMBEDDED
        return IndexState.FULLY_EMBEDDED

    @property
    def is_ready(self) -> bool:
        return self.state is IndexState.FULLY_EMBEDDED

    def ensure_ready(self):
        missing = len(self.missing_embeddings())
        if missing:
            raise NotReadyError(
                f"{missing} of {len(self.chunks)} chunks have no embedding; backfill before querying"
            )

    def embedding_matrix(self) -> np.ndarray:
        """Row i is the embedding of chunks[i]. Requires a ready index."""
        self.ensure_ready()
        if not self.chunks:
            return np.zeros((0, 0), dtype=np.float64)
        return np.asarray([c.embedding for c in self.chunks], dtype=np.float64)

    def set_embeddings(self, chunks: Sequence[Chunk], vectors: Sequence[Sequence[float]]):
        """
        Attach vectors to chunks that have none. Everything is checked
        before anything is written.
        """
        if len(chunks) != len(vectors):
            raise ValidationError("Number of chunks must match number of embeddings")

        members = {id(c) for c in self.chunks}
        dimension = self._dimension
        for chunk, vector in zip(chunks, vectors):
            if id(chunk) not in members:
                raise ValidationError(f"Chunk {chunk.chunk_index} does not belong to this index")
            if chunk.embedding is not None:
                raise ValidationError(f"Chunk {chunk.chunk_index} already has an embedding")
            if len(vector) == 0 or (dimension is not None and len(vector) != dimension):
                raise ValidationError(
                    f"Embedding dimension {len(vector)} does not match index dimension {dimension}"
                )
            if not np.isfinite(np.asarray(vector, dtype=np.float64)).all():
                raise ValidationError(f"Embedding for chunk {chunk.chunk_index} contains NaN or infinite values")
            dimension = len(vector)

        for chunk, vector in zip(chunks, vectors):
            chunk.embedding = [float(x) for x in vector]
        self._dimension = dimension

    def get_chunks_for_page(self, page_number: int) -> List[Chunk]:
        return list(self.page_map.get(page_number, []))

    def get_all_chunks(self) -> List[Chunk]:
        return list(self.chunks)

    def get_stats(self) -> Dict:
        total = len(self.chunks)
        return {
            "total_chunks": total,
            "chunks_with_embeddings": total - len(self.missing_embeddings()),
            "pages_indexed": len(self.page_map),
            "average_chunk_length": round(sum(len(c.text) for c in self.chunks) / total) if total else 0,
            "dimension": self._dimension,
            "state": self.state.value,
        }


def build_index(
    pages: Iterable[PageInput],
    embedder: Optional[Embedder] = None,
    embed: bool = True,
    chunk_size: Optional[int] = None,
    chunk_overlap: Optional[int] = None,
    min_chunk_size: Optional[int] = None,
) -> ChunkIndex:
    """
    Chunk a document and, when embed is True, embed every chunk.

    An embedding failure propagates; no half-embedded index is returned.
    With embed=False the index comes back partially embedded and has to be
    backfilled before it can answer queries.
    """
    chunks = chunk_pages(
        pages,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        min_chunk_size=min_chunk_size,
    )

    if embed and chunks:
        if embedder is None:
            raise ValidationError("An embedder is required when embed=True")
        vectors = embedder.embed_texts([c.text for c in chunks])
        for chunk, vector in zip(chunks, vectors):
            chunk.embedding = vector

    return ChunkIndex(chunks)
