"""
Chunk record persistence.

Turns an index into plain records for an external store, rebuilds an
index from those records without re-chunking or re-embedding, and
backfills embeddings that were never computed. Storage itself belongs to
the caller; this module only produces and consumes the record shape:

    {"text", "pageNumber", "embedding", "chunkIndex", "startIndex", "endIndex"}
"""

import json
import math
import numbers
from typing import Any, Dict, List, Mapping, Optional, Sequence

from lease_rag.core.exception import ValidationError
from lease_rag.core.logger import logger
from lease_rag.ingestion.embedder import Embedder
from lease_rag.ingestion.schemas import Chunk
from lease_rag.retrieval.index import ChunkIndex


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _as_int(record: Mapping, key: str, position: int, minimum: int) -> int:
    value = record[key]
    if not _is_number(value) or not math.isfinite(value) or value != int(value):
        raise ValidationError(f"Record {position}: '{key}' must be an integer, got {value!r}")
    value = int(value)
    if value < minimum:
        raise ValidationError(f"Record {position}: '{key}' must be >= {minimum}, got {value}")
    return value


def _parse_embedding(value: Any, position: int) -> Optional[List[float]]:
    # Older records stored an empty list where no embedding existed
    if value is None or (isinstance(value, (list, tuple)) and len(value) == 0):
        return None
    if not isinstance(value, (list, tuple)) or not all(_is_number(x) for x in value):
        raise ValidationError(f"Record {position}: 'embedding' must be a list of numbers")
    if not all(math.isfinite(x) for x in value):
        raise ValidationError(f"Record {position}: 'embedding' contains NaN or infinite values")
    return [float(x) for x in value]


def _record_to_chunk(record: Any, position: int) -> Chunk:
    if not isinstance(record, Mapping):
        raise ValidationError(f"Record {position} is not a mapping")

    text = record.get("text")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError(f"Record {position}: 'text' must be a non-empty string")

    if "pageNumber" not in record:
        raise ValidationError(f"Record {position}: 'pageNumber' is missing")
    page_number = _as_int(record, "pageNumber", position, minimum=1)

    chunk_index = (
        _as_int(record, "chunkIndex", position, minimum=0)
        if record.get("chunkIndex") is not None else position
    )
    start_index = (
        _as_int(record, "startIndex", position, minimum=0)
        if record.get("startIndex") is not None else 0
    )
    end_index = (
        _as_int(record, "endIndex", position, minimum=0)
        if record.get("endIndex") is not None else start_index + len(text)
    )
    if end_index <= start_index:
        raise ValidationError(f"Record {position}: 'endIndex' must be greater than 'startIndex'")

    return Chunk(
        text=text,
        page_number=page_number,
        chunk_index=chunk_index,
        start_index=start_index,
        end_index=end_index,
        embedding=_parse_embedding(record.get("embedding"), position),
    )


def validate_records(records: Any) -> List[Chunk]:
    """Check every record's shape and convert it; fails on the first bad one."""
    if not isinstance(records, (list, tuple)):
        raise ValidationError(f"Chunk records must be a list, got {type(records).__name__}")
    return [_record_to_chunk(record, i) for i, record in enumerate(records)]


def serialize_index(index: ChunkIndex) -> List[Dict[str, Any]]:
    return [
        {
            "text": c.text,
            "pageNumber": c.page_number,
            "embedding": list(c.embedding) if c.embedding is not None else None,
            "chunkIndex": c.chunk_index,
            "startIndex": c.start_index,
            "endIndex": c.end_index,
        }
        for c in index.chunks
    ]


def rebuild_index(records: Sequence[Mapping[str, Any]]) -> ChunkIndex:
    """
    Reconstruct an index from stored records.

    Chunk boundaries and existing embeddings are taken as stored. Chunks
    without an embedding leave the index partially embedded; call
    backfill_embeddings before querying it.
    """
    chunks = validate_records(records)
    index = ChunkIndex(chunks)
    logger.info(
        f"Rebuilt index from {len(chunks)} stored chunks "
        f"({len(index.missing_embeddings())} need embeddings)"
    )
    return index


def backfill_embeddings(index: ChunkIndex, embedder: Embedder) -> int:
    """
    Embed exactly the chunks that have no embedding, in place.

    Returns how many were filled. Nothing missing means no provider call.
    A provider failure leaves the index untouched. Re-persisting the
    updated records is up to the caller.
    """
    missing = index.missing_embeddings()
    if not missing:
        logger.info("Backfill skipped: every chunk already has an embedding")
        return 0

    logger.info(f"Backfilling embeddings for {len(missing)} of {len(index)} chunks")
    vectors = embedder.embed_texts([c.text for c in missing])
    index.set_embeddings(missing, vectors)
    return len(missing)


def dumps_records(index: ChunkIndex) -> str:
    """Records as a JSON string, for stores that keep them in a text column."""
    return json.dumps(serialize_index(index))


def loads_records(blob: str) -> ChunkIndex:
    try:
        records = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise ValidationError(e) from e
    return rebuild_index(records)
