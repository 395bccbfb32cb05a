"""
Context assembly for prompt injection.
"""

from typing import List, Optional

from lease_rag.ingestion.schemas import Chunk
from lease_rag.retrieval.retriever import Retriever


def format_context(chunks: List[Chunk]) -> str:
    """
    Page-annotated context block, one section per chunk, in the order given.
    """
    return "\n\n".join(
        f"[CHUNK {i + 1} - Page {chunk.page_number}]\n{chunk.text}"
        for i, chunk in enumerate(chunks)
    )


def build_context(retriever: Retriever, query: str, k: Optional[int] = None) -> str:
    """
    Retrieve the top-k chunks for a query and join them, most relevant first.

    Output length is not capped; pick k to fit the downstream token budget.
    """
    return format_context(retriever.retrieve(query, k))
