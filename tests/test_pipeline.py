import pytest

from lease_rag import DocumentRAG, IndexState, NotReadyError
from tests.conftest import HashingProvider, make_embedder

PAGES = [
    (1, "The monthly rent is $1500, due on the 1st."),
    (2, "Pets are not allowed without written consent."),
]


def test_analyze_persist_and_query_later():
    provider = HashingProvider()
    embedder = make_embedder(provider)

    first = DocumentRAG.from_pages(PAGES, embedder)
    records = first.serialize()
    provider.calls.clear()

    later = DocumentRAG.from_records(records, embedder)

    assert later.state is IndexState.FULLY_EMBEDDED
    assert provider.calls == []
    assert later.find_source("rent 1500").page_number == 1
    assert later.build_context("pets", k=1).startswith("[CHUNK 1 - Page 2]")


def test_unembedded_document_needs_backfill():
    embedder = make_embedder(HashingProvider())
    rag = DocumentRAG.from_pages(PAGES, embedder, embed=False)

    with pytest.raises(NotReadyError):
        rag.retrieve("rent")

    assert rag.backfill() == 2
    assert rag.retrieve("rent", k=1)[0].page_number == 1
    assert all(r["embedding"] for r in rag.serialize())


def test_from_records_with_backfill():
    embedder = make_embedder(HashingProvider())
    records = [{"text": text, "pageNumber": page} for page, text in PAGES]

    rag = DocumentRAG.from_records(records, embedder, backfill=True)

    assert rag.state is IndexState.FULLY_EMBEDDED
    assert rag.get_stats()["chunks_with_embeddings"] == 2
    assert rag.get_chunks_for_page(2)[0].text.startswith("Pets")


def test_instances_do_not_share_state():
    embedder = make_embedder(HashingProvider())
    a = DocumentRAG.from_pages(PAGES[:1], embedder)
    b = DocumentRAG.from_pages(PAGES[1:], embedder)

    assert a.retrieve("anything", k=5)[0].page_number == 1
    assert b.retrieve("anything", k=5)[0].page_number == 2


def test_chunk_options_pass_through():
    embedder = make_embedder(HashingProvider())
    text = " ".join(f"Clause {i} applies to the tenant." for i in range(30))

    rag = DocumentRAG.from_pages([(1, text)], embedder, chunk_size=120, chunk_overlap=20)

    assert rag.get_stats()["total_chunks"] > 1
