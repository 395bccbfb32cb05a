import copy
import json

import pytest

from lease_rag.core.exception import EmbeddingProviderError, ValidationError
from lease_rag.retrieval.index import IndexState, build_index
from lease_rag.retrieval.persistence import (
    backfill_embeddings,
    dumps_records,
    loads_records,
    rebuild_index,
    serialize_index,
    validate_records,
)
from lease_rag.retrieval.retriever import Retriever
from tests.conftest import FailingProvider, HashingProvider, make_embedder

PAGES = [
    (1, "The monthly rent is $1500, due on the 1st."),
    (2, "Pets are not allowed without written consent."),
    (3, "The tenant must give 60 days notice before moving out."),
]


def test_serialized_record_shape(embedder):
    records = serialize_index(build_index(PAGES, embedder=embedder))

    assert len(records) == 3
    assert set(records[0]) == {"text", "pageNumber", "embedding", "chunkIndex", "startIndex", "endIndex"}
    assert records[1]["pageNumber"] == 2
    assert records[1]["chunkIndex"] == 1
    json.dumps(records)


def test_rebuild_gives_identical_retrieval(embedder):
    original = build_index(PAGES, embedder=embedder)
    rebuilt = rebuild_index(serialize_index(original))

    for query in ["What is the rent?", "notice moving", "pets"]:
        before = Retriever(original, embedder).retrieve(query, k=3)
        after = Retriever(rebuilt, embedder).retrieve(query, k=3)
        assert [(c.chunk_index, c.text, c.page_number) for c in before] == [
            (c.chunk_index, c.text, c.page_number) for c in after
        ]


def test_rebuild_does_not_call_the_provider():
    provider = HashingProvider()
    embedder = make_embedder(provider)
    records = serialize_index(build_index(PAGES, embedder=embedder))
    provider.calls.clear()

    index = rebuild_index(records)

    assert index.state is IndexState.FULLY_EMBEDDED
    assert provider.calls == []


def test_backfill_after_rebuild_without_embeddings():
    provider = HashingProvider()
    embedder = make_embedder(provider)
    records = serialize_index(build_index(PAGES, embedder=embedder))
    for record in records:
        del record["embedding"]

    index = rebuild_index(records)
    assert index.state is IndexState.PARTIALLY_EMBEDDED

    filled = backfill_embeddings(index, embedder)

    assert filled == 3
    assert index.state is IndexState.FULLY_EMBEDDED
    assert Retriever(index, embedder).retrieve("What is the rent?", k=1)[0].page_number == 1


def test_backfill_only_fills_missing():
    provider = HashingProvider()
    embedder = make_embedder(provider)
    records = serialize_index(build_index(PAGES, embedder=embedder))
    records[1]["embedding"] = []
    kept = list(records[0]["embedding"])
    provider.calls.clear()

    index = rebuild_index(records)
    assert backfill_embeddings(index, embedder) == 1

    assert provider.calls == [[records[1]["text"]]]
    assert index.chunks[0].embedding == kept


def test_backfill_on_full_index_is_a_no_op():
    provider = HashingProvider()
    embedder = make_embedder(provider)
    index = build_index(PAGES, embedder=embedder)
    before = copy.deepcopy(serialize_index(index))
    provider.calls.clear()

    assert backfill_embeddings(index, embedder) == 0
    assert provider.calls == []
    assert serialize_index(index) == before


def test_failed_backfill_leaves_index_untouched():
    embedder = make_embedder(FailingProvider(), batch_size=1, max_retries=0)
    records = [
        {"text": "first clause", "pageNumber": 1},
        {"text": "FAIL clause", "pageNumber": 1},
    ]
    index = rebuild_index(records)

    with pytest.raises(EmbeddingProviderError):
        backfill_embeddings(index, embedder)

    assert all(c.embedding is None for c in index.chunks)


def test_missing_text_fails_rebuild():
    records = [
        {"text": "The monthly rent is $1500.", "pageNumber": 1},
        {"pageNumber": 2},
    ]

    with pytest.raises(ValidationError):
        rebuild_index(records)


@pytest.mark.parametrize(
    "record",
    [
        {"text": "", "pageNumber": 1},
        {"text": "   ", "pageNumber": 1},
        {"text": 42, "pageNumber": 1},
        {"text": "ok"},
        {"text": "ok", "pageNumber": "1"},
        {"text": "ok", "pageNumber": True},
        {"text": "ok", "pageNumber": 0},
        {"text": "ok", "pageNumber": 1.5},
        {"text": "ok", "pageNumber": 1, "embedding": ["a", "b"]},
        {"text": "ok", "pageNumber": 1, "chunkIndex": -1},
        {"text": "ok", "pageNumber": 1, "startIndex": 5, "endIndex": 5},
        "not a record",
    ],
)
def test_malformed_records(record):
    with pytest.raises(ValidationError):
        validate_records([record])


def test_records_must_be_a_list():
    with pytest.raises(ValidationError):
        rebuild_index({"text": "ok", "pageNumber": 1})


def test_older_records_get_default_positions():
    index = rebuild_index([
        {"text": "first", "pageNumber": 1},
        {"text": "second", "pageNumber": 2.0},
    ])

    assert [c.chunk_index for c in index.chunks] == [0, 1]
    assert (index.chunks[1].start_index, index.chunks[1].end_index) == (0, 6)
    assert index.chunks[1].page_number == 2


def test_mixed_dimensions_fail_rebuild():
    records = [
        {"text": "a", "pageNumber": 1, "embedding": [1.0, 0.0]},
        {"text": "b", "pageNumber": 1, "embedding": [1.0, 0.0, 0.0]},
    ]

    with pytest.raises(ValidationError):
        rebuild_index(records)


def test_json_blob_round_trip(embedder):
    index = build_index(PAGES, embedder=embedder)

    rebuilt = loads_records(dumps_records(index))

    assert serialize_index(rebuilt) == serialize_index(index)


def test_bad_json_blob():
    with pytest.raises(ValidationError):
        loads_records("{not json")


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_stored_embedding_fails_rebuild(value):
    with pytest.raises(ValidationError):
        rebuild_index([{"text": "a", "pageNumber": 1, "embedding": [value, 1.0]}])


def test_set_embeddings_rejects_non_finite_vectors():
    index = rebuild_index([{"text": "a", "pageNumber": 1}])

    with pytest.raises(ValidationError):
        index.set_embeddings(index.missing_embeddings(), [[float("nan"), 1.0]])

    assert index.chunks[0].embedding is None
