import hashlib
import re
import threading

import pytest

from lease_rag.core.exception import EmbeddingProviderError
from lease_rag.ingestion.embedder import Embedder
from lease_rag.ingestion.providers import EmbeddingProvider

DIM = 4096


def _bucket(token: str) -> int:
    return int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % DIM


class HashingProvider(EmbeddingProvider):
    """
    Deterministic bag-of-words provider: texts sharing words get similar vectors.
    Records every batch it is asked to embed.
    """

    name = "hashing"

    def __init__(self, dim: int = DIM):
        self.dim = dim
        self.calls = []
        self._lock = threading.Lock()

    def vector(self, text: str):
        vec = [0.0] * self.dim
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            vec[_bucket(token) % self.dim] += 1.0
        return vec

    def embed(self, texts):
        with self._lock:
            self.calls.append(list(texts))
        return [self.vector(t) for t in texts]


class FailingProvider(HashingProvider):
    """Fails every batch containing `marker`."""

    def __init__(self, marker: str = "FAIL", transient: bool = True, fail_times: int = -1):
        super().__init__()
        self.marker = marker
        self.transient = transient
        self.fail_times = fail_times
        self.failures = 0

    def embed(self, texts):
        with self._lock:
            self.calls.append(list(texts))
            should_fail = any(self.marker in t for t in texts) and (
                self.fail_times < 0 or self.failures < self.fail_times
            )
            if should_fail:
                self.failures += 1
        if should_fail:
            raise EmbeddingProviderError("provider unavailable", transient=self.transient)
        return [self.vector(t) for t in texts]


def make_embedder(provider, **kwargs) -> Embedder:
    options = {"batch_size": 16, "max_retries": 2, "retry_backoff": 0, "max_workers": 1}
    options.update(kwargs)
    return Embedder(provider=provider, **options)


@pytest.fixture
def provider():
    return HashingProvider()


@pytest.fixture
def embedder(provider):
    return make_embedder(provider)


@pytest.fixture
def lease_pages():
    return [
        (1, "The monthly rent is $1500, due on the 1st."),
        (2, "Pets are not allowed without written consent."),
    ]
