import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Sequence
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from lease_rag.core.config import settings
from lease_rag.core.exception import EmbeddingProviderError, ValidationError
from lease_rag.core.logger import logger
from lease_rag.core.monitor import track_latency
from lease_rag.ingestion.providers import EmbeddingProvider, get_embedding_provider
from lease_rag.retrieval.similarity import batched


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, EmbeddingProviderError) and exc.transient


class Embedder:
    """
    Batches texts to an embedding provider.

    Batches run on a bounded thread pool and are reassembled by position,
    so vector i always belongs to text i. Transient provider errors are
    retried with exponential backoff; once a batch gives up, the whole call
    fails and no partial result is returned.
    """

    def __init__(
        self,
        provider: Optional[EmbeddingProvider] = None,
        batch_size: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_backoff: Optional[float] = None,
        max_backoff: Optional[float] = None,
        max_workers: Optional[int] = None,
    ):
        self.provider = provider or get_embedding_provider()
        self.batch_size = settings.EMBEDDING_BATCH_SIZE if batch_size is None else batch_size
        self.max_retries = settings.EMBEDDING_MAX_RETRIES if max_retries is None else max_retries
        self.retry_backoff = settings.EMBEDDING_RETRY_BACKOFF if retry_backoff is None else retry_backoff
        self.max_backoff = settings.EMBEDDING_MAX_BACKOFF if max_backoff is None else max_backoff
        self.max_workers = settings.EMBEDDING_MAX_WORKERS if max_workers is None else max_workers

        if self.batch_size < 1 or self.max_workers < 1 or self.max_retries < 0:
            raise ValidationError("batch_size and max_workers must be positive, max_retries non-negative")

    def _retrying(self, batch_no: int) -> Retrying:
        return Retrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_backoff, max=self.max_backoff),
            before_sleep=lambda retry_state: logger.warning(
                f"Embedding batch {batch_no}: retry {retry_state.attempt_number}/{self.max_retries} "
                f"after {retry_state.outcome.exception()}"
            ),
            reraise=True,
        )

    def _embed_batch(self, batch_no: int, texts: Sequence[str]) -> List[List[float]]:
        try:
            vectors = self._retrying(batch_no)(self.provider.embed, list(texts))
        except EmbeddingProviderError as e:
            logger.error(f"Embedding batch {batch_no} failed: {e.message}")
            raise EmbeddingProviderError(
                f"Embedding batch {batch_no} failed: {e.message}", transient=False
            ) from e
        except Exception as e:
            logger.exception(f"Embedding batch {batch_no} raised an unmapped provider error")
            raise EmbeddingProviderError(e, transient=False) from e

        if not isinstance(vectors, list) or len(vectors) != len(texts):
            got = len(vectors) if isinstance(vectors, list) else type(vectors).__name__
            raise EmbeddingProviderError(
                f"Embedding batch {batch_no}: expected {len(texts)} vectors, got {got}"
            )
        try:
            converted = [[float(x) for x in v] for v in vectors]
        except (TypeError, ValueError) as e:
            raise EmbeddingProviderError(e, transient=False) from e

        if not all(math.isfinite(x) for v in converted for x in v):
            raise EmbeddingProviderError(
                f"Embedding batch {batch_no}: vectors contain NaN or infinite values"
            )
        return converted

    @track_latency
    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        texts = list(texts)
        if not texts:
            return []
        if not all(isinstance(t, str) for t in texts):
            raise ValidationError("All texts to embed must be strings")

        batches = list(batched(texts, self.batch_size))
        logger.info(f"Embedding {len(texts)} texts in {len(batches)} batches")

        results: List[Optional[List[List[float]]]] = [None] * len(batches)
        workers = min(self.max_workers, len(batches))

        if workers == 1:
            for i, batch in enumerate(batches):
                results[i] = self._embed_batch(i + 1, batch)
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {
                    pool.submit(self._embed_batch, i + 1, batch): i
                    for i, batch in enumerate(batches)
                }
                try:
                    for future in as_completed(futures):
                        results[futures[future]] = future.result()
                except EmbeddingProviderError:
                    for future in futures:
                        future.cancel()
                    raise

        vectors = [vector for batch_vectors in results for vector in batch_vectors]

        dims = {len(v) for v in vectors}
        if len(dims) != 1 or 0 in dims:
            raise EmbeddingProviderError(f"Inconsistent embedding dimensions: {sorted(dims)}")

        return vectors

    def embed_single(self, text: str) -> List[float]:
        return self.embed_texts([text])[0]
