"""
Embedding provider adapters.
Each adapter maps its own failures onto EmbeddingProviderError.
"""

from typing import List, Optional
import requests

from lease_rag.core.config import settings
from lease_rag.core.exception import EmbeddingProviderError, ValidationError
from lease_rag.core.logger import logger

TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class EmbeddingProvider:
    """Turns a batch of strings into one vector per string, in order."""

    name = "base"

    def embed(self, texts: List[str]) -> List[List[float]]:
        raise NotImplementedError


class SentenceTransformerProvider(EmbeddingProvider):
    name = "sentence-transformers"

    def __init__(self, model_name: Optional[str] = None):
        from sentence_transformers import SentenceTransformer

        self.model_name = model_name or settings.EMBEDDING_MODEL
        logger.info(f"Loading embedding model: {self.model_name}")
        self.model = SentenceTransformer(self.model_name)

    def embed(self, texts: List[str]) -> List[List[float]]:
        try:
            return self.model.encode(texts, show_progress_bar=False).tolist()
        except Exception as e:
            raise EmbeddingProviderError(e, transient=False) from e


class HuggingFaceInferenceProvider(EmbeddingProvider):
    """
    Hosted feature-extraction endpoint.
    Timeouts, connection errors, throttling and 5xx are transient.
    """

    name = "huggingface-api"

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.model_name = model_name or settings.EMBEDDING_MODEL
        base_url = (api_url or settings.HF_EMBEDDING_URL).rstrip("/")
        self.api_url = f"{base_url}/{self.model_name}"
        self.timeout = timeout or settings.EMBEDDING_TIMEOUT

        api_key = api_key or settings.HF_API_KEY
        if api_key:
            self.headers = {"Authorization": f"Bearer {api_key}"}
        else:
            self.headers = None
            logger.warning("HF_API_KEY not configured; hosted embedding calls will fail")

    def embed(self, texts: List[str]) -> List[List[float]]:
        if not self.headers:
            raise EmbeddingProviderError("HF_API_KEY not configured", transient=False)

        payload = {"inputs": texts, "options": {"wait_for_model": True}}

        try:
            res = requests.post(self.api_url, headers=self.headers, json=payload, timeout=self.timeout)
        except (requests.Timeout, requests.ConnectionError) as e:
            raise EmbeddingProviderError(e, transient=True) from e
        except requests.RequestException as e:
            raise EmbeddingProviderError(e, transient=False) from e

        if res.status_code != 200:
            transient = res.status_code in TRANSIENT_STATUS_CODES
            logger.error(f"HF embedding request failed: {res.status_code} {res.text[:200]}")
            raise EmbeddingProviderError(f"Embedding API error {res.status_code}", transient=transient)

        try:
            output = res.json()
        except ValueError as e:
            raise EmbeddingProviderError(e, transient=False) from e

        if not isinstance(output, list) or not all(isinstance(v, list) for v in output):
            raise EmbeddingProviderError("Unexpected embedding payload shape", transient=False)

        try:
            return [[float(x) for x in vector] for vector in output]
        except (TypeError, ValueError) as e:
            # token-level outputs come back nested one level deeper
            raise EmbeddingProviderError(e, transient=False) from e


def get_embedding_provider(
    backend: Optional[str] = None,
    model_name: Optional[str] = None,
) -> EmbeddingProvider:
    """Build the provider named by EMBEDDING_BACKEND."""
    backend = backend or settings.EMBEDDING_BACKEND

    if backend == SentenceTransformerProvider.name:
        return SentenceTransformerProvider(model_name)
    if backend == HuggingFaceInferenceProvider.name:
        return HuggingFaceInferenceProvider(model_name)

    raise ValidationError(f"Unknown embedding backend: {backend}")
