from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import ConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Lease RAG Engine"
    ENVIRONMENT: str = "Dev"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    # Chunking
    CHUNK_SIZE: int = 800
    CHUNK_OVERLAP: int = 150
    MIN_CHUNK_SIZE: int = 50

    # Embedding provider
    EMBEDDING_BACKEND: str = "sentence-transformers"
    EMBEDDING_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"
    EMBEDDING_BATCH_SIZE: int = 32
    EMBEDDING_MAX_RETRIES: int = 3
    EMBEDDING_RETRY_BACKOFF: float = 0.5
    EMBEDDING_MAX_BACKOFF: float = 8.0
    EMBEDDING_MAX_WORKERS: int = 4
    EMBEDDING_TIMEOUT: int = 60
    HF_API_KEY: Optional[str] = None
    HF_EMBEDDING_URL: str = "https://api-inference.huggingface.co/pipeline/feature-extraction"

    # Retrieval
    SOURCE_MIN_SIMILARITY: float = 0.2
    DEFAULT_TOP_K: int = 5

    # Use Pydantic v2 style config and ignore unexpected env vars
    model_config = ConfigDict(env_file=".env", extra="ignore")


settings = Settings()
