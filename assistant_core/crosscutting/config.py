"""
Name: Assistant Core Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults for chunking, retrieval, compression and the tool loop

Collaborators:
  - container.py: reads settings to assemble gateways and services
  - crosscutting/logger.py: reads log_level / log_json
  - infrastructure/services/retry.py: reads retry policy

Constraints:
  - No business logic, pure configuration
  - Domain/application services receive plain values, never Settings

Notes:
  - Singleton via lru_cache
  - Provider keys are optional when the matching FAKE_* flag is set
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Assistant settings loaded from environment variables.

    Attributes:
        anthropic_api_key: Anthropic Messages API key (sk-ant-...)
        google_api_key: Google Gen AI key used for embeddings
        chat_model: Model used for answers and the tool loop
        auxiliary_model: Model used for summaries and rerank scoring
        chunk_size: Characters per chunk (default: 500)
        chunk_overlap: Overlap between chunks (default: 50)
        max_text_chars: Maximum document length accepted by the chunker
        max_chunks: Chunk-count ceiling per document
        rag_top_k: Final number of retrieval results
        rag_min_similarity: Stage-1 cosine threshold without reranking
        rag_min_similarity_reranked: Stage-1 cosine threshold when reranking
        rag_rerank_candidates_factor: rerank_top_n = top_k * factor
        rag_min_rerank_score: Stage-2 rerank threshold
        rag_min_context_score: Quality floor for injecting context
        rerank_fallback_score: Score used when a rerank response is unusable
        compression_token_threshold: Tokens of history that trigger a summary
        max_tool_iterations: Model calls allowed per tool loop
        storage_dir: Directory for the JSON index/history files
    """

    # Environment
    app_env: str = "development"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Providers
    anthropic_api_key: str = ""
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_version: str = "2023-06-01"
    chat_model: str = "claude-3-5-sonnet-20241022"
    auxiliary_model: str = "claude-3-5-haiku-20241022"
    llm_timeout_seconds: float = 120.0

    google_api_key: str = ""
    embedding_model: str = "text-embedding-004"

    # Testing/CI
    fake_llm: bool = False
    fake_embeddings: bool = False

    # Chunking
    chunk_size: int = 500
    chunk_overlap: int = 50
    max_text_chars: int = 10_000_000
    max_chunks: int = 100_000

    # Retrieval
    rag_enabled: bool = True
    rag_top_k: int = 5
    rag_min_similarity: float = 0.25
    rag_min_similarity_reranked: float = 0.15
    rag_enable_reranking: bool = False
    rag_rerank_candidates_factor: int = 4
    rag_min_rerank_score: float = 0.85
    rag_use_hybrid_scoring: bool = True
    rag_similarity_weight: float = 0.4
    rag_rerank_weight: float = 0.6
    rag_min_context_score: float = 0.75
    rag_min_context_score_reranked: float = 0.85
    rerank_fallback_score: float = 0.3
    rerank_max_concurrency: int = 4
    max_context_chars: int = 12000

    # History compression
    compression_enabled: bool = True
    compression_token_threshold: int = 800
    chars_per_token: int = 4

    # Tool loop / generation
    max_tool_iterations: int = 10
    knowledge_base_tool_enabled: bool = False
    max_tokens: int = 8192
    temperature: float = 1.0
    system_prompt: str = "You are Claude, a helpful AI assistant."

    # Persistence
    storage_dir: str = ".assistant_data"

    # Retry/Resilience
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0

    @field_validator("chunk_size", "max_text_chars", "max_chunks")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be greater than 0")
        return v

    @field_validator("chunk_overlap")
    @classmethod
    def chunk_overlap_must_be_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("chunk_overlap must be >= 0")
        return v

    @field_validator(
        "rag_min_rerank_score",
        "rag_min_context_score",
        "rag_min_context_score_reranked",
        "rerank_fallback_score",
    )
    @classmethod
    def score_in_unit_interval(cls, v: float) -> float:
        if v < 0 or v > 1:
            raise ValueError("score thresholds must be between 0 and 1")
        return v

    @field_validator("max_tool_iterations", "rag_top_k", "rag_rerank_candidates_factor")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be >= 1")
        return v

    def validate_chunk_params(self) -> None:
        """
        Cross-field validation: overlap must be less than chunk_size.
        Called explicitly after instantiation.
        """
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be less than "
                f"chunk_size ({self.chunk_size})"
            )

    @model_validator(mode="after")
    def validate_ai_requirements(self):
        if not self.anthropic_api_key and not self.fake_llm:
            raise ValueError("ANTHROPIC_API_KEY is required unless FAKE_LLM=1")
        if not self.google_api_key and not self.fake_embeddings:
            raise ValueError("GOOGLE_API_KEY is required unless FAKE_EMBEDDINGS=1")
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get singleton Settings instance.

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    settings = Settings()
    settings.validate_chunk_params()
    return settings
