from typing import ClassVar, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    GROQ_API_KEY: Optional[str] = Field(default=None)

    # LLM Configuration
    LLM_TEXT_MODEL: str = Field(default="moonshotai/kimi-k2-instruct", description="Model for text-only calls")
    LLM_VISION_MODEL: str = Field(
        default="meta-llama/llama-4-scout-17b-16e-instruct", description="Model for calls carrying an image"
    )
    LLM_TEMPERATURE: float = Field(default=0.2, description="Sampling temperature for every LLM call")
    LLM_MAX_TOKENS: int = Field(default=1024, description="Completion token cap per call")
    LLM_RATE_LIMIT_RETRIES: int = Field(default=3, description="Backoff attempts on HTTP 429 for a single call")

    # Evidence retrieval
    GOOGLE_API_KEY: Optional[str] = Field(default=None)
    GOOGLE_CSE_ID: Optional[str] = Field(default=None)
    VERIFY_WEB_SEARCH: bool = Field(default=True, description="Retrieve web evidence before judging a claim")

    # Storage backends
    REDIS_URL: str = Field(default="redis://localhost:6379", description="Redis connection URL")
    INSIGHTS_BACKEND: Literal["memory", "redis"] = Field(default="memory", description="Content insights store")
    RATE_LIMIT_BACKEND: Literal["memory", "redis"] = Field(default="memory", description="Rate limit counter store")

    KAFKA_ENABLED: bool = Field(default=False, description="Start the Kafka consumer/producer on startup")
    KAFKA_BOOTSTRAP: str = Field(default="localhost:9092", description="Kafka bootstrap servers")
    CONTENT_JOBS_TOPIC: str = Field(default="content.to_pipeline", description="Kafka topic for incoming content")
    RESULTS_TOPIC: str = Field(default="content.pipeline_results", description="Kafka topic for pipeline results")
    SIDE_EFFECTS_TOPIC: str = Field(default="content.side_effects", description="Kafka topic for side-effect jobs")
    DLQ_TOPIC: str = Field(default="content.pipeline_failed", description="Kafka topic for dead letter queue")
    SIDE_EFFECT_BACKEND: Literal["memory", "kafka"] = Field(default="memory", description="Side-effect channel")

    # Worker configuration
    WORKER_GROUP_ID: str = Field(default="content-pipeline-1", description="Consumer group ID for this worker")
    MAX_JOB_ATTEMPTS: int = Field(default=3, description="Maximum number of attempts for a retryable job")

    # Pipeline defaults (advisory, not enforced by stages)
    PIPELINE_TIMEOUT_MS: int = Field(default=120000, description="Pipeline timeout metadata in milliseconds")
    PIPELINE_MAX_RETRIES: int = Field(default=2, description="Retry budget metadata for re-invokers")

    # HTTP entry point rate limiting
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=30, description="Requests allowed per window and client")
    RATE_LIMIT_WINDOW_MS: int = Field(default=60000, description="Fixed window length in milliseconds")

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()

# Module-level constants used by the Kafka consumer
MAX_ATTEMPTS = settings.MAX_JOB_ATTEMPTS
CONTENT_JOBS_TOPIC = settings.CONTENT_JOBS_TOPIC
RESULTS_TOPIC = settings.RESULTS_TOPIC
SIDE_EFFECTS_TOPIC = settings.SIDE_EFFECTS_TOPIC
DLQ_TOPIC = settings.DLQ_TOPIC
