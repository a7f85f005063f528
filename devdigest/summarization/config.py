"""Configuration for the summarization worker.

All settings can be overridden via SUMMARIZATION_* environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SummarizationConfig(BaseSettings):
    """Summarization settings.

    Example:
        SUMMARIZATION_BATCH_SIZE=50
        SUMMARIZATION_CIRCUIT_FAILURE_THRESHOLD=3
    """

    model_config = SettingsConfigDict(
        env_prefix="SUMMARIZATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    enabled: bool = Field(
        default=True,
        description="Run the model summarizer; when off every item gets the heuristic summary",
    )
    batch_size: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Unprocessed items handled per pass",
    )
    circuit_failure_threshold: int = Field(
        default=3,
        ge=1,
        description="Consecutive summarizer failures before the circuit opens",
    )
    circuit_recovery_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Seconds before a recovery trial call is allowed",
    )
    max_key_topics: int = Field(
        default=3,
        ge=1,
        le=5,
        description="Key topics kept per summary",
    )
