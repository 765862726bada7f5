from __future__ import annotations

from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    # Core
    app_name: str = Field(default="panier-server")
    environment: str = Field(default="dev")  # dev|staging|prod
    log_json: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    # Data
    catalog_path: str | None = Field(default="data/products.csv")
    redis_url: str | None = Field(default=None)
    catalog_redis_key: str = Field(default="catalog:data")

    # API
    cors_allowed_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
        ]
    )
    request_max_body_mb: int = Field(default=50)

    # OpenAI
    openai_api_key: str | None = Field(default=None)
    openai_parser_model: str = Field(default="gpt-5-mini")
    openai_category_model: str = Field(default="gpt-5-mini")
    openai_selection_model: str = Field(default="gpt-5-mini")
    openai_top_p: float | None = Field(default=None)
    openai_reasoning_effort: str = Field(default="low")
    openai_max_output_tokens: int = Field(default=2000)
    openai_request_timeout_seconds: int = Field(default=90, ge=5, le=300)

    # Matching
    candidate_limit: int = Field(default=10, ge=1, le=50)
    candidate_min_results: int = Field(default=5, ge=1)
    compatibility_min_ratio: float = Field(default=0.5, gt=0)
    compatibility_max_ratio: float = Field(default=3.0, gt=0)
    category_suggestion_limit: int = Field(default=3, ge=1, le=10)
    selection_timeout_seconds: float = Field(default=45.0, ge=0)
    selection_concurrency: int = Field(default=4, ge=1, le=64)
    piece_weights_path: str | None = Field(default=None)
    category_keywords_path: str | None = Field(default=None)

    # Observability
    sentry_dsn: str | None = Field(default=None)
    sentry_traces_sample_rate: float = Field(default=0.0)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def _csv_to_list(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
