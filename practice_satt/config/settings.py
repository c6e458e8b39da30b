"""Application configuration using Pydantic Settings."""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Practice SATT Pipeline"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Data locations
    data_dir: str = "./data"  # Holds practice/ and practice_year/ sub-directories
    ground_truth_path: str | None = None
    output_dir: str = "./results"

    # Dataset sampling
    n_datasets: int = Field(default=10, ge=1)
    dataset_universe: int = Field(default=3400, ge=1)
    random_seed: int = 42

    # Estimation
    test_fraction: float = Field(default=0.33, gt=0.0, lt=1.0)
    n_burn: int = 100  # Warm-up iterations discarded by the effect model
    n_samples: int = 200  # Iterations averaged into each prediction
    effect_model: Literal["boosted", "forest"] = "boosted"
    selection_candidates: list[str] = ["V5_C_avg", "V3_avg", "X9"]
    yearly_variable_label: str = "Yearly"
    post_years: list[int] = [3, 4]

    # Execution
    max_workers: int = Field(default=4, ge=1)

    @model_validator(mode="after")
    def _validate_estimation_config(self) -> "Settings":
        """Reject sampling configurations the effect models cannot honour."""
        if self.n_samples < 1:
            raise ValueError("N_SAMPLES must be at least 1")
        if self.n_burn < 0:
            raise ValueError("N_BURN cannot be negative")
        if not self.post_years:
            raise ValueError("POST_YEARS must name at least one year")
        if self.ground_truth_path is None and self.environment == "production":
            logger.warning(
                "GROUND_TRUTH_PATH not set in production; estimates will not be scored"
            )
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
