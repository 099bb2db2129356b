"""
Configuration Models for BeatBandit

Pydantic models for engine-wide configuration and per-request options.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class EngineConfig(BaseModel):
    """Overall engine configuration"""

    # Persistence
    store_directory: str = Field(default="data/store", description="Directory for the persistent record store")

    # Logging
    log_level: str = Field(default="INFO", description="Default log level")
    log_directory: str = Field(default="logs", description="Directory for rotating log files")

    # Strategy defaults
    max_popularity: int = Field(default=60, ge=0, le=100, description="Popularity ceiling for audio-DNA and exploratory picks")
    hidden_gems_ceiling: int = Field(default=60, ge=0, le=100, description="Popularity ceiling for hidden gems")
    serendipity_level: float = Field(default=0.3, ge=0.0, le=1.0, description="How far exploratory picks stray from known taste")
    recommendation_limit: int = Field(default=50, ge=1, description="Default number of recommendations per request")
    max_per_artist: int = Field(default=2, ge=1, description="Maximum tracks sharing a primary artist")
    min_candidates: int = Field(default=50, ge=0, description="Pool size below which a warning is reported")

    # Feedback and sessions
    session_flush_every: int = Field(default=5, ge=1, description="Flush the session every N tracks")
    quick_skip_ms: int = Field(default=5000, ge=0, description="Skips faster than this count as implicit dislikes")

    # Catalog service
    catalog_access_token: Optional[str] = Field(default=None, description="Bearer token for the catalog API")
    catalog_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for each catalog call")
    catalog_rate_limit_per_hour: int = Field(default=50, ge=1, description="Catalog requests per hour")

    # Randomness
    random_seed: Optional[int] = Field(default=None, description="Seed for the shared random generator")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "EngineConfig":
        """Build configuration from BEATBANDIT_* environment variables (and .env)."""
        load_dotenv(env_file)

        values = {}
        for name in cls.model_fields:
            raw = os.getenv(f"BEATBANDIT_{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        return cls(**values)


class RecommendationOptions(BaseModel):
    """Per-request options for selectRecommendations"""

    limit: Optional[int] = Field(default=None, ge=1, description="Number of recommendations to return")
    use_bandit: bool = Field(default=True, description="Let the bandit pick one strategy instead of blending all")
    serendipity_level: Optional[float] = Field(default=None, ge=0.0, le=1.0, description="Exploration noise scale")
    max_popularity: Optional[int] = Field(default=None, ge=0, le=100, description="Popularity ceiling")
    max_per_artist: Optional[int] = Field(default=None, ge=1, description="Artist diversity limit")
