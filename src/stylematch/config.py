"""
Configuration for the StyleMatch engine
Defaults can be overridden through STYLEMATCH_* environment variables
"""

from typing import Mapping, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "STYLEMATCH_"


class EngineConfig(BaseSettings):
    """
    Tunable engine settings loaded from environment variables.

    Each field maps to STYLEMATCH_<FIELD NAME IN UPPER CASE>; unset or empty
    variables keep the default. Out-of-range values raise a ValidationError.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
        protected_namespaces=(),
    )

    db_path: str = Field(default="data/stylematch.db", description="SQLite catalog path")

    # ==========================================================================
    # Caches
    # ==========================================================================
    profile_ttl_seconds: float = Field(default=900.0, gt=0, description="Profile cache TTL")
    profile_cache_size: int = Field(default=10000, ge=1, description="Max cached profiles")
    feature_cache_ttl_seconds: float = Field(default=3600.0, gt=0, description="Product block cache TTL")
    feature_cache_size: int = Field(default=50000, ge=1, description="Max cached product blocks")

    # ==========================================================================
    # Ranking
    # ==========================================================================
    diversity_cap: int = Field(default=3, ge=0, description="Max recommendations per category")
    default_limit: int = Field(default=20, ge=1, description="Recommendations returned when no limit is given")
    min_relevance: float = Field(default=0.3, ge=0.0, le=1.0, description="Relevance cut-off")

    # ==========================================================================
    # Learned scorers (TorchScript files trained elsewhere)
    # ==========================================================================
    relevance_model_path: Optional[str] = Field(default=None, description="Relevance model file")
    compatibility_model_path: Optional[str] = Field(default=None, description="Compatibility model file")
    model_timeout_seconds: float = Field(default=0.25, ge=0.0, description="Per-call model timeout")
    model_device: str = Field(default="cpu", description="Torch device for learned scorers")

    # ==========================================================================
    # Catalog scan
    # ==========================================================================
    max_workers: int = Field(default=4, ge=1, description="Scoring worker threads")
    batch_size: int = Field(default=256, ge=1, description="Products scored per batch")

    trend_refresh_seconds: float = Field(default=6 * 60 * 60, ge=0.0, description="Trend table max age")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """
        Build a config from environment variables

        Args:
            environ: Mapping to read instead of os.environ (mostly for tests)
        """
        if environ is None:
            return cls()

        values = {}
        for key, raw in environ.items():
            if not key.upper().startswith(ENV_PREFIX) or raw is None or raw == "":
                continue
            name = key[len(ENV_PREFIX):].lower()
            if name in cls.model_fields:
                values[name] = raw

        return cls(**values)
