"""
Copyright Matcher Configuration
===============================

This module handles configuration loading for the matching engine.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    COPYRIGHT_INTERVALS          -> sampler.intervals (comma separated seconds)
    COPYRIGHT_HORIZON_SECONDS    -> sampler.horizon_seconds
    COPYRIGHT_OCR_BACKEND        -> ocr.backend
    COPYRIGHT_FACE_BACKEND       -> faces.backend
    COPYRIGHT_TOLERANCE_SECONDS  -> fusion.tolerance_seconds
    COPYRIGHT_MIN_ALIGNED_PAIRS  -> fusion.min_aligned_pairs
    COPYRIGHT_MATCH_THRESHOLD    -> fusion.match_threshold
    COPYRIGHT_FETCH_TIMEOUT      -> fetch.timeout_seconds
    COPYRIGHT_MAX_RETRIES        -> worker.max_retries
    COPYRIGHT_NOTICE_DIR         -> actions.notice_dir
    COPYRIGHT_NOTICE_BASE_URL    -> actions.notice_base_url
    COPYRIGHT_DB_PATH            -> storage.db_path
    COPYRIGHT_LOG_LEVEL          -> logging.level

Example:
    from copyright_matcher.config import settings

    print(settings.sampler.intervals)
    print(settings.fusion.weights.keyframe)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


logger = logging.getLogger(__name__)

SIGNAL_NAMES = ("keyframe", "ocr", "face", "motion")


# =============================================================================
# Configuration Models
# =============================================================================

class SamplerConfig(BaseModel):
    """Frame sampling configuration."""

    intervals: List[float] = Field(
        default_factory=lambda: [1.0, 2.0, 5.0],
        description="Sampling intervals in seconds",
    )
    horizon_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Latest timestamp that may be sampled",
    )
    thumbnail_max_width: int = Field(
        default=640,
        ge=32,
        description="Sampled frames are downscaled to at most this width",
    )

    @field_validator("intervals")
    @classmethod
    def _positive_intervals(cls, value: List[float]) -> List[float]:
        if not value:
            raise ValueError("at least one sampling interval is required")
        if any(v <= 0 for v in value):
            raise ValueError(f"sampling intervals must be > 0, got {value}")
        return value


class HashingConfig(BaseModel):
    """Perceptual hash configuration."""

    hash_size: int = Field(default=8, ge=4, le=32, description="dHash grid size")


class OCRConfig(BaseModel):
    """On-screen text extraction configuration."""

    backend: str = Field(
        default="mock",
        description="OCR backend: 'mock' or 'vision'",
    )
    min_token_length: int = Field(default=2, ge=1, description="Shortest kept token")
    timeout_seconds: float = Field(default=10.0, gt=0, description="Per-frame timeout")
    credentials_path: Optional[str] = Field(
        default=None,
        description="Service account JSON for the vision backend",
    )
    mock_tokens: List[str] = Field(
        default_factory=list,
        description="Tokens returned by the mock backend for every frame",
    )


class FaceConfig(BaseModel):
    """Face detection configuration."""

    backend: str = Field(
        default="mock",
        description="Face backend: 'mock' or 'insightface'",
    )
    confidence_floor: float = Field(
        default=0.5,
        ge=0,
        le=1.0,
        description="Embeddings are kept only above this detection confidence",
    )
    embedding_dim: int = Field(default=128, ge=8, description="Mock embedding size")
    model_name: str = Field(default="buffalo_l", description="InsightFace model pack")
    device: str = Field(default="cpu", description="'cpu' or 'cuda'")
    timeout_seconds: float = Field(default=10.0, gt=0, description="Per-frame timeout")


class MotionConfig(BaseModel):
    """Motion vector configuration."""

    magnitude_threshold: float = Field(
        default=0.5,
        ge=0,
        description="Minimum flow magnitude for direction estimation",
    )
    timeout_seconds: float = Field(default=10.0, gt=0, description="Per-frame timeout")


class FusionWeights(BaseModel):
    """
    Linear fusion weights for the four signal scores.

    The weights are a tunable policy. They must be non-negative and sum to 1.
    """

    keyframe: float = Field(default=0.4, ge=0, le=1.0)
    ocr: float = Field(default=0.2, ge=0, le=1.0)
    face: float = Field(default=0.2, ge=0, le=1.0)
    motion: float = Field(default=0.2, ge=0, le=1.0)

    @model_validator(mode="after")
    def _sum_to_one(self) -> "FusionWeights":
        total = self.keyframe + self.ocr + self.face + self.motion
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"fusion weights must sum to 1, got {total:.6f}")
        return self

    def as_dict(self) -> dict:
        return {name: getattr(self, name) for name in SIGNAL_NAMES}

    def rebalanced(self, signal: str, weight: float) -> "FusionWeights":
        """
        Return new weights with ``signal`` set to ``weight``.

        The remaining weights are scaled proportionally so the total stays 1.
        If the remaining weights are all zero they share the rest equally.
        """
        if signal not in SIGNAL_NAMES:
            raise ValueError(f"Unknown signal: {signal}")
        if not 0.0 <= weight <= 1.0:
            raise ValueError(f"weight must be in [0, 1], got {weight}")

        others = [name for name in SIGNAL_NAMES if name != signal]
        current = self.as_dict()
        remaining = 1.0 - weight
        other_total = sum(current[name] for name in others)

        values = {signal: weight}
        for name in others:
            if other_total > 0:
                values[name] = current[name] / other_total * remaining
            else:
                values[name] = remaining / len(others)
        return FusionWeights(**values)


class FusionConfig(BaseModel):
    """Fusion and classification configuration."""

    weights: FusionWeights = Field(default_factory=FusionWeights)
    tolerance_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Maximum timestamp gap for an aligned frame pair",
    )
    min_aligned_pairs: int = Field(
        default=5,
        ge=1,
        description="Aligned pairs needed for 'verified' data quality",
    )
    match_threshold: float = Field(
        default=0.6,
        ge=0,
        le=1.0,
        description="Similarity at or above which a match is flagged",
    )


class FetchConfig(BaseModel):
    """Media download configuration."""

    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout")
    max_attempts: int = Field(default=3, ge=1, description="Attempts on timeout")
    max_bytes: int = Field(
        default=200 * 1024 * 1024,
        ge=1,
        description="Largest accepted media payload",
    )
    user_agent: str = Field(default="copyright-matcher/0.1", description="HTTP User-Agent")


class WorkerConfig(BaseModel):
    """Job worker configuration."""

    max_retries: int = Field(default=5, ge=0, description="Retries on rate limiting")
    base_delay_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Base of the exponential retry delay",
    )
    poll_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Sleep between polls when the queue is empty",
    )


class ActionsConfig(BaseModel):
    """Enforcement action configuration."""

    notice_dir: str = Field(
        default="./data/notices",
        description="Directory where takedown notices are written",
    )
    notice_base_url: Optional[str] = Field(
        default=None,
        description="Public base URL for notices (file:// URI when unset)",
    )
    sender_name: str = Field(
        default="Content Protection Team",
        description="Signature used on notices and emails",
    )


class StorageConfig(BaseModel):
    """Persistence configuration."""

    db_path: str = Field(
        default="./copyright_matcher.duckdb",
        description="DuckDB database file (':memory:' for ephemeral)",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the copyright matcher.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    sampler: SamplerConfig = Field(default_factory=SamplerConfig)
    hashing: HashingConfig = Field(default_factory=HashingConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    faces: FaceConfig = Field(default_factory=FaceConfig)
    motion: MotionConfig = Field(default_factory=MotionConfig)
    fusion: FusionConfig = Field(default_factory=FusionConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    actions: ActionsConfig = Field(default_factory=ActionsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        if env_path := os.environ.get("COPYRIGHT_CONFIG"):
            config_path = env_path
        else:
            search_paths = [
                Path("config.yaml"),
                Path("config.yml"),
                Path(__file__).parent.parent.parent / "config.yaml",
            ]
            for path in search_paths:
                if path.exists():
                    config_path = str(path)
                    break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Sampler settings
    if env_intervals := os.environ.get("COPYRIGHT_INTERVALS"):
        config_data.setdefault("sampler", {})["intervals"] = [
            float(v) for v in env_intervals.split(",") if v.strip()
        ]
    if env_horizon := os.environ.get("COPYRIGHT_HORIZON_SECONDS"):
        config_data.setdefault("sampler", {})["horizon_seconds"] = float(env_horizon)

    # Extractor backends
    if env_ocr := os.environ.get("COPYRIGHT_OCR_BACKEND"):
        config_data.setdefault("ocr", {})["backend"] = env_ocr
    if env_faces := os.environ.get("COPYRIGHT_FACE_BACKEND"):
        config_data.setdefault("faces", {})["backend"] = env_faces

    # Fusion policy
    if env_tol := os.environ.get("COPYRIGHT_TOLERANCE_SECONDS"):
        config_data.setdefault("fusion", {})["tolerance_seconds"] = float(env_tol)
    if env_pairs := os.environ.get("COPYRIGHT_MIN_ALIGNED_PAIRS"):
        config_data.setdefault("fusion", {})["min_aligned_pairs"] = int(env_pairs)
    if env_threshold := os.environ.get("COPYRIGHT_MATCH_THRESHOLD"):
        config_data.setdefault("fusion", {})["match_threshold"] = float(env_threshold)

    # Fetch and worker
    if env_timeout := os.environ.get("COPYRIGHT_FETCH_TIMEOUT"):
        config_data.setdefault("fetch", {})["timeout_seconds"] = float(env_timeout)
    if env_retries := os.environ.get("COPYRIGHT_MAX_RETRIES"):
        config_data.setdefault("worker", {})["max_retries"] = int(env_retries)

    # Actions
    if env_notice_dir := os.environ.get("COPYRIGHT_NOTICE_DIR"):
        config_data.setdefault("actions", {})["notice_dir"] = env_notice_dir
    if env_notice_url := os.environ.get("COPYRIGHT_NOTICE_BASE_URL"):
        config_data.setdefault("actions", {})["notice_base_url"] = env_notice_url

    # Storage
    if env_db := os.environ.get("COPYRIGHT_DB_PATH"):
        config_data.setdefault("storage", {})["db_path"] = env_db

    # Logging settings
    if env_log := os.environ.get("COPYRIGHT_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
