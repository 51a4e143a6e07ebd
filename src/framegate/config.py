"""
FrameGate Configuration
=======================

This module handles configuration loading for the frame admission service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    FRAMEGATE_STREAM_URL            -> stream.url
    FRAMEGATE_RECONNECT_BACKOFF_MS  -> stream.reconnect_backoff_ms
    FRAMEGATE_MAX_QUEUE_SIZE        -> stream.max_queue_size
    FRAMEGATE_SMART_DETECTION       -> admission.enabled
    FRAMEGATE_MOTION_THRESHOLD      -> admission.motion_threshold
    FRAMEGATE_QUALITY_THRESHOLD     -> admission.quality_threshold
    FRAMEGATE_SCAN_INTERVAL_MS      -> admission.scan_interval_ms
    FRAMEGATE_DETECTION_BACKEND     -> detection.backend
    FRAMEGATE_MODEL_ARN             -> detection.model_arn
    FRAMEGATE_AWS_REGION/AWS_REGION -> detection.region
    FRAMEGATE_CONFIDENCE_THRESHOLD  -> detection.confidence_threshold
    FRAMEGATE_MAX_RETRIES           -> detection.max_retries
    FRAMEGATE_CACHE_TTL_MS          -> cache.ttl_ms
    FRAMEGATE_CACHE_MAX_ENTRIES     -> cache.max_entries
    FRAMEGATE_PORT                  -> server.port
    FRAMEGATE_LOG_LEVEL             -> logging.level
    PORT                            -> server.port (Cloud Run)

Example:
    from framegate.config import settings

    print(settings.stream.url)
    print(settings.admission.motion_threshold)
    print(settings.detection.confidence_threshold)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


_TRUE_VALUES = {"1", "true", "yes", "on"}


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="framegate", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class StreamConfig(BaseModel):
    """Frame stream connection configuration."""

    url: str = Field(
        default="ws://localhost:8000/ws/stream",
        description="WebSocket URL of the frame stream",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum reconnection attempts (0 = unlimited)",
    )
    max_queue_size: int = Field(
        default=5,
        ge=1,
        description="Maximum size of internal frame buffer",
    )


class AdmissionConfig(BaseModel):
    """Admission gate configuration."""

    enabled: bool = Field(
        default=True,
        description="Smart detection; when false every frame is admitted",
    )
    motion_threshold: float = Field(
        default=0.1,
        ge=0,
        le=1.0,
        description="Minimum normalized luminance delta to admit",
    )
    quality_threshold: float = Field(
        default=0.7,
        ge=0,
        le=1.0,
        description="Minimum combined quality score to admit",
    )
    scan_interval_ms: int = Field(
        default=2000,
        ge=0,
        description="Minimum milliseconds between admitted frames",
    )
    motion_sample_stride: int = Field(
        default=4,
        ge=1,
        description="Pixel step for motion sampling",
    )
    sharpness_column_step: int = Field(
        default=4,
        ge=1,
        description="Column step for the Sobel sampling grid",
    )
    brightness_sample_stride: int = Field(
        default=16,
        ge=1,
        description="Pixel step for brightness sampling",
    )


class MockLabelConfig(BaseModel):
    """A label returned by the mock recognition backend."""

    name: str = Field(..., description="Label name")
    confidence_percent: float = Field(..., ge=0, le=100, description="Confidence (0-100)")


class DetectionConfig(BaseModel):
    """Recognition backend and dispatch configuration."""

    backend: str = Field(
        default="mock",
        description="Recognition backend: 'mock' or 'rekognition'",
    )
    model_arn: str = Field(
        default="arn:aws:rekognition:us-east-1:000000000000:project/framegate/version/placeholder/1",
        description="Rekognition Custom Labels project version ARN",
    )
    region: str = Field(default="us-east-1", description="AWS region")
    confidence_threshold: float = Field(
        default=0.8,
        ge=0,
        le=1.0,
        description="Minimum confidence for accepted detections",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries after the first attempt for transient errors",
    )
    retry_base_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Backoff unit in milliseconds (delay = retry * unit)",
    )
    mock_labels: List[MockLabelConfig] = Field(
        default_factory=lambda: [MockLabelConfig(name="Logo", confidence_percent=92.0)],
        description="Labels returned by the mock backend",
    )


class CacheConfig(BaseModel):
    """Result cache configuration."""

    ttl_ms: int = Field(
        default=5000,
        gt=0,
        description="Entry lifetime in milliseconds",
    )
    max_entries: int = Field(
        default=50,
        ge=1,
        description="Maximum retained entries (FIFO eviction)",
    )
    fingerprint_prefix_bytes: int = Field(
        default=1000,
        ge=1,
        description="Bytes of the encoded frame hashed for the cache key",
    )


class LoopConfig(BaseModel):
    """Detection loop timing configuration."""

    tick_interval_ms: int = Field(
        default=100,
        ge=1,
        description="Milliseconds between ticks",
    )
    rate_limit_cooldown_ms: int = Field(
        default=2000,
        ge=0,
        description="Extra delay after a rate-limited detection",
    )
    autostart: bool = Field(
        default=True,
        description="Start the detection loop when the service starts",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for FrameGate.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    admission: AdmissionConfig = Field(default_factory=AdmissionConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
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
    # Find config file
    if config_path is None:
        if env_path := os.environ.get("FRAMEGATE_CONFIG"):
            config_path = env_path
        else:
            search_paths = [
                Path("config.yaml"),
                Path("config.yml"),
                Path("/app/config.yaml"),
                Path(__file__).parent.parent.parent / "config.yaml",
            ]
            for path in search_paths:
                if path.exists():
                    config_path = str(path)
                    break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    # Build settings object
    settings = Settings.model_validate(config_data)

    return settings


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Stream settings
    if env_url := os.environ.get("FRAMEGATE_STREAM_URL"):
        config_data.setdefault("stream", {})["url"] = env_url
    if env_backoff := os.environ.get("FRAMEGATE_RECONNECT_BACKOFF_MS"):
        config_data.setdefault("stream", {})["reconnect_backoff_ms"] = int(env_backoff)
    if env_queue := os.environ.get("FRAMEGATE_MAX_QUEUE_SIZE"):
        config_data.setdefault("stream", {})["max_queue_size"] = int(env_queue)

    # Admission settings
    if env_smart := os.environ.get("FRAMEGATE_SMART_DETECTION"):
        config_data.setdefault("admission", {})["enabled"] = env_smart.strip().lower() in _TRUE_VALUES
    if env_motion := os.environ.get("FRAMEGATE_MOTION_THRESHOLD"):
        config_data.setdefault("admission", {})["motion_threshold"] = float(env_motion)
    if env_quality := os.environ.get("FRAMEGATE_QUALITY_THRESHOLD"):
        config_data.setdefault("admission", {})["quality_threshold"] = float(env_quality)
    if env_interval := os.environ.get("FRAMEGATE_SCAN_INTERVAL_MS"):
        config_data.setdefault("admission", {})["scan_interval_ms"] = int(env_interval)

    # Detection settings
    if env_backend := os.environ.get("FRAMEGATE_DETECTION_BACKEND"):
        config_data.setdefault("detection", {})["backend"] = env_backend
    if env_arn := os.environ.get("FRAMEGATE_MODEL_ARN"):
        config_data.setdefault("detection", {})["model_arn"] = env_arn
    if env_region := os.environ.get("FRAMEGATE_AWS_REGION"):
        config_data.setdefault("detection", {})["region"] = env_region
    elif env_region := os.environ.get("AWS_REGION"):
        config_data.setdefault("detection", {})["region"] = env_region
    if env_conf := os.environ.get("FRAMEGATE_CONFIDENCE_THRESHOLD"):
        config_data.setdefault("detection", {})["confidence_threshold"] = float(env_conf)
    if env_retries := os.environ.get("FRAMEGATE_MAX_RETRIES"):
        config_data.setdefault("detection", {})["max_retries"] = int(env_retries)

    # Cache settings
    if env_ttl := os.environ.get("FRAMEGATE_CACHE_TTL_MS"):
        config_data.setdefault("cache", {})["ttl_ms"] = int(env_ttl)
    if env_entries := os.environ.get("FRAMEGATE_CACHE_MAX_ENTRIES"):
        config_data.setdefault("cache", {})["max_entries"] = int(env_entries)

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("FRAMEGATE_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("FRAMEGATE_LOG_LEVEL"):
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
