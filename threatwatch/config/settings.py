"""
ThreatWatch Configuration Module

Handles loading and validation of application configuration.
"""

from pathlib import Path
from typing import Dict, List, Optional
from functools import lru_cache

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

# Bundled signature / correlation catalogs
RULES_DIR = Path(__file__).resolve().parent.parent / "rules"


class ServerConfig(BaseModel):
    """Server configuration settings."""
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False


class EngineConfig(BaseModel):
    """Event queue and drain loop settings."""
    tick_interval: float = 1.0
    queue_max_size: int = 10000


class AnomalyConfig(BaseModel):
    """Static anomaly heuristics."""
    enabled: bool = True
    threshold: float = 0.7
    off_hours_start: int = 6
    off_hours_end: int = 22
    privileged_roles: List[str] = Field(default_factory=lambda: ["admin"])
    bulk_transfer_bytes: float = 1_000_000_000
    allowed_destination_countries: List[str] = Field(
        default_factory=lambda: ["US", "CA", "GB", "AU"]
    )
    standard_protocols: List[str] = Field(
        default_factory=lambda: ["HTTP", "HTTPS", "FTP", "SMTP"]
    )
    bulk_file_count: int = 100
    sensitive_path_markers: List[str] = Field(default_factory=lambda: ["confidential"])
    executable_extensions: List[str] = Field(
        default_factory=lambda: [".exe", ".bat", ".ps1", ".sh"]
    )


class BehavioralConfig(BaseModel):
    """Behavioral baseline settings."""
    enabled: bool = True
    indicator_threshold: float = 0.5
    max_profiles: int = 10000
    seed_path: Optional[str] = None

    # Defaults for lazily created profiles
    average_actions: float = 50
    common_applications: List[str] = Field(
        default_factory=lambda: ["Chrome", "Outlook", "Excel", "Word"]
    )
    normal_privilege_level: int = 1
    average_cpu_usage: float = 30
    average_memory_usage: float = 60
    average_connections: float = 20


class PatternConfig(BaseModel):
    """Attack signature matching."""
    enabled: bool = True
    signatures_path: str = str(RULES_DIR / "signatures.yml")
    match_threshold: float = 0.6


class CorrelationConfig(BaseModel):
    """Temporal correlation settings."""
    enabled: bool = True
    rules_path: str = str(RULES_DIR / "correlation.yml")
    window_seconds: float = 3600
    max_history: int = 50000


class ScoringConfig(BaseModel):
    """Analyzer weights and threat level thresholds."""
    anomaly_weight: float = 0.30
    behavioral_weight: float = 0.25
    pattern_weight: float = 0.25
    correlation_weight: float = 0.20
    level_thresholds: Dict[str, float] = Field(
        default_factory=lambda: {
            "critical": 0.9,
            "high": 0.8,
            "medium": 0.6,
            "low": 0.3,
        }
    )


class StorageConfig(BaseModel):
    """In-memory result store."""
    max_results: int = 1000


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file_path: str = "logs/threatwatch.log"
    max_size_mb: int = 100
    backup_count: int = 5


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from config.yml file, with environment variable overrides.
    """
    server: ServerConfig = Field(default_factory=ServerConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    anomaly: AnomalyConfig = Field(default_factory=AnomalyConfig)
    behavioral: BehavioralConfig = Field(default_factory=BehavioralConfig)
    patterns: PatternConfig = Field(default_factory=PatternConfig)
    correlation: CorrelationConfig = Field(default_factory=CorrelationConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Base path for relative paths
    base_path: Path = Field(default_factory=lambda: Path.cwd())

    class Config:
        env_prefix = "THREATWATCH_"
        env_nested_delimiter = "__"

    def resolve_path(self, path: str) -> Path:
        """Resolve a relative path against the base path."""
        p = Path(path)
        if p.is_absolute():
            return p
        return self.base_path / p


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to 'config.yml' in current directory.

    Returns:
        Settings object with loaded configuration.
    """
    if config_path is None:
        config_path = "config.yml"

    config_file = Path(config_path)

    if config_file.exists():
        with open(config_file, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        config_data = {}

    # Set base path to config file's parent directory
    config_data["base_path"] = config_file.parent.resolve()

    return Settings(**config_data)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This is the primary way to access settings throughout the application.
    """
    return load_config()
