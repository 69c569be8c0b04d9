"""Configuration management using Pydantic for validation."""

from pathlib import Path
from typing import Any, Dict, Literal

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class NormalizationConfig(BaseSettings):
    """Normalization configuration."""

    # Empty means the built-in default rule set.
    rules_file: str = ""
    # Leading short province names are expanded to their official names in addresses.
    region_names: Dict[str, str] = Field(
        default_factory=lambda: {
            "서울": "서울특별시",
            "부산": "부산광역시",
            "대구": "대구광역시",
            "인천": "인천광역시",
            "광주": "광주광역시",
            "대전": "대전광역시",
            "울산": "울산광역시",
            "세종": "세종특별자치시",
            "경기": "경기도",
            "강원": "강원특별자치도",
            "충북": "충청북도",
            "충남": "충청남도",
            "전북": "전북특별자치도",
            "전남": "전라남도",
            "경북": "경상북도",
            "경남": "경상남도",
            "제주": "제주특별자치도",
        }
    )


class CacheConfig(BaseSettings):
    """Normalization cache configuration."""

    enabled: bool = True
    ttl_seconds: float = Field(default=3600.0, gt=0)
    max_entries: int = Field(default=1000, ge=1)
    evict_batch: int = Field(default=100, ge=1)


class MatchingConfig(BaseSettings):
    """Target institution to equipment matching configuration."""

    min_confidence: float = Field(default=50.0, ge=0.0, le=100.0)
    max_candidates: int = Field(default=10, ge=1)
    name_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    address_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    high_tier: float = 90.0
    medium_tier: float = 60.0

    @model_validator(mode="after")
    def validate_weights(self) -> "MatchingConfig":
        """Validate the composite weights and tier bounds."""
        if abs(self.name_weight + self.address_weight - 1.0) > 1e-9:
            raise ValueError("name_weight and address_weight must sum to 1.0")
        if self.medium_tier > self.high_tier:
            raise ValueError("medium_tier must not exceed high_tier")
        return self


class GroupingConfig(BaseSettings):
    """Duplicate institution grouping configuration."""

    threshold: float = 0.85
    max_institutions: int = Field(default=5000, ge=1)
    name_weight: float = 0.4
    region_weight: float = 0.3
    division_weight: float = 0.3
    high_tier: float = 0.95
    medium_tier: float = 0.90

    @field_validator("threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Validate threshold is between 0 and 1."""
        if not 0 <= v <= 1:
            raise ValueError("Threshold must be between 0 and 1")
        return v

    @model_validator(mode="after")
    def validate_weights(self) -> "GroupingConfig":
        """Validate the three-factor weights sum to one."""
        total = self.name_weight + self.region_weight + self.division_weight
        if abs(total - 1.0) > 1e-9:
            raise ValueError("Grouping weights must sum to 1.0")
        return self


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["json", "text"] = "text"
    file: str = ""
    max_size_mb: int = 100
    backup_count: int = 5


class Config(BaseSettings):
    """Main configuration class."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    grouping: GroupingConfig = Field(default_factory=GroupingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @staticmethod
    def _deep_merge_dict(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Deep-merge two dicts (overrides win).

        This is used to apply environment-derived overrides on top of YAML defaults.
        """
        merged: Dict[str, Any] = dict(base)
        for key, value in overrides.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = Config._deep_merge_dict(merged[key], value)
            else:
                merged[key] = value
        return merged

    @classmethod
    def from_yaml(cls, yaml_path: str | Path = "config/config.yaml") -> "Config":
        """Load configuration from YAML file and environment variables.

        Precedence (highest to lowest):
        1) Environment variables / .env
        2) YAML file
        3) Model defaults

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance with loaded settings

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            ValueError: If the YAML root is not a mapping
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(yaml_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

        if not isinstance(yaml_config, dict):
            raise ValueError(f"YAML config root must be a mapping/dict: {yaml_path}")

        env_overrides = cls().model_dump(exclude_defaults=True)
        merged = cls._deep_merge_dict(yaml_config, env_overrides)

        return cls(**merged)


# Global configuration instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Raises:
        RuntimeError: If configuration hasn't been initialized
    """
    global _config
    if _config is None:
        raise RuntimeError("Configuration not initialized. Call load_config() first.")
    return _config


def load_config(yaml_path: str | Path = "config/config.yaml") -> Config:
    """Load configuration from YAML and make it the global instance."""
    global _config
    _config = Config.from_yaml(yaml_path)
    return _config


def reset_config() -> None:
    """Reset global configuration (mainly for testing)."""
    global _config
    _config = None
