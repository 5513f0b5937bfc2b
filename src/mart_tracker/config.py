"""Configuration management for Mart Tracker."""

import tomllib
from dataclasses import dataclass
from pathlib import Path


@dataclass
class DataConfig:
    """Data storage configuration."""

    storage_dir: Path
    backend: str = "json"


@dataclass
class DefaultsConfig:
    """Default values configuration."""

    mart_name: str = "Naver Store"
    unknown_mart_label: str = "Unknown"


@dataclass
class AnalysisConfig:
    """Image analysis service configuration."""

    model: str = "gemini-3-flash-preview"
    base_url: str = "https://generativelanguage.googleapis.com"
    timeout_seconds: float = 60.0
    api_key_env: str = "GEMINI_API_KEY"


@dataclass
class DisplayConfig:
    """Presentation configuration."""

    comparison_limit: int = 5
    currency: str = "KRW"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "WARNING"


@dataclass
class Config:
    """Complete application configuration."""

    data: DataConfig
    defaults: DefaultsConfig
    analysis: AnalysisConfig
    display: DisplayConfig
    logging: LoggingConfig


class ConfigManager:
    """Manages application configuration from TOML files."""

    def __init__(self, config_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional explicit path to config file.
                        If not provided, searches standard locations.
        """
        self.config_path = config_path or self._find_config()
        self._config = self._load_config()

    @property
    def data(self) -> DataConfig:
        """Get data configuration."""
        return self._config.data

    @property
    def defaults(self) -> DefaultsConfig:
        """Get defaults configuration."""
        return self._config.defaults

    @property
    def analysis(self) -> AnalysisConfig:
        """Get analysis configuration."""
        return self._config.analysis

    @property
    def display(self) -> DisplayConfig:
        """Get display configuration."""
        return self._config.display

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration."""
        return self._config.logging

    def _find_config(self) -> Path:
        """Find config file in standard locations."""
        locations = [
            Path.cwd() / "config.toml",
            Path.home() / ".config" / "mart-tracker" / "config.toml",
            Path.home() / ".mart-tracker" / "config.toml",
        ]

        for loc in locations:
            if loc.exists():
                return loc

        # Return default location if none found
        return Path.home() / ".config" / "mart-tracker" / "config.toml"

    def _load_config(self) -> Config:
        """Load configuration from TOML file."""
        if not self.config_path.exists():
            return self._default_config()

        with open(self.config_path, "rb") as f:
            data = tomllib.load(f)

        data_section = data.get("data", {})
        defaults_section = data.get("defaults", {})
        analysis_section = data.get("analysis", {})
        display_section = data.get("display", {})
        logging_section = data.get("logging", {})

        return Config(
            data=DataConfig(
                storage_dir=Path(
                    data_section.get("storage_dir", "~/mart-tracker/data")
                ).expanduser(),
                backend=data_section.get("backend", "json"),
            ),
            defaults=DefaultsConfig(
                mart_name=defaults_section.get("mart_name", "Naver Store"),
                unknown_mart_label=defaults_section.get("unknown_mart_label", "Unknown"),
            ),
            analysis=AnalysisConfig(
                model=analysis_section.get("model", "gemini-3-flash-preview"),
                base_url=analysis_section.get(
                    "base_url", "https://generativelanguage.googleapis.com"
                ),
                timeout_seconds=float(analysis_section.get("timeout_seconds", 60.0)),
                api_key_env=analysis_section.get("api_key_env", "GEMINI_API_KEY"),
            ),
            display=DisplayConfig(
                comparison_limit=display_section.get("comparison_limit", 5),
                currency=display_section.get("currency", "KRW"),
            ),
            logging=LoggingConfig(
                level=logging_section.get("level", "WARNING"),
            ),
        )

    def _default_config(self) -> Config:
        """Return default configuration."""
        return Config(
            data=DataConfig(storage_dir=Path.home() / "mart-tracker" / "data"),
            defaults=DefaultsConfig(),
            analysis=AnalysisConfig(),
            display=DisplayConfig(),
            logging=LoggingConfig(),
        )
