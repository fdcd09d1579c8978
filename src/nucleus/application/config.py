from pathlib import Path
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from nucleus.domain.models import Rating

CONFIG_FILES = [
    Path.home() / ".config/nucleus/config.toml",
    Path.home() / ".nucleus.toml",
]


class EngineConfig(BaseSettings):
    """
    Scheduling parameters and operational settings for nucleus.
    Supports loading from:
    1. Environment variables (NUCLEUS_*)
    2. Config file (~/.config/nucleus/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="NUCLEUS_",
        extra="ignore",
    )

    # Memory model
    failure_decay: float = Field(default=0.50, gt=0.0, le=1.0)
    alpha_hard: float = Field(default=0.12, ge=0.0)
    alpha_good: float = Field(default=0.22, ge=0.0)
    alpha_easy: float = Field(default=0.30, ge=0.0)
    time_bonus: float = Field(default=0.06, ge=0.0)
    time_bonus_threshold: float = Field(default=0.5, ge=0.0)
    expected_response_sec: float = Field(default=20.0, gt=0.0)
    stability_cap_days: float = 365.0
    default_stability_days: float = 1.0

    # Storage / CLI
    store_path: Path = Field(default_factory=lambda: Path.home() / ".config/nucleus/store.yaml")
    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins
        toml_file = None
        for f in CONFIG_FILES:
            if f.exists():
                toml_file = f
                break

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("stability_cap_days", "default_stability_days")
    @classmethod
    def require_positive_days(cls, v: float) -> float:
        if not v > 0:
            raise ValueError("stability bounds must be positive")
        return v

    @field_validator("store_path", mode="before")
    @classmethod
    def resolve_store_path(cls, v: Any) -> Path:
        return Path(v).expanduser()

    @model_validator(mode="after")
    def default_within_cap(self) -> "EngineConfig":
        if self.default_stability_days > self.stability_cap_days:
            raise ValueError("default_stability_days cannot exceed stability_cap_days")
        return self

    def alpha_for(self, rating: int) -> float:
        """Stability growth rate for a successful review with the given rating."""
        if rating == Rating.EASY:
            return self.alpha_easy
        if rating == Rating.HARD:
            return self.alpha_hard
        return self.alpha_good


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> EngineConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in EngineConfig
    2. ~/.config/nucleus/config.toml (if exists)
    3. Environment variables (NUCLEUS_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return EngineConfig(**overrides)
