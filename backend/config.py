"""Application configuration using pydantic-settings."""

from typing import Annotated, Any

from pydantic import field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, NoDecode, PydanticBaseSettingsSource, SettingsConfigDict

from services.credential_manager import CREDENTIAL_KEYS, get_credential


class KeychainSettingsSource(PydanticBaseSettingsSource):
    """Load secret fields from the OS keychain via ``keyring``.

    Only fields whose uppercase name appears in
    :data:`~services.credential_manager.CREDENTIAL_KEYS` are looked up.
    All other fields return ``None`` so the next source in the chain
    handles them.
    """

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        env_name = field_name.upper()
        if env_name not in CREDENTIAL_KEYS:
            return None, field_name, False
        value = get_credential(env_name)
        return value, field_name, False

    def __call__(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        for field_name, field_info in self.settings_cls.model_fields.items():
            value, key, is_complex = self.get_field_value(field_info, field_name)
            if value is not None:
                d[key] = value
        return d


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            KeychainSettingsSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    # Database
    DATABASE_URL: str = "sqlite:///./daily_sync.db"

    # 64 hex chars (AES-256) used to decrypt per-organization source settings
    CONFIG_ENCRYPTION_KEY: str = ""

    # Bearer token required by POST /api/sync when set
    CRON_SECRET: str = ""

    # Calendar used for "today" / "yesterday" cutoffs
    SYNC_TIMEZONE: str = "Europe/London"
    BOOTSTRAP_LOOKBACK_DAYS: int = 30
    FINANCES_RECONCILE_DAYS: int = 3
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Amazon Ads report job engine
    ADS_LOOKBACK_OFFSETS: Annotated[list[int], NoDecode] = [1, 3, 7, 14, 30]
    ADS_BATCH_SIZE: int = 5
    ADS_POLL_INTERVAL_SECONDS: float = 15.0
    ADS_BATCH_DEADLINE_SECONDS: float = 180.0
    ADS_RUN_DEADLINE_SECONDS: float = 270.0
    ADS_BATCH_PAUSE_SECONDS: float = 5.0

    @field_validator("CONFIG_ENCRYPTION_KEY", mode="before")
    @classmethod
    def normalize_encryption_key(cls, v: str) -> str:
        """Strip whitespace and lowercase the hex key."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("ADS_LOOKBACK_OFFSETS", mode="before")
    @classmethod
    def parse_lookback_offsets(cls, v: Any) -> Any:
        """Accept a comma-separated string such as ``"1,3,7,14,30"``."""
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return [int(p) for p in parts]
        return v

    @field_validator("ADS_BATCH_SIZE")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"ADS_BATCH_SIZE must be at least 1, got {v!r}")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"


settings = Settings()
