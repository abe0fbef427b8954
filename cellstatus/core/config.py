"""Application configuration using Pydantic BaseSettings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    PROJECT_NAME: str = "CellStatus Metrics"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # --- Redis (rate limiting) ---
    REDIS_URL: str = "redis://localhost:6379/0"

    # --- Value stream map ---
    VSM_WAIT_TIME_MODE: str = "station"
    SHIFT_HOURS: float = 8.0

    # --- SPC ---
    SPC_CPK_CAPABLE: float = 1.33
    SPC_CPK_MARGINAL: float = 1.0
    SPC_MAX_SAMPLES: int = 10000

    # --- Authentication ---
    API_KEY: str = ""
    API_KEY_HEADER: str = "X-API-Key"

    # --- CORS ---
    CORS_ORIGINS: str = "http://localhost:3000"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = Settings()
