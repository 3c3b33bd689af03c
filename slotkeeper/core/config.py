from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    DEFAULT_SLOT_INCREMENT_MINUTES: int = 15
    ACTION_TOKEN_TTL_DAYS: int = 3650
    PUBLIC_BASE_URL: str = "http://localhost:3000"

    WEBHOOK_RETRY_BASE_SECONDS: int = 30
    WEBHOOK_RETRY_MAX_SECONDS: int = 3600
    WEBHOOK_DEFAULT_MAX_ATTEMPTS: int = 6
    WEBHOOK_SIGNATURE_TOLERANCE_SECONDS: int = 300


settings = Settings()
