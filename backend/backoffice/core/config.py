from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "backoffice"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DOMAIN: str = "example.com"
    APP_DATABASE_DSN: str = "sqlite:////tmp/backoffice.db"
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Coupons
    COUPON_CODE_MAX_LENGTH: int = 50


settings = Settings()
