# backend/app/core/config_loader.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    OPENAI_API_KEY: str = ""
    JWT_SECRET_KEY: str = "supersecret"
    DB_PATH: str = "data.sqlite3"

    openai_model: str = "gpt-4.1-mini"
    reasoner_timeout_seconds: float = 60.0
    access_token_expire_minutes: int = 1440
    chat_history_limit: int = 20
    log_dir: str = ""
    environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
