# backend/perfume_chat/core/config_loader.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    JWT_SECRET_KEY: str = "supersecret"

    gpt_model_nano: str = "gpt-4.1-nano"
    gpt_model_mini: str = "gpt-4.1-mini"
    gpt_model_reasoning: str = "o4-mini"

    DB_PATH: str = "data.sqlite3"
    REDIS_URL: str = ""
    MODEL_CATALOG_URL: str = "https://models.dev/api.json"
    LOG_DIR: str = ""

    MAX_MESSAGES_GUEST: int = 20
    MAX_MESSAGES_REGULAR: int = 100

    access_token_expire_minutes: int = 7 * 24 * 60
    environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
