from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./planning.db"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    FRONTEND_URL: str = "http://localhost:3000"

    # AI settings
    GROQ_API_KEY: Optional[str] = None
    LLM_DEFAULT_MODEL: str = "llama-3.3-70b-versatile"
    LLM_TEMPERATURE: float = 0.3
    LLM_MAX_TOKENS: int = 2048
    CHAT_RATE_LIMIT: str = "30/minute"

    # Conversation buffering
    CONVERSATION_MAX_MESSAGES: int = 100
    CONVERSATION_FLUSH_THRESHOLD: int = 10

    # Planning documents
    DOCUMENT_TITLE_MAX_LENGTH: int = 255
    DOCUMENT_CONTENT_MAX_LENGTH: int = 200_000

    # Prompt security rule set (bundled default when unset)
    PROMPT_SECURITY_RULES_PATH: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

settings = Settings()
