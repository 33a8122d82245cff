from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "TN Credit Solutions"
    ENVIRONMENT: str = "development"
    API_V1_STR: str = "/api/v1"

    # Security
    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    CORS_ORIGINS: List[str] = ["http://localhost:5000", "http://127.0.0.1:5000"]

    # Seeded once at startup (see main.lifespan)
    ADMIN_EMAIL: str = "admin@tncreditsolutions.com"
    ADMIN_PASSWORD: str = ""

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str):
            v = v.strip("[").strip("]").strip('"').strip("'")
            if not v:
                return []
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, list):
            return v
        raise ValueError(v)

    # Storage
    # "durable" -> SQLAlchemy on DATABASE_URL, "ephemeral" -> in-process memory
    STORAGE_BACKEND: str = "durable"
    DATABASE_URL: str = "sqlite+aiosqlite:///./creditassist.db"
    UPLOAD_DIR: str = "uploads"
    REPORTS_DIR: str = "reports"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    @field_validator("STORAGE_BACKEND")
    @classmethod
    def check_storage_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("durable", "ephemeral"):
            raise ValueError(f"STORAGE_BACKEND must be 'durable' or 'ephemeral', got {v!r}")
        return v

    # AI
    GROQ_API_KEY: str = ""
    GROQ_TEXT_MODEL: str = "llama-3.3-70b-versatile"
    GROQ_VISION_MODEL: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    AI_TIMEOUT_SECONDS: float = 60.0

    # Chat
    SUPPORT_NAME: str = "Riley"
    SUPPORT_EMAIL: str = "support@tncreditsolutions.com"
    ESCALATION_REVEAL_DELAY_SECONDS: float = 5.0

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file="backend_config.env",
        env_file_encoding="utf-8"
    )

settings = Settings()
