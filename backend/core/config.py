import os
from typing import List, Union

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "ThatsMyRecruiter Chat API"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # CORS; an empty list allows every origin
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = [
        "http://localhost:5173",
    ]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    def split_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str) and not v.startswith("["):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Text generation
    CHAT_MODEL: str = "gemini/gemini-2.5-flash"
    CHAT_TEMPERATURE: float = 0.5
    EXTRACTION_MODEL: str = "gemini/gemini-2.5-flash"
    EXTRACTION_TEMPERATURE: float = 0.0
    SERVICE_TIMEOUT_SECONDS: float = 30.0

    # Accounts
    REQUIRE_EMAIL_CONFIRMATION: bool = False

    # Document storage: "local" keeps files under DATA_ROOT, "r2" uses the bucket below
    OBJECT_STORE_PROVIDER: str = "local"
    R2_ACCESS_KEY_ID: str = os.getenv("R2_ACCESS_KEY_ID", "")
    R2_SECRET_ACCESS_KEY: str = os.getenv("R2_SECRET_ACCESS_KEY", "")
    R2_BUCKET_NAME: str = os.getenv("R2_BUCKET_NAME", "")
    R2_ENDPOINT_URL: str = os.getenv("R2_ENDPOINT_URL", "")
    R2_ACCOUNT_ID: str = os.getenv("R2_ACCOUNT_ID", "")
    R2_PUBLIC_BASE_URL: str = os.getenv("R2_PUBLIC_BASE_URL", "")

    @field_validator("OBJECT_STORE_PROVIDER", mode="before")
    def normalise_provider(cls, v: str) -> str:
        provider = (v or "local").strip().lower()
        if provider not in {"local", "r2"}:
            raise ValueError(f"Unsupported object store provider: {v}")
        return provider

    DATA_ROOT: str = os.getenv("TMR_DATA_ROOT", "app_data")

    class Config:
        case_sensitive = True
        env_file = ".env"
        extra = "ignore"


settings = Settings()
