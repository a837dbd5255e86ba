import os
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv(".venv/.env")

WriteMode = Literal["etag", "overwrite"]
Backend = Literal["firebase", "memory"]


def require_env(var_name: str, default: Optional[str] = None) -> str:
    val = os.getenv(var_name)
    if not val:
        if default is None:
            raise ValueError(f"Missing required environment variable: {var_name}")
        val = default
    return val


class ChatSettings(BaseModel):
    secrets_dir: str = ".secrets"
    database_url: Optional[str] = None
    storage_bucket: Optional[str] = None

    backend: Backend = "firebase"
    # "etag" guards array nodes with conditional writes, "overwrite" is last-writer-wins
    write_mode: WriteMode = "etag"
    max_write_attempts: int = Field(default=5, ge=1)

    timezone: str = "UTC"
    signed_url_minutes: int = Field(default=60, ge=1)

    @property
    def firebase_credentials_path(self) -> str:
        return os.path.join(self.secrets_dir, "firebase.json")


def load_settings() -> ChatSettings:
    """Build settings from the environment (and `.venv/.env` when present)."""
    return ChatSettings(
        secrets_dir=require_env("SECRETS_DIR", ".secrets"),
        database_url=os.getenv("FIREBASE_DATABASE_URL"),
        storage_bucket=os.getenv("FIREBASE_STORAGE_BUCKET"),
        backend=require_env("CHAT_BACKEND", "firebase"),
        write_mode=require_env("CHAT_WRITE_MODE", "etag"),
        max_write_attempts=int(require_env("CHAT_MAX_WRITE_ATTEMPTS", "5")),
        timezone=require_env("CHAT_TIMEZONE", "UTC"),
        signed_url_minutes=int(require_env("MEDIA_SIGNED_URL_MINUTES", "60")),
    )
