# backend/config.py
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

DEFAULT_CRON_SECRET = "default-secret-change-in-production"

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:5175",
    "http://localhost:5176",
    "http://localhost:5177",
    "http://localhost:5178",
    "https://fysiosim.nl",
    "https://www.fysiosim.nl",
]


class Settings(BaseModel):
    gemini_api_key: Optional[str] = None
    chat_model: str = "gemini-2.5-flash"
    generator_model: str = "gemini-2.5-pro"
    temperature: float = 0.7

    cron_secret: str = DEFAULT_CRON_SECRET

    # "file" or "memory"
    storage_backend: str = "file"
    data_dir: str = "data"

    cors_origins: List[str] = DEFAULT_CORS_ORIGINS
    enable_test_endpoints: bool = True
    seed_on_startup: bool = False
    port: int = 3001

    @property
    def uses_default_cron_secret(self) -> bool:
        return self.cron_secret == DEFAULT_CRON_SECRET


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_settings() -> Settings:
    """Read settings from the environment (and a local .env, if present)."""
    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or None,
        chat_model=os.getenv("GEMINI_CHAT_MODEL", "gemini-2.5-flash"),
        generator_model=os.getenv("GEMINI_GENERATOR_MODEL", "gemini-2.5-pro"),
        temperature=float(os.getenv("GEMINI_TEMPERATURE", "0.7")),
        cron_secret=os.getenv("CRON_SECRET_KEY") or DEFAULT_CRON_SECRET,
        storage_backend=os.getenv("STORAGE_BACKEND", "file").strip().lower(),
        data_dir=os.getenv("DATA_DIR", "data"),
        cors_origins=_env_list("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
        enable_test_endpoints=_env_flag("ENABLE_TEST_ENDPOINTS", True),
        seed_on_startup=_env_flag("SEED_ON_STARTUP", False),
        port=int(os.getenv("PORT", "3001")),
    )
