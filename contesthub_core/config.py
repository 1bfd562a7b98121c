"""Runtime settings read from the environment (and a .env file if present)."""
import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from .listing import CONTEST_PAGE_SIZE, USERS_PAGE_SIZE

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://contest-hub-server-gamma-drab.vercel.app"


class Settings(BaseModel):
    api_url: str = Field(DEFAULT_API_URL, description="ContestHub REST API base URL")
    timeout: float = Field(30, gt=0, le=600, description="Request timeout in seconds")
    page_size: int = Field(CONTEST_PAGE_SIZE, ge=1, le=100, description="Contest grid page size")
    users_page_size: int = Field(USERS_PAGE_SIZE, ge=1, le=100, description="Manage Users page size")

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("api_url must be an http(s) URL")
        return v


def load_settings(env_file: str | None = None) -> Settings:
    """Build Settings from CONTESTHUB_* variables.

    VITE_API_URL is honoured as a fallback so a front-end .env can be shared.
    """
    load_dotenv(env_file)
    values: dict = {}
    api_url = os.getenv("CONTESTHUB_API_URL") or os.getenv("VITE_API_URL")
    if api_url:
        values["api_url"] = api_url
    for key, env_name in (
        ("timeout", "CONTESTHUB_TIMEOUT"),
        ("page_size", "CONTESTHUB_PAGE_SIZE"),
        ("users_page_size", "CONTESTHUB_USERS_PAGE_SIZE"),
    ):
        raw = os.getenv(env_name)
        if raw:
            values[key] = raw
    settings = Settings(**values)
    logger.debug(f"Loaded settings: api_url={settings.api_url} timeout={settings.timeout}")
    return settings
