import os
from functools import lru_cache
from typing import Dict

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from .models import ContentCategory


class Settings(BaseSettings):
    api_base_url: str = Field("http://127.0.0.1:5000", alias="PROGRESS_API_BASE_URL")
    request_timeout_seconds: float = Field(15.0, gt=0, alias="PROGRESS_REQUEST_TIMEOUT_SECONDS")
    # Content populations shipped with the client; the backend does not report them.
    total_stories: int = Field(10, ge=0, alias="PROGRESS_TOTAL_STORIES")
    total_kalmas: int = Field(6, ge=0, alias="PROGRESS_TOTAL_KALMAS")
    total_duas: int = Field(10, ge=0, alias="PROGRESS_TOTAL_DUAS")
    total_namaz: int = Field(11, ge=0, alias="PROGRESS_TOTAL_NAMAZ")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        populate_by_name = True

    def category_totals(self) -> Dict[ContentCategory, int]:
        return {
            ContentCategory.STORY: self.total_stories,
            ContentCategory.KALMA: self.total_kalmas,
            ContentCategory.DUA: self.total_duas,
            ContentCategory.NAMAZ: self.total_namaz,
        }


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid progress engine configuration: {exc}") from exc
