import logging
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    api_base_url: str = "https://assignment.devotel.io"
    schema_path: str = "/api/insurance/forms"
    submit_path: str = "/api/insurance/forms/submit"
    submissions_path: str = "/api/insurance/forms/submissions"
    options_key: str = "states"

    request_timeout: float = 10.0
    max_concurrent_fetches: int = 4

    # Columns shown in the submissions listing
    submission_columns: list[str] = ["name", "age", "insuranceType", "city", "status"]

    # Open API sessions kept before the least recently used is dropped
    max_sessions: int = 256

    log_level: str = "INFO"

    model_config = {
        "env_prefix": "INSURANCE_FORMS_",
        "env_file": BASE_DIR / ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
