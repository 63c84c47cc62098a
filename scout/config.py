"""All settings, loaded from the .env file."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App
    app_url: str = "http://localhost:8000"
    database_url: str = "sqlite:///./scout.db"
    log_level: str = "INFO"

    # Collaborators
    anthropic_api_key: str = ""
    apollo_api_key: str = ""

    # Batching
    company_score_batch_size: int = 25
    people_batch_size: int = 1
    people_per_company: int = 3
    ranking_batch_size: int = 50
    batch_concurrency: int | None = None

    # Phase behavior
    company_qualify_threshold: int = 60
    scoring_max_companies: int = 40
    validation_sample_max: int = 10
    validation_sample_ratio: float = 0.1
    discovery_page_size: int = 100

    @property
    def is_production(self) -> bool:
        return "localhost" not in self.app_url and "127.0.0.1" not in self.app_url


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
