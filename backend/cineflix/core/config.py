from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # TMDB upstream
    tmdb_api_key: str = ""
    tmdb_base_url: str = "https://api.themoviedb.org/3"
    tmdb_timeout_seconds: float = 8.0
    tmdb_max_attempts: int = 2
    tmdb_retry_backoff_seconds: float = 0.2  # linear: backoff * attempt
    tmdb_min_request_interval_seconds: float = 0.025

    # Response cache in front of the TMDB client
    response_cache_ttl_seconds: float = 5 * 60
    response_cache_max_entries: int = 100

    # Collection discovery
    discovery_cache_ttl_seconds: float = 2 * 60 * 60
    discovery_timeout_seconds: float = 45.0
    discovery_item_delay_seconds: float = 0.05
    discovery_step_delay_seconds: float = 0.03

    # Infinite scroll batches
    pagination_max_attempts: int = 12
    pagination_page_budget: int = 100

    log_level: str = "INFO"

settings = Settings()
