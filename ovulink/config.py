"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "Ovulink"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Storage ---
    storage_backend: str = "postgres"  # postgres | memory
    database_url: str = "postgresql://postgres@localhost:5432/ovulink"
    db_pool_min_size: int = 2
    db_pool_max_size: int = 20

    # --- Firebase Auth ---
    firebase_project_id: str = ""
    firebase_jwks_url: str = (
        "https://www.googleapis.com/service_accounts/v1/jwk/"
        "securetoken@system.gserviceaccount.com"
    )

    # --- Rate Limiting ---
    rate_limit_per_minute: int = 100

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:19006"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "OVULINK_"}

    @property
    def firebase_issuer(self) -> str:
        return f"https://securetoken.google.com/{self.firebase_project_id}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
