"""Application configuration loaded from environment variables."""

from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "guesswork"
    debug: bool = False
    log_level: str = "INFO"

    # Engine thresholds (JSON); defaults apply when unset
    engine_config_path: Optional[str] = None

    # Catalog document (JSON); an empty catalog is used when unset
    catalog_path: Optional[str] = None

    session_ttl_minutes: int = 30

    # Seed for the SOFT/HARD confirm coin flip; unseeded when unset
    random_seed: Optional[int] = None

    model_config = {"env_prefix": "GUESSWORK_"}


settings = Settings()
