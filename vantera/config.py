"""Application settings loaded from environment variables."""
from typing import List
from pathlib import Path
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Caminho absoluto para o ficheiro .env
ENV_FILE = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Vantera"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Database
    database_url: str
    api_key: str = ""

    # Providers
    request_timeout: int = 60
    attom_api_key: str = ""
    attom_base_url: str = "https://api.gateway.attomdata.com/propertyapi/v1.0.0"
    apify_token: str = ""
    apify_base_url: str = "https://api.apify.com/v2"
    apify_realtor_actor_id: str = "logical_vivacity~realtor-property-scraper"

    # Import runs
    import_run_store: str = "database"
    import_runs_list_limit: int = 75
    test_run_completion_delay: float = 0.9
    bootstrap_cities: List[str] = ["miami"]

    # Traffic gate
    gate_dev_hosts: List[str] = ["dev.vantera.io", "localhost", "127.0.0.1"]
    coming_soon_path: str = "/coming-soon"

    # Operations uploads
    media_root: str = "./media"
    media_base_url: str = "/media"
    upload_allowed_prefixes: List[str] = ["brand/", "images/heroes/", "hero/homepage/"]

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        if not v.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError("database_url must use async driver")
        return v

    @field_validator("import_run_store")
    @classmethod
    def validate_import_run_store(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("database", "memory"):
            raise ValueError("import_run_store must be 'database' or 'memory'")
        return v

    @field_validator(
        "cors_origins",
        "bootstrap_cities",
        "gate_dev_hosts",
        "upload_allowed_prefixes",
        mode="before",
    )
    @classmethod
    def parse_list(cls, v):
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if not v:
            import warnings
            warnings.warn(
                "API_KEY not configured: operations endpoints will refuse requests.",
                stacklevel=2,
            )
        return v


settings = Settings()
