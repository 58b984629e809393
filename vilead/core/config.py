from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "ViLead API"
    app_env: str = "local"
    app_debug: bool = True
    api_port: int = 8000
    database_url: str = "sqlite+pysqlite:///./vilead.db"
    jwt_secret: str = "replace-me"
    jwt_algorithm: str = "HS256"
    token_ttl_days: int = 7
    default_user_role: str = "sale"
    team_rosters: dict[str, list[str]] = {
        "team_a": ["leader_a", "sale_a1", "sale_a2", "sale_a3"],
    }
    enforce_forward_only_stages: bool = False
    demo_mode_enabled: bool = False
    default_page_size: int = 20
    max_page_size: int = 200
    rate_limit_disabled: bool = False
    rate_limit_lead_mutations_per_minute: int = 60
    metrics_enabled: bool = False
    otel_enabled: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()
