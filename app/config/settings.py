from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Background sweeper writes bypass RLS with this key

    # Document store
    document_store_backend: str = "supabase"  # supabase | memory
    automation_collection: str = "group_automation"
    audit_collection: str = "audit_logs"

    # Roblox bot
    roblox_bot_token: Optional[str] = None  # .ROBLOSECURITY cookie of the ranking bot
    roblox_groups_api_url: str = "https://groups.roblox.com"
    roblox_request_timeout: float = 10.0

    # Suspension sweeper
    suspension_sweeper_enabled: bool = True
    suspension_sweep_interval_seconds: int = 60
    suspension_retain_failed_restores: bool = False
    cron_secret: Optional[str] = None

    # Audit log
    audit_log_max_entries: int = 500

    # App
    app_name: str = "rogrouper-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
