"""
Configuration for Console Sync.

Reads from environment variables with sensible defaults.
"""

import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Local agent (QEMU/Docker backend)
    agent_url: str = os.getenv("LOCAL_AGENT_URL", "http://localhost:5002")
    agent_timeout_seconds: int = int(os.getenv("LOCAL_AGENT_TIMEOUT", "30"))

    # Supabase catalog
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    # SSL verification for outbound calls
    verify_ssl: bool = os.getenv("VERIFY_SSL", "true").lower() == "true"

    # Reconciliation
    max_concurrent_writes: int = int(os.getenv("SYNC_MAX_CONCURRENT_WRITES", "8"))

    # API server
    api_host: str = os.getenv("CONSOLE_SYNC_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("CONSOLE_SYNC_PORT", "8090"))
    cors_origins: str = os.getenv("CONSOLE_SYNC_CORS_ORIGINS", "*")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        env_prefix = "CONSOLE_SYNC_"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
