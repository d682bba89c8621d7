from __future__ import annotations

from pydantic_settings import BaseSettings

TEN_YEARS_SECONDS = 10 * 365 * 24 * 3600


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Monitored endpoint
    target_url: str = "https://rulekeeper.cc"
    probe_method: str = "GET"
    probe_timeout_seconds: float = 10.0

    # Scheduling
    check_interval_minutes: int = 5  # probes fire on :00, :05, :10 ...
    refresh_alignment_seconds: int = 30  # nextRefresh hint for dashboards

    # Ledger persistence
    ledger_path: str = "./uptime.json"
    persist_interval_seconds: int = 60  # also the crash-loss window
    ledger_sanity_threshold_seconds: int = TEN_YEARS_SECONDS

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 5002
    static_dir: str = "public"

    # Logging
    log_level: str = "INFO"


settings = Settings()
