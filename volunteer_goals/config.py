from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timezone: str = "UTC"
    sqlite_path: str = "data/goals.db"
    log_path: str = "logs/goals.log"
    log_level: str = "INFO"
    log_retention: str = "14 days"
    jobs_log_path: str = "logs/jobs.log"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    scheduler_enabled: bool = True
    scheduler_tick_sec: int = 60
    weekly_interval_sec: int = 7 * 24 * 60 * 60
    overdue_interval_sec: int = 24 * 60 * 60
    batch_timeout_sec: int = 15 * 60
    job_lease_ttl_sec: int = 30 * 60
    analytics_default_days: int = 30
    daily_trend_max_days: int = 30


settings = Settings()
