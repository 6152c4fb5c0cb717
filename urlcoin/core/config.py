"""Application configuration settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (document store backing)
    database_url: str = "sqlite:///./db/urlcoin.db"

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    enable_docs: bool = True  # Swagger/ReDoc 문서 활성화 (프로덕션에서는 False로 설정)

    # Security (JWT Authentication)
    jwt_secret_key: str = "change-this-to-a-random-secret-key-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440

    # Identity
    email_suffix: str = "@urlcoin.game"
    admin_nickname: str = "관리자"
    default_admin_handle: str = "admin"
    default_admin_password: str = "admin123!"

    # Scheduler settings
    scheduler_enabled: bool = True
    market_poll_seconds: int = 1
    ranking_poll_seconds: int = 60
    scheduler_timezone: str = "Asia/Seoul"

    # Market rules
    slot_minutes: int = 15
    history_length: int = 30
    price_floor: int = 10

    # Account rules
    starting_cash: int = 500000
    trade_history_limit: int = 100
    ranking_size: int = 100
    attendance_reward: int = 100000
    support_reward: int = 50000
    support_threshold: int = 10000

    # Logging
    log_dir: str = "logs"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
