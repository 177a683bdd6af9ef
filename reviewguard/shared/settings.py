from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./reviewguard.db"
    redis_url: str = "redis://redis:6379/0"

    admin_token: str = "change_me_admin_token"
    session_secret: str = "change_me_session_secret"
    token_max_age_seconds: int = 60 * 60 * 24

    # Fallbacks when the settings table has no row for the key
    review_reward_default: Decimal = Decimal("0.20")
    creator_bonus_default: Decimal = Decimal("1.00")

    enable_user_locks: bool = True
    user_lock_timeout_seconds: int = 30
    evaluation_soft_time_limit: int = 20

    log_level: str = "INFO"
    db_log_level: str = "INFO"
    db_log_enabled: bool = True


settings = Settings()
