from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"

JWT_SECRET_MIN_LENGTH = 16


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Document store
    STORE_BACKEND: Literal["postgres", "memory"] = "postgres"
    DATABASE_URL: str | None = None

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 3
    DB_POOL_MAX_SIZE: int = 12
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    # Transactions retried on write conflicts
    TRANSACTION_MAX_ATTEMPTS: int = 5
    TRANSACTION_BASE_DELAY: float = 0.05

    # Session tokens
    JWT_SECRET: str | None = None
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Password hashing cost
    BCRYPT_ROUNDS: int = 10

    # Referrals
    DEFAULT_REWARD_TYPE: str = "Standard Referral Reward"

    # Request context
    TRUST_X_FORWARDED_FOR: bool = False
    TRUSTED_PROXY_IPS: list[str] = []

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def jwt_secret(self) -> str:
        """Return the signing secret, refusing to run with a missing or weak one."""
        if not self.JWT_SECRET:
            raise RuntimeError("JWT_SECRET is not configured")
        if len(self.JWT_SECRET) < JWT_SECRET_MIN_LENGTH:
            raise RuntimeError("JWT_SECRET is too short; please rotate it")
        return self.JWT_SECRET

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": min(self.DB_POOL_MIN_SIZE, 2),
                    "max_size": min(self.DB_POOL_MAX_SIZE, 8),
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
