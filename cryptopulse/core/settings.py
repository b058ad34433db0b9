from typing import Literal, Optional

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cryptopulse.core.constants import RISK_PROFILES


class Settings(BaseSettings):
    # --- Project Info ---
    APP_NAME: str = "CryptoPulse"
    ENV: Literal["development", "staging", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    # --- Database (AsyncPG) ---
    POSTGRES_USER: str = "cryptopulse"
    POSTGRES_PASSWORD: str = "cryptopulse"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "cryptopulse_db"
    DATABASE_URL_OVERRIDE: Optional[str] = None
    PERSIST_RISK_LIMITS: bool = False

    # --- Telegram (optional) ---
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_CHAT_ID: Optional[int] = None

    # --- Portfolio ---
    DEFAULT_PORTFOLIO_VALUE: float = 10000.0

    # --- Signal Pipeline ---
    SIGNAL_CONFIDENCE_THRESHOLD: float = 75.0
    SIGNAL_QUEUE_MAXSIZE: int = 1000
    SIGNAL_QUEUE_PUT_TIMEOUT: float = 5.0
    SIGNAL_HISTORY_LIMIT: int = 100
    SIGNAL_HISTORY_MAX_AGE_SECONDS: Optional[float] = None
    SIGNAL_DEDUP_WINDOW: int = 10000
    SUPERSEDE_SAME_SYMBOL: bool = False

    # --- Timeouts (seconds) ---
    PORTFOLIO_TIMEOUT: float = 5.0
    EXECUTION_TIMEOUT: float = 10.0

    # --- Exchange SDK thread pool ---
    EXCHANGE_POOL_WORKERS: int = 10
    SIGNAL_RESULT_TIMEOUT: float = 30.0

    # --- Risk Policy ---
    RISK_WARNING_RATIO: float = 0.8
    DEFAULT_STOP_LOSS_PCT: float = 0.05
    CIRCUIT_BREAKER_MAX_FAILURES: int = 3
    ALERT_HISTORY_LIMIT: int = 500

    # Daily statistics boundary: calendar_day | rolling_24h | manual
    DAILY_RESET_MODE: Literal["calendar_day", "rolling_24h", "manual"] = "calendar_day"
    DAILY_RESET_TZ: str = "UTC"

    # --- Computed Fields ---
    @computed_field
    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def risk_profile(self) -> dict:
        """Default RiskLimits values for the current environment."""
        return RISK_PROFILES.get(self.ENV, RISK_PROFILES["development"])

    # Pydantic V2 Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields in .env file
    )


settings = Settings()
