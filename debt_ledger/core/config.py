from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # API Settings
    PROJECT_NAME: str = "Debt Ledger API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Expense attribution, debt balances and repayment audit trail"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "debt_ledger"
    # Multi-document transactions need a replica set
    MONGODB_TRANSACTIONS: bool = False

    # Storage guard
    STORAGE_TIMEOUT_SECONDS: float = 5.0
    STORAGE_RETRY_ATTEMPTS: int = 3
    STORAGE_RETRY_BACKOFF_SECONDS: float = 0.05

    # Payout stats migration
    MIGRATION_DEFAULT_BATCH_SIZE: int = 50
    MIGRATION_MAX_BATCH_SIZE: int = 500
    MIGRATION_ITEM_DELAY_SECONDS: float = 0.1

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # JWT (tokens are issued by the dashboard's login service)
    JWT_SECRET: str = "change-this-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    ADMIN_ROLE: str = "admin"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
