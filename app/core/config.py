from functools import lru_cache
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

USDC_MINT_MAINNET = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_NAME: str = "Paywall402"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["development", "test", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "paywall402"
    DATABASE_URL: Optional[str] = None

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Access credentials
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_TTL_SECONDS: int = 7 * 24 * 60 * 60

    # Ledger (Solana JSON-RPC)
    SOLANA_RPC_ENDPOINT: str = "https://api.mainnet-beta.solana.com"
    SOLANA_COMMITMENT: Literal["confirmed", "finalized"] = "finalized"
    LEDGER_TIMEOUT_SECONDS: float = 10.0

    # Payment rules
    PAYMENT_TOKEN_MINT: str = USDC_MINT_MAINNET
    PAYMENT_CURRENCY: str = "USDC"
    PAYMENT_NETWORK: str = "solana"
    PRICE_MIN: Decimal = Decimal("0.01")
    PRICE_MAX: Decimal = Decimal("100")
    AMOUNT_TOLERANCE_PERCENT: Decimal = Decimal("0.1")
    AMOUNT_TOLERANCE_FLOOR: Decimal = Decimal("0.01")

    # "ledger" verifies on-chain, "simulated" accepts prefixed test signatures
    VERIFICATION_MODE: Literal["ledger", "simulated"] = "ledger"
    SIMULATED_SIGNATURE_PREFIX: str = "sim_"

    # Storage write retries
    STORAGE_RETRY_ATTEMPTS: int = 3
    STORAGE_RETRY_BASE_DELAY: float = 0.1
    STORAGE_RETRY_MULTIPLIER: float = 2.0

    EXPIRY_SWEEP_INTERVAL_SECONDS: int = 300

    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    FRONTEND_URL: str = "http://localhost:3000"
    UPLOAD_DIR: str = "uploads"

    @field_validator("SECRET_KEY")
    @classmethod
    def secret_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("SECRET_KEY must be set")
        return v

    @model_validator(mode="after")
    def simulated_mode_outside_production(self):
        if self.VERIFICATION_MODE == "simulated" and self.ENVIRONMENT == "production":
            raise ValueError("VERIFICATION_MODE=simulated is not allowed when ENVIRONMENT=production")
        return self

    @property
    def amount_tolerance_ratio(self) -> Decimal:
        return self.AMOUNT_TOLERANCE_PERCENT / Decimal(100)

@lru_cache()
def get_settings() -> Settings:
    return Settings()
