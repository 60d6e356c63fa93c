"""
Configuration schema models using Pydantic v2.

Provides type-safe configuration with validation for the SmartStock ledger.
All configuration is loaded from config.yaml with optional environment variable overrides.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional

from .storage_backend import USER_ID_PATTERN

DEFAULT_PORTFOLIO_PROMPT = """Role: You are a senior portfolio advisor.
Task: Review the holdings provided below and write a portfolio health check.
Consider:
1. Asset allocation and concentration risk.
2. Sector diversification.
3. A review of each position's profit and loss.
4. Concrete rebalancing suggestions or risks that need attention.
Answer in Markdown."""


class GCPStorageConfig(BaseModel):
    """GCP Cloud Storage configuration."""
    bucket_name: str = "smartstock_ledger"
    prefix: str = "users"
    credentials_file: Optional[str] = Field(
        default=None,
        description="Service account JSON file; application default credentials when unset"
    )

    @field_validator('bucket_name')
    @classmethod
    def validate_bucket_name(cls, v: str) -> str:
        """Validate GCS bucket naming rules."""
        if not v or len(v) < 3 or len(v) > 63:
            raise ValueError("bucket_name must be 3-63 characters long")
        if not v.replace('_', '').replace('-', '').replace('.', '').isalnum():
            raise ValueError("bucket_name can only contain letters, numbers, hyphens, underscores, and dots")
        return v


class LocalStorageConfig(BaseModel):
    """Local file storage configuration."""
    data_dir: str = "."


class StorageConfig(BaseModel):
    """Storage backend configuration."""
    backend: Literal["hybrid", "gcp", "local"] = "local"
    gcp: GCPStorageConfig = Field(default_factory=GCPStorageConfig)
    local: LocalStorageConfig = Field(default_factory=LocalStorageConfig)


class PriceConfig(BaseModel):
    """Market price fetching configuration."""
    default_suffix: str = Field(
        default=".TW",
        description="Exchange suffix appended to bare four-digit codes"
    )
    max_price: float = Field(default=100000.0, gt=0, description="Quotes above this are discarded")


class AIConfig(BaseModel):
    """AI portfolio analysis configuration."""
    model: str = "gpt-4.1-mini"
    portfolio_prompt: str = DEFAULT_PORTFOLIO_PROMPT
    timeout: int = Field(default=120, ge=1, description="Request timeout in seconds")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class LedgerConfig(BaseModel):
    """
    Root configuration model for the SmartStock ledger.

    Environment variable overrides:
    - SMARTSTOCK_USER_ID: Override user_id
    - SMARTSTOCK_GCP_BUCKET: Override storage.gcp.bucket_name
    - SMARTSTOCK_STORAGE_BACKEND: Override storage.backend
    - SMARTSTOCK_DATA_DIR: Override storage.local.data_dir
    - SMARTSTOCK_AI_MODEL: Override ai.model
    - SMARTSTOCK_LOG_LEVEL: Override logging.level
    """
    user_id: str = Field(default="default", description="Key of the user's portfolio document")
    storage: StorageConfig = Field(default_factory=StorageConfig)
    prices: PriceConfig = Field(default_factory=PriceConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator('user_id')
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        if not USER_ID_PATTERN.match(v):
            raise ValueError("user_id may only contain letters, digits, '_' and '-' (max 128)")
        return v

    model_config = {
        "extra": "allow",
        "str_strip_whitespace": True,
    }
