"""
TPC-H ELT Pipeline
Centralized Configuration Management

Pipeline configuration using Pydantic settings with environment variable
support, validation, and type safety. Every knob the models, the validation
layer and the scheduler read lives here.
"""

from datetime import date
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MaterializationName = Literal["view", "table", "incremental"]


class SourceDatabaseSettings(BaseSettings):
    """Source database holding the raw orders/lineitem tables"""

    model_config = SettingsConfigDict(env_prefix="SOURCE_DB_")

    url: Optional[str] = Field(default=None, description="Full SQLAlchemy URL (overrides host/port)")
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="tpch", description="Database name")
    user: str = Field(default="tpch", description="Database user")
    password: SecretStr = Field(default="tpch", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")

    @property
    def async_url(self) -> str:
        """Async database URL; an explicit url wins over host/port"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class WarehouseSettings(BaseSettings):
    """Target warehouse configuration"""

    model_config = SettingsConfigDict(env_prefix="WAREHOUSE_")

    database: str = Field(default="dbt_db", description="Target database name")
    schema_name: str = Field(default="dbt_schema", description="Target schema for built models")
    source_schema: str = Field(default="tpch_sf1", description="Schema holding the source tables")
    source_dir: str = Field(default="./data/raw", description="Directory with orders/lineitem files")
    target_dir: Optional[str] = Field(default=None, description="Directory for persisted tables")
    compute_size: str = Field(default="x-small", description="Compute size label, informational")


class MaterializationSettings(BaseSettings):
    """Materialization strategy per model group"""

    model_config = SettingsConfigDict(env_prefix="MATERIALIZATION_")

    staging: MaterializationName = Field(default="view", description="Staging models")
    intermediate: MaterializationName = Field(default="table", description="Intermediate models")
    marts: MaterializationName = Field(default="table", description="Mart models")


class PricingSettings(BaseSettings):
    """Parameters for the pricing macros"""

    model_config = SettingsConfigDict(env_prefix="PRICING_")

    discount_scale: int = Field(default=2, ge=0, description="Fractional digits of discount amounts")
    decimal_precision: int = Field(default=16, ge=1, le=38, description="Total digits of discount amounts")

    @field_validator("decimal_precision")
    @classmethod
    def validate_precision(cls, v: int, info) -> int:
        scale = info.data.get("discount_scale", 0)
        if v < scale:
            raise ValueError(f"Precision {v} is smaller than scale {scale}")
        return v


class QualitySettings(BaseSettings):
    """Data test configuration"""

    model_config = SettingsConfigDict(env_prefix="QUALITY_")

    relationship_severity: Literal["warn", "error"] = Field(
        default="warn",
        description="Severity of the fct_orders -> stg_tpch_orders relationship test",
    )
    accepted_status_codes: List[str] = Field(
        default=["P", "O", "F"],
        description="Allowed order status codes",
    )
    min_order_date: date = Field(default=date(1990, 1, 1), description="Earliest valid order date")
    strict: bool = Field(default=False, description="Treat warnings as failures")


class ScheduleSettings(BaseSettings):
    """Orchestrator schedule"""

    model_config = SettingsConfigDict(env_prefix="SCHEDULE_")

    cron: str = Field(default="0 0 * * *", description="Cron expression for the daily run")
    start_date: date = Field(default=date(2023, 9, 10), description="First scheduled run")
    catchup: bool = Field(default=False, description="Back-fill runs before today")
    retries: int = Field(default=0, ge=0, description="Flow retries owned by the orchestrator")
    retry_delay_seconds: int = Field(default=300, ge=0, description="Delay between flow retries")


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(default="json", description="Log format: json or console")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing pipeline configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="tpch-elt", description="Application name")
    app_env: str = Field(default="development", description="Environment")
    version: str = Field(default="1.0.0", description="Application version")

    source_database: SourceDatabaseSettings = Field(default_factory=SourceDatabaseSettings)
    warehouse: WarehouseSettings = Field(default_factory=WarehouseSettings)
    materialization: MaterializationSettings = Field(default_factory=MaterializationSettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    quality: QualitySettings = Field(default_factory=QualitySettings)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
