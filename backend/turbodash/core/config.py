from decimal import Decimal
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "TurboDash Analytics"
    debug: bool = False
    log_level: str = "INFO"

    retention_decay_rate: Decimal = Decimal("0.92")
    outlier_threshold_pct: Decimal = Decimal("20")
    severity_bucket_floors: list[Decimal] = [
        Decimal("15"),
        Decimal("10"),
        Decimal("5"),
        Decimal("0"),
        Decimal("-5"),
        Decimal("-10"),
        Decimal("-15"),
        Decimal("-25"),
    ]
    cohort_summary_offsets: list[int] = [1, 3, 12]

    revenue_root_id: str = "RECEITAS"
    expense_root_id: str = "DESPESAS"
    category_metrics_min_level: int = 2
    category_trend_threshold_pct: Decimal = Decimal("15")
    category_anomaly_zscore: Decimal = Decimal("1.5")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("retention_decay_rate")
    @classmethod
    def _decay_rate_in_unit_interval(cls, value: Decimal) -> Decimal:
        if not Decimal("0") < value < Decimal("1"):
            raise ValueError("retention_decay_rate must be between 0 and 1 (exclusive).")
        return value

    @field_validator("outlier_threshold_pct", "category_anomaly_zscore")
    @classmethod
    def _positive(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError("Threshold must be > 0.")
        return value

    @field_validator("severity_bucket_floors")
    @classmethod
    def _floors_descending(cls, value: list[Decimal]) -> list[Decimal]:
        if len(value) != 8:
            raise ValueError("severity_bucket_floors needs exactly 8 floors for the 9 buckets.")
        if any(upper <= lower for upper, lower in zip(value, value[1:])):
            raise ValueError("severity_bucket_floors must be strictly descending.")
        return value

    @field_validator("cohort_summary_offsets")
    @classmethod
    def _offsets_positive(cls, value: list[int]) -> list[int]:
        if any(offset < 1 for offset in value):
            raise ValueError("cohort_summary_offsets must be >= 1.")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
