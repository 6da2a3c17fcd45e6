from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from decimal import Decimal

from turbodash.core.config import Settings, get_settings
from turbodash.core.errors import ConfigurationError
from turbodash.models.enums import OutlierDirection, SeverityBucket
from turbodash.services.benchmark import DEFAULT_DECAY_RATE, expected_retention, validate_decay_rate
from turbodash.utils.decimal_math import HUNDRED, as_decimal, pct


DEFAULT_OUTLIER_THRESHOLD = Decimal("20")
DEFAULT_BUCKET_FLOORS: tuple[Decimal, ...] = (
    Decimal("15"),
    Decimal("10"),
    Decimal("5"),
    Decimal("0"),
    Decimal("-5"),
    Decimal("-10"),
    Decimal("-15"),
    Decimal("-25"),
)
# top-down; anything below the last floor falls into the final bucket
BUCKET_ORDER: tuple[SeverityBucket, ...] = (
    SeverityBucket.above_15,
    SeverityBucket.above_10,
    SeverityBucket.above_5,
    SeverityBucket.above_0,
    SeverityBucket.below_0,
    SeverityBucket.below_5,
    SeverityBucket.below_10,
    SeverityBucket.below_15,
    SeverityBucket.below_25,
)


@dataclass(frozen=True)
class DeviationPolicy:
    decay_rate: Decimal = DEFAULT_DECAY_RATE
    outlier_threshold: Decimal = DEFAULT_OUTLIER_THRESHOLD
    bucket_floors: tuple[Decimal, ...] = DEFAULT_BUCKET_FLOORS

    def __post_init__(self) -> None:
        validate_decay_rate(self.decay_rate)
        if self.outlier_threshold <= 0:
            raise ConfigurationError("Outlier threshold must be > 0.")
        if len(self.bucket_floors) != len(BUCKET_ORDER) - 1:
            raise ConfigurationError(
                f"Expected {len(BUCKET_ORDER) - 1} bucket floors, got {len(self.bucket_floors)}."
            )
        floors = self.bucket_floors
        if any(upper <= lower for upper, lower in zip(floors, floors[1:])):
            raise ConfigurationError("Bucket floors must be strictly descending.")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> DeviationPolicy:
        settings = settings or get_settings()
        return cls(
            decay_rate=settings.retention_decay_rate,
            outlier_threshold=settings.outlier_threshold_pct,
            bucket_floors=tuple(settings.severity_bucket_floors),
        )


@lru_cache
def _cached_policy(
    decay_rate: Decimal,
    outlier_threshold: Decimal,
    bucket_floors: tuple[Decimal, ...],
) -> DeviationPolicy:
    return DeviationPolicy(decay_rate=decay_rate, outlier_threshold=outlier_threshold, bucket_floors=bucket_floors)


def default_policy() -> DeviationPolicy:
    """Policy built from the current settings, shared while they stay the same."""
    settings = get_settings()
    return _cached_policy(
        settings.retention_decay_rate,
        settings.outlier_threshold_pct,
        tuple(settings.severity_bucket_floors),
    )


@dataclass(frozen=True)
class DeviationResult:
    offset: int
    actual_pct: Decimal
    expected_pct: Decimal
    deviation_pct: Decimal
    severity_bucket: SeverityBucket
    is_outlier: bool
    outlier_direction: OutlierDirection | None


def severity_bucket(deviation_pct: Decimal, policy: DeviationPolicy | None = None) -> SeverityBucket:
    policy = policy or default_policy()
    for floor, bucket in zip(policy.bucket_floors, BUCKET_ORDER):
        if deviation_pct >= floor:
            return bucket
    return BUCKET_ORDER[-1]


def outlier_direction(deviation_pct: Decimal, policy: DeviationPolicy | None = None) -> OutlierDirection | None:
    policy = policy or default_policy()
    if deviation_pct > policy.outlier_threshold:
        return OutlierDirection.up
    if deviation_pct < -policy.outlier_threshold:
        return OutlierDirection.down
    return None


def classify(
    actual_pct: Decimal | int | float | str,
    offset: int,
    *,
    policy: DeviationPolicy | None = None,
) -> DeviationResult:
    """Score an observed retention percentage against the benchmark curve.

    The baseline period (offset 0) is never scored: it reports zero deviation
    in the neutral bucket whatever ``actual_pct`` is. Bucket and outlier
    checks use the exact deviation; only the reported ``deviation_pct`` is
    rounded.
    """
    policy = policy or default_policy()
    actual = as_decimal(actual_pct)
    expected = expected_retention(offset, decay_rate=policy.decay_rate)

    if offset == 0:
        return DeviationResult(
            offset=0,
            actual_pct=actual,
            expected_pct=pct(expected),
            deviation_pct=pct(0),
            severity_bucket=SeverityBucket.neutral,
            is_outlier=False,
            outlier_direction=None,
        )

    # expected > 0 for any decay rate in (0, 1)
    deviation = (actual - expected) / expected * HUNDRED
    direction = outlier_direction(deviation, policy)
    return DeviationResult(
        offset=offset,
        actual_pct=actual,
        expected_pct=pct(expected),
        deviation_pct=pct(deviation),
        severity_bucket=severity_bucket(deviation, policy),
        is_outlier=direction is not None,
        outlier_direction=direction,
    )
