from turbodash.models.enums import (
    IssueCode,
    OutlierDirection,
    RetentionMetric,
    RowKind,
    SeverityBucket,
    Trend,
)

__all__ = [
    "IssueCode",
    "OutlierDirection",
    "RetentionMetric",
    "RowKind",
    "SeverityBucket",
    "Trend",
]
