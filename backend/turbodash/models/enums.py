import enum


class RetentionMetric(str, enum.Enum):
    clients = "clients"
    value = "value"
    contracts = "contracts"


class SeverityBucket(str, enum.Enum):
    # ordered from far above the benchmark to far below it
    above_15 = "above_15"
    above_10 = "above_10"
    above_5 = "above_5"
    above_0 = "above_0"
    below_0 = "below_0"
    below_5 = "below_5"
    below_10 = "below_10"
    below_15 = "below_15"
    below_25 = "below_25"
    # baseline period, never scored
    neutral = "neutral"


class OutlierDirection(str, enum.Enum):
    up = "up"
    down = "down"


class RowKind(str, enum.Enum):
    node = "node"
    leaf_installment = "leaf-installment"


class Trend(str, enum.Enum):
    rising = "rising"
    falling = "falling"
    stable = "stable"


class IssueCode(str, enum.Enum):
    empty_baseline = "empty_baseline"
    duplicate_category = "duplicate_category"
    self_reference = "self_reference"
    dangling_child = "dangling_child"
    multiple_parents = "multiple_parents"
    cycle = "cycle"
    leaf_flag_mismatch = "leaf_flag_mismatch"
    unknown_category = "unknown_category"
    installment_on_branch = "installment_on_branch"
    unknown_root = "unknown_root"
