import math
from dataclasses import dataclass, field, fields
from enum import Enum
from types import MappingProxyType
from typing import Dict, Any, Mapping, Optional


class ComparisonMode(str, Enum):
    """
    Baseline a current value is compared against. Values match the
    comparison codes used by the dashboard filters.
    """
    PRIOR_YEAR = "LYTD"
    TARGET = "Target"
    ROLLING_12MO = "LMR12M"

    @classmethod
    def from_code(cls, code) -> "ComparisonMode":
        if isinstance(code, cls):
            return code
        lookup = {m.value.lower(): m for m in cls}
        lookup.update({m.name.lower(): m for m in cls})
        try:
            return lookup[str(code).strip().lower()]
        except KeyError:
            raise ValueError(
                f"Unknown comparison mode '{code}'. Expected one of {[m.value for m in cls]}."
            ) from None


_NUMERIC_FIELDS = (
    "current_period_value",
    "target_value",
    "prior_year_value",
    "rolling_12mo_value",
    "prior_month_rolling_12mo_value",
    "prior_year_rolling_12mo_value",
    "variance_vs_target",
    "variance_vs_prior_year",
    "variance_vs_rolling_12mo",
)


def clean_number(value) -> Optional[float]:
    """Return value as a finite float, or None for None/NaN/inf/non-numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(num):
        return None
    return num


@dataclass(frozen=True)
class MetricRecord:
    """
    One (metric_key, market, month) observation.

    Variances are signed fractional changes (0.05 = +5%, or +5 points for
    percentage KPIs) and are authoritative inputs; None means "incomparable".
    NaN and infinities are normalised to None on construction.
    """
    metric_key: str
    market: str
    month: str
    current_period_value: Optional[float] = None    # YTD
    target_value: Optional[float] = None
    prior_year_value: Optional[float] = None        # LYTD
    rolling_12mo_value: Optional[float] = None      # R12M
    prior_month_rolling_12mo_value: Optional[float] = None
    prior_year_rolling_12mo_value: Optional[float] = None
    variance_vs_target: Optional[float] = None
    variance_vs_prior_year: Optional[float] = None
    variance_vs_rolling_12mo: Optional[float] = None
    monthly_values: Mapping[str, Optional[float]] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        # frozen: normalise through object.__setattr__
        for name in _NUMERIC_FIELDS:
            object.__setattr__(self, name, clean_number(getattr(self, name)))
        object.__setattr__(
            self,
            "monthly_values",
            MappingProxyType({k: clean_number(v) for k, v in (self.monthly_values or {}).items()}),
        )

    @property
    def key(self) -> tuple:
        return (self.metric_key, self.market, self.month)

    def to_dict(self) -> Dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["monthly_values"] = dict(self.monthly_values)
        return out
