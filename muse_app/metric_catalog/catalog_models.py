from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class MetricFormat(str, Enum):
    """
    Closed set of display formats. The values are the format codes used in
    the catalog TOML and in the `Format` column of uploaded files.
    """
    CURRENCY_COMPACT = "C0"
    CURRENCY_PRECISE = "C2"
    VOLUME_COMPACT = "V0"
    DECIMAL_PRECISE = "V2"
    PERCENTAGE = "P4"

    @property
    def is_percentage(self) -> bool:
        return self is MetricFormat.PERCENTAGE

    @classmethod
    def from_code(cls, code) -> Optional["MetricFormat"]:
        """Return the matching format, or None for an unknown/empty code."""
        if isinstance(code, cls):
            return code
        if code is None:
            return None
        try:
            return cls(str(code).strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class MetricDefinition:
    """
    A single KPI definition from the catalog TOML.
    """
    key: str              # e.g. "SLS_TTL"
    display_name: str     # e.g. "Total Sales"
    format: MetricFormat
    category: str = ""    # grouping tag, display only


@dataclass(frozen=True)
class MarketDefinition:
    """
    The market enumeration. `aggregate` is the "all markets combined" pseudo-market
    and is always the first entry of `all_markets()`.
    """
    aggregate: str = "All Markets"
    members: tuple = ()

    def all_markets(self) -> List[str]:
        return [self.aggregate] + [m for m in self.members if m != self.aggregate]

    def is_aggregate(self, market: str) -> bool:
        return market == self.aggregate


@dataclass
class MetricCatalog:
    """
    A container for all metric definitions plus the ordered KPI subsets
    used by presentation. Subset order is display order, not a ranking.
    """
    metrics: List[MetricDefinition] = field(default_factory=list)
    hero_keys: List[str] = field(default_factory=list)
    scorecard_keys: List[str] = field(default_factory=list)
    heatmap_keys: List[str] = field(default_factory=list)
    markets: MarketDefinition = field(default_factory=MarketDefinition)

    def get_metric_keys(self) -> List[str]:
        """Returns the list of all metric keys in catalog order."""
        return [m.key for m in self.metrics]
