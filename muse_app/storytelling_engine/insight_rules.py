"""
insight_rules.py

The insight rule set: each rule pairs a predicate over a MetricRecord with a
message renderer and a severity/priority classification.

Thresholds and wording are configuration. The generator treats any sequence of
InsightRule as data, so a different rule set can be passed in without touching
engine code. Rules that compare against a baseline read the variance through
get_variance() and never name a record field directly.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from muse_app.intelligence_engine.data_structures import ComparisonMode, MetricRecord, clean_number
from muse_app.intelligence_engine.primitives.formatting import format_pct, format_pp
from muse_app.intelligence_engine.primitives.records import get_variance
from .insight_data_structures import DEFAULT_PRIORITY, Severity

DEFAULT_AGGREGATE_MARKET = "All Markets"

# market scope of a rule
REAL_MARKETS = "real_markets"
AGGREGATE_ONLY = "aggregate_only"
ANY_MARKET = "any_market"


@dataclass(frozen=True)
class InsightRule:
    id: str
    severity: Severity
    priority: int
    predicate: Callable[[MetricRecord], bool]
    render: Callable[[MetricRecord], str]
    metric_key: Optional[str] = None    # checked against the catalog when given
    icon: Optional[str] = None          # defaults to the severity icon

    def __post_init__(self):
        # accept plain strings from configuration
        object.__setattr__(self, "severity", Severity(self.severity))

    @property
    def marker(self) -> str:
        return self.icon or self.severity.icon

    def matches(self, record: MetricRecord) -> bool:
        return bool(self.predicate(record))

    def message(self, record: MetricRecord) -> str:
        return self.render(record)


##############################################################################
# Rule builder
##############################################################################

def _in_scope(record: MetricRecord, scope: str, aggregate_market: str) -> bool:
    if scope == REAL_MARKETS:
        return record.market != aggregate_market
    if scope == AGGREGATE_ONLY:
        return record.market == aggregate_market
    return True


def _message_fields(record: MetricRecord, variance: Optional[float]) -> Dict[str, str]:
    abs_variance = abs(variance) if variance is not None else None
    return {
        "market": record.market,
        "metric_key": record.metric_key,
        "pct": format_pct(variance),
        "abs_pct": format_pct(abs_variance),
        "pp": format_pp(variance),
        "abs_pp": format_pp(variance, signed=False),
        "value_pct": format_pct(record.current_period_value),
    }


def variance_rule(
    rule_id: str,
    metric_key: str,
    severity: Severity,
    comparison: ComparisonMode,
    message: str,
    below: Optional[float] = None,
    at_least: Optional[float] = None,
    above: Optional[float] = None,
    abs_below: Optional[float] = None,
    scope: str = REAL_MARKETS,
    aggregate_market: str = DEFAULT_AGGREGATE_MARKET,
    priority: Optional[int] = None,
    extra: Optional[Callable[[MetricRecord], bool]] = None,
) -> InsightRule:
    """
    Build a rule firing when `metric_key`'s variance for `comparison` falls in a band.

    Bounds (all optional, combined with AND):
        below     : variance <  below
        at_least  : variance >= at_least
        above     : variance >  above
        abs_below : |variance| < abs_below
    A missing variance never matches. `extra` adds a further condition on the record.

    `message` is a str.format template with the fields
    {market}, {metric_key}, {pct}, {abs_pct}, {pp}, {abs_pp}, {value_pct}.
    """
    comparison = ComparisonMode.from_code(comparison)

    def predicate(record: MetricRecord) -> bool:
        if record.metric_key != metric_key:
            return False
        if not _in_scope(record, scope, aggregate_market):
            return False
        v = clean_number(get_variance(record, comparison))
        if v is None:
            return False
        if below is not None and not v < below:
            return False
        if at_least is not None and not v >= at_least:
            return False
        if above is not None and not v > above:
            return False
        if abs_below is not None and not abs(v) < abs_below:
            return False
        if extra is not None and not extra(record):
            return False
        return True

    def render(record: MetricRecord) -> str:
        variance = clean_number(get_variance(record, comparison))
        return message.format(**_message_fields(record, variance))

    return InsightRule(
        id=rule_id,
        severity=severity,
        priority=priority if priority is not None else DEFAULT_PRIORITY[severity],
        predicate=predicate,
        render=render,
        metric_key=metric_key,
    )


def _current_value_above(threshold: float) -> Callable[[MetricRecord], bool]:
    def check(record: MetricRecord) -> bool:
        value = record.current_period_value
        return value is not None and value > threshold
    return check


##############################################################################
# Shipped rule set
##############################################################################

def build_default_rules(aggregate_market: str = DEFAULT_AGGREGATE_MARKET) -> List[InsightRule]:
    """
    The loyalty scorecard rule set, in evaluation order.
    `aggregate_market` is the name of the all-markets pseudo-market.
    """
    LY = ComparisonMode.PRIOR_YEAR
    TGT = ComparisonMode.TARGET
    agg = aggregate_market

    return [
        # Critical
        variance_rule(
            "sales_below_target_critical", "SLS_TTL", Severity.CRITICAL, TGT,
            "{market} sales {abs_pct} below target — requires attention",
            below=-0.05, aggregate_market=agg,
        ),
        variance_rule(
            "members_declining_critical", "MBR_TTL", Severity.CRITICAL, LY,
            "{market} members down {abs_pct} vs last year — investigate churn",
            below=-0.10, aggregate_market=agg,
        ),
        variance_rule(
            "penetration_drop_critical", "SLS_PEN", Severity.CRITICAL, LY,
            "{market} penetration dropped {abs_pp} — losing market share",
            below=-0.02, aggregate_market=agg,
        ),

        # Warning
        variance_rule(
            "crossbrand_declining", "PCT_XBP", Severity.WARNING, LY,
            "{market} cross-brand rate declining ({pp} vs LY) — review program engagement",
            below=-0.01, aggregate_market=agg,
        ),
        variance_rule(
            "redemption_declining", "PCT_RDM", Severity.WARNING, LY,
            "{market} redemption rate down ({pp} vs LY) — check reward relevance",
            below=-0.01, aggregate_market=agg,
        ),
        variance_rule(
            "aov_declining", "AVG_AOV", Severity.WARNING, LY,
            "{market} average order value down {abs_pct} — review pricing/mix",
            below=-0.05, aggregate_market=agg,
        ),
        variance_rule(
            "frequency_declining", "AVG_ATF", Severity.WARNING, LY,
            "{market} visit frequency down {abs_pct} — engagement opportunity",
            below=-0.05, aggregate_market=agg,
        ),
        variance_rule(
            "sales_slightly_below_target", "SLS_TTL", Severity.WARNING, TGT,
            "{market} sales {abs_pct} below target — monitor closely",
            at_least=-0.05, below=0.0, aggregate_market=agg,
        ),

        # Positive
        variance_rule(
            "sales_beating_target", "SLS_TTL", Severity.POSITIVE, TGT,
            "{market} sales {pct} above target — strong performance",
            above=0.05, aggregate_market=agg,
        ),
        variance_rule(
            "crossbrand_high", "PCT_XBP", Severity.POSITIVE, LY,
            "{market} cross-brand rate at {value_pct} ({pp} vs LY) — program success",
            above=0.01, extra=_current_value_above(0.25), aggregate_market=agg,
        ),
        variance_rule(
            "new_members_surge", "MBR_NEW", Severity.POSITIVE, LY,
            "{market} new member acquisition up {pct} — growth momentum",
            above=0.15, aggregate_market=agg,
        ),
        variance_rule(
            "sales_strong_growth", "SLS_TTL", Severity.POSITIVE, LY,
            "{market} sales up {pct} vs last year — excellent growth",
            above=0.15, aggregate_market=agg,
        ),
        variance_rule(
            "redemption_improving", "PCT_RDM", Severity.POSITIVE, LY,
            "{market} redemption rate up {pp} — members engaging with rewards",
            above=0.02, aggregate_market=agg,
        ),

        # Informational (aggregate row only)
        variance_rule(
            "engagement_flat", "PCT_XBP", Severity.INFO, LY,
            "Overall cross-brand rate stable at {value_pct}",
            abs_below=0.005, scope=AGGREGATE_ONLY, aggregate_market=agg,
        ),
    ]


DEFAULT_RULES = build_default_rules()
