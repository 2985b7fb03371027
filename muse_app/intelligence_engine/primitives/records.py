# =============================================================================
# Records
#
# Accessors over a dataset (a sequence of MetricRecord):
# - Exact lookup by (metric_key, market, month)
# - Filtering by any subset of month / market / metric_key
# - Latest reporting month
# - Variance selection by comparison mode
# =============================================================================

from typing import Iterable, List, Optional, Sequence

from muse_app.core.exceptions import EmptyDatasetError
from muse_app.intelligence_engine.data_structures import ComparisonMode, MetricRecord

# -----------------------------------------------------------------------------
# Lookup & filtering
# -----------------------------------------------------------------------------

def lookup(
    dataset: Iterable[MetricRecord],
    metric_key: str,
    market: str,
    month: str
) -> Optional[MetricRecord]:
    """
    Return the record matching all three keys exactly, or None.

    Absence is a normal outcome (e.g. a market that has no row for a month).
    If a dataset carries duplicate triples, the first one in insertion order wins.
    """
    for record in dataset:
        if (
            record.metric_key == metric_key
            and record.market == market
            and record.month == month
        ):
            return record
    return None


def filter_records(
    dataset: Iterable[MetricRecord],
    month: Optional[str] = None,
    market: Optional[str] = None,
    metric_key: Optional[str] = None
) -> List[MetricRecord]:
    """
    Return the records matching every given criterion, in insertion order.
    A criterion left as None is unconstrained.
    """
    out = []
    for record in dataset:
        if month is not None and record.month != month:
            continue
        if market is not None and record.market != market:
            continue
        if metric_key is not None and record.metric_key != metric_key:
            continue
        out.append(record)
    return out


def available_months(dataset: Iterable[MetricRecord]) -> List[str]:
    """Distinct months, newest first."""
    return sorted({r.month for r in dataset}, reverse=True)


def latest_month(dataset: Sequence[MetricRecord]) -> str:
    """
    The maximum month under ordinary string ordering.

    Months are expected in a zero-padded sortable form ("2024-06").

    Raises
    ------
    EmptyDatasetError
        If the dataset has no records.
    """
    months = available_months(dataset)
    if not months:
        raise EmptyDatasetError("Cannot determine the latest month of an empty dataset.")
    return months[0]

# -----------------------------------------------------------------------------
# Variance selection
# -----------------------------------------------------------------------------

_VARIANCE_FIELDS = {
    ComparisonMode.PRIOR_YEAR: "variance_vs_prior_year",
    ComparisonMode.TARGET: "variance_vs_target",
    ComparisonMode.ROLLING_12MO: "variance_vs_rolling_12mo",
}

_COMPARISON_LABELS = {
    ComparisonMode.PRIOR_YEAR: "vs LY",
    ComparisonMode.TARGET: "vs Target",
    ComparisonMode.ROLLING_12MO: "vs R12M",
}


def get_variance(record: Optional[MetricRecord], comparison_mode) -> Optional[float]:
    """
    Return the variance of `record` for the given comparison mode.

    This is the one place that maps a comparison mode to a record field.
    Returns None when the record is absent or the variance is missing.
    An unknown mode also yields None.
    """
    if record is None:
        return None
    try:
        mode = ComparisonMode.from_code(comparison_mode)
    except ValueError:
        return None
    return getattr(record, _VARIANCE_FIELDS[mode])


def get_comparison_label(comparison_mode) -> str:
    try:
        return _COMPARISON_LABELS[ComparisonMode.from_code(comparison_mode)]
    except ValueError:
        return ""
