# =============================================================================
# PerformanceClasses
#
# Classify a variance into a styling tag for the scorecard:
# - Badge class (hero cards, KPI table change cells)
# - Row class (KPI table rows, by variance vs target)
# - Heatmap class (market x KPI grid, by variance vs target)
#
# Dependencies:
#   - pandas as pd
# =============================================================================

import pandas as pd
from typing import Optional

from muse_app.intelligence_engine.data_structures import clean_number
from muse_app.metric_catalog.catalog_models import MetricFormat

# A percentage KPI moving half a point is material; other KPIs need 2%.
PP_NEUTRAL_BAND = 0.005
PCT_NEUTRAL_BAND = 0.02
WARNING_FLOOR = -0.05


def safe_div(numerator, denominator, fallback=0):
    """
    Divide, returning `fallback` when the denominator is None, zero or NaN.
    """
    if denominator is None or pd.isna(denominator) or denominator == 0:
        return fallback
    return numerator / denominator


def get_badge_class(variance: Optional[float], fmt) -> str:
    """
    'positive' | 'negative' | 'neutral' for a change badge.

    Percentage-format KPIs use a +/-0.5pp neutral band,
    all other KPIs a +/-2% band.
    """
    v = clean_number(variance)
    if v is None:
        return "neutral"

    resolved = MetricFormat.from_code(fmt)
    band = PP_NEUTRAL_BAND if resolved is not None and resolved.is_percentage else PCT_NEUTRAL_BAND
    if v > band:
        return "positive"
    if v < -band:
        return "negative"
    return "neutral"


def get_row_class(variance: Optional[float]) -> str:
    v = clean_number(variance)
    if v is None:
        return ""
    if v >= 0:
        return "row-positive"
    if v >= WARNING_FLOOR:
        return "row-warning"
    return "row-negative"


def get_heatmap_class(vs_target: Optional[float]) -> str:
    v = clean_number(vs_target)
    if v is None:
        return "heatmap-neutral"
    if v >= 0:
        return "heatmap-positive"
    if v >= WARNING_FLOOR:
        return "heatmap-warning"
    return "heatmap-negative"
