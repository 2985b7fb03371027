# =============================================================================
# Formatting
#
# Pure functions turning numbers into display strings:
# - format_value: a KPI value in its catalog format
# - format_change: a signed variance with arrow and % / pp suffix
# - format_pct / format_pp: bare percentage helpers used in insight messages
#
# Rounding is "half away from zero" at the displayed precision. Nothing here
# raises: a missing, non-finite or non-numeric input renders as PLACEHOLDER.
#
# Dependencies:
#   - decimal (exact rounding)
# =============================================================================

import logging
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Optional

from muse_app.intelligence_engine.data_structures import clean_number
from muse_app.metric_catalog.catalog_models import MetricFormat

logger = logging.getLogger(__name__)

PLACEHOLDER = "—"       # em-dash
ARROW_UP = "▲"
ARROW_DOWN = "▼"
CURRENCY_SYMBOL = "$"

# enough significant digits for any finite float scaled by 10**2 and kept to 2 places
_ROUNDING_PRECISION = 400

# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _round_half_away(num: float, places: int, shift: int = 0) -> Decimal:
    """
    Round num * 10**shift to `places` decimals, halves away from zero.
    Goes through repr() so 0.155 rounds as written, not as its binary value.
    """
    with localcontext() as ctx:
        ctx.prec = _ROUNDING_PRECISION
        quantum = Decimal(1).scaleb(-places)
        rounded = Decimal(repr(num)).scaleb(shift).quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded == 0:
        # -0.04 at one decimal renders as "0.0", not "-0.0"
        rounded = rounded.copy_abs()
    return rounded


def _fixed(num: float, places: int, shift: int = 0) -> str:
    return f"{_round_half_away(num, places, shift):f}"


def _grouped(num: float) -> str:
    """Whole number with en-US thousands grouping."""
    return f"{_round_half_away(num, 0):,.0f}"


def _compact(num: float) -> str:
    if abs(num) >= 1_000_000:
        return _fixed(num, 1, shift=-6) + "M"
    if abs(num) >= 1_000:
        return _fixed(num, 1, shift=-3) + "K"
    return _grouped(num)


def _as_format(fmt) -> Optional[MetricFormat]:
    resolved = MetricFormat.from_code(fmt)
    if resolved is None and fmt is not None:
        logger.warning("Unknown format code %r; rendering raw value.", fmt)
    return resolved


def _plain(num: float) -> str:
    return str(int(num)) if num.is_integer() else repr(num)

# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------

def format_value(value, fmt) -> str:
    """
    Render a KPI value in its display format.

    Parameters
    ----------
    value : float or None
        The raw value. None, NaN, inf and non-numeric values render as PLACEHOLDER.
    fmt : MetricFormat or str
        A MetricFormat or its code ('C0', 'C2', 'V0', 'V2', 'P4').

    Returns
    -------
    str
        e.g. format_value(1_500_000, 'C0') -> '$1.5M'
             format_value(2_500, 'V0')     -> '2.5K'
             format_value(0.15432, 'P4')   -> '15.4%'
        An unknown format code renders the plain number.
    """
    num = clean_number(value)
    if num is None:
        return PLACEHOLDER

    resolved = _as_format(fmt)
    if resolved is MetricFormat.CURRENCY_COMPACT:
        return CURRENCY_SYMBOL + _compact(num)
    if resolved is MetricFormat.CURRENCY_PRECISE:
        return CURRENCY_SYMBOL + _fixed(num, 2)
    if resolved is MetricFormat.VOLUME_COMPACT:
        return _compact(num)
    if resolved is MetricFormat.DECIMAL_PRECISE:
        return _fixed(num, 2)
    if resolved is MetricFormat.PERCENTAGE:
        return _fixed(num, 1, shift=2) + "%"
    return _plain(num)


def format_change(value, fmt) -> str:
    """
    Render a variance as '<arrow> <sign><magnitude><suffix>'.

    The arrow points up for value >= 0. The suffix is 'pp' (percentage points)
    when the metric's own format is a percentage format, '%' otherwise.

        format_change(0.05, 'P4')   -> '▲ +5.0pp'
        format_change(-0.031, 'C0') -> '▼ -3.1%'
    """
    num = clean_number(value)
    if num is None:
        return PLACEHOLDER

    arrow = ARROW_UP if num >= 0 else ARROW_DOWN
    sign = "+" if num >= 0 else "-"
    resolved = MetricFormat.from_code(fmt)
    suffix = "pp" if resolved is not None and resolved.is_percentage else "%"
    return f"{arrow} {sign}{_fixed(abs(num), 1, shift=2)}{suffix}"


def format_pct(value) -> str:
    """0.082 -> '8.2%'. Keeps the sign of negative values."""
    num = clean_number(value)
    if num is None:
        return PLACEHOLDER
    return _fixed(num, 1, shift=2) + "%"


def format_pp(value, signed: bool = True) -> str:
    """
    0.015 -> '+1.5pp', -0.015 -> '-1.5pp'.
    With signed=False the magnitude is rendered without a sign: '1.5pp'.
    """
    num = clean_number(value)
    if num is None:
        return PLACEHOLDER
    magnitude = _fixed(abs(num), 1, shift=2) + "pp"
    if not signed:
        return magnitude
    return ("+" if num >= 0 else "-") + magnitude
