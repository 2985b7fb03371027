import math
import pytest
from muse_app.intelligence_engine.primitives.formatting import (
    PLACEHOLDER,
    format_change,
    format_pct,
    format_pp,
    format_value,
)
from muse_app.metric_catalog.catalog_models import MetricFormat

ALL_FORMATS = ["C0", "C2", "V0", "V2", "P4"]


@pytest.mark.parametrize("fmt", ALL_FORMATS)
@pytest.mark.parametrize("missing", [None, float("nan"), float("inf"), -math.inf])
def test_missing_values_render_placeholder(fmt, missing):
    assert format_value(missing, fmt) == PLACEHOLDER
    assert format_change(missing, fmt) == PLACEHOLDER


def test_format_value_compact_and_percentage():
    assert format_value(1_500_000, "C0") == "$1.5M"
    assert format_value(2_500, "V0") == "2.5K"
    assert format_value(0.15432, "P4") == "15.4%"
    assert format_value(1_500_000, MetricFormat.CURRENCY_COMPACT) == "$1.5M"


def test_format_value_below_thousand_has_no_decimals():
    assert format_value(512.6, "C0") == "$513"
    assert format_value(999, "V0") == "999"
    assert format_value(0.4, "V0") == "0"
    assert format_value(-0.4, "V0") == "0"


def test_format_value_negative_compact():
    assert format_value(-2_500_000, "C0") == "$-2.5M"
    assert format_value(-1_200, "V0") == "-1.2K"


def test_format_value_precise_formats():
    assert format_value(12.345, "C2") == "$12.35"
    assert format_value(2.5, "V2") == "2.50"
    assert format_value(3, "V2") == "3.00"


def test_rounding_is_half_away_from_zero():
    assert format_value(0.0125, "P4") == "1.3%"
    assert format_value(-0.0125, "P4") == "-1.3%"
    assert format_value(1_250_000, "V0") == "1.3M"
    assert format_value(0.125, "V2") == "0.13"


def test_unknown_format_renders_raw_number(caplog):
    assert format_value(42, "XX") == "42"
    assert format_value(4.25, "XX") == "4.25"
    assert "Unknown format code" in caplog.text


def test_format_change_suffix_depends_on_metric_format():
    assert format_change(0.05, "P4") == "▲ +5.0pp"
    assert format_change(-0.031, "C0") == "▼ -3.1%"
    assert format_change(-0.031, "V0") == "▼ -3.1%"
    assert format_change(0, "V2") == "▲ +0.0%"
    assert format_change(0.12, MetricFormat.PERCENTAGE) == "▲ +12.0pp"


def test_format_change_unknown_format_uses_percent():
    assert format_change(0.1, None) == "▲ +10.0%"


def test_pct_and_pp_helpers():
    assert format_pct(0.08) == "8.0%"
    assert format_pct(-0.08) == "-8.0%"
    assert format_pct(None) == PLACEHOLDER
    assert format_pp(0.015) == "+1.5pp"
    assert format_pp(-0.015) == "-1.5pp"
    assert format_pp(-0.025, signed=False) == "2.5pp"
    assert format_pp(float("nan")) == PLACEHOLDER


def test_formatting_never_raises_on_junk():
    assert format_value("not a number", "C0") == PLACEHOLDER
    assert format_change(object(), "P4") == PLACEHOLDER
    # ints beyond float range
    assert format_value(10**400, "C0") == PLACEHOLDER
    assert format_change(-10**400, "P4") == PLACEHOLDER


def test_formatting_large_finite_values():
    big = "1" + "0" * 29 + ".0"
    assert format_value(1e27, "P4") == big + "%"
    assert format_change(1e27, "C0") == "▲ +" + big + "%"
    assert format_pp(-1e27) == "-" + big + "pp"
    assert format_value(1.7e308, "P4").endswith("%")
    assert format_value(-1.7e308, "C2").startswith("$-")
