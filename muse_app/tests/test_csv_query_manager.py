import pytest
from muse_app.core.exceptions import DataFormatError
from muse_app.intelligence_engine.primitives.records import latest_month, lookup
from muse_app.query_manager.local_csv_query_manager import (
    LocalCSVQueryManager,
    is_numeric_column,
    parse_numeric,
)

CSV_TEXT = """Key,Market,Month,Format,YTD,LYTD,Target,R12M,LMR12M,LYR12M,vs_Target,vs_LYTD,vs_LMR12M,vs_LYR12M,M01_2024,M02_2024,Note
SLS_TTL,Kuwait,2024-06,C0,1500000,1400000,1630000,,,,-0.08,0.071,null,,120000,abc,
SLS_TTL,All Markets,2024-06,C0,9000000,8500000,9100000,,,,-0.011,0.059,0.01,,,,flat
PCT_XBP,Kuwait,2024-05,P4,0.28,0.26,,,,,,0.02,,,,,
"""


def test_parse_records_text():
    records = LocalCSVQueryManager().parse_records_text(CSV_TEXT)
    assert len(records) == 3

    kw = lookup(records, "SLS_TTL", "Kuwait", "2024-06")
    assert kw.current_period_value == 1500000.0
    assert kw.target_value == 1630000.0
    assert kw.prior_year_value == 1400000.0
    assert kw.variance_vs_target == pytest.approx(-0.08)
    assert kw.variance_vs_prior_year == pytest.approx(0.071)
    # 'null' and empty cells become None, never 0 or ""
    assert kw.variance_vs_rolling_12mo is None
    assert kw.rolling_12mo_value is None
    # month buckets are numeric; unparseable text becomes None
    assert kw.monthly_values == {"M01_2024": 120000.0, "M02_2024": None}


def test_format_column_is_not_carried_on_records():
    records = LocalCSVQueryManager().parse_records_text(CSV_TEXT)
    kw = lookup(records, "SLS_TTL", "Kuwait", "2024-06")
    assert "Format" not in kw.to_dict()
    assert "format_code" not in kw.to_dict()


def test_month_stays_text():
    records = LocalCSVQueryManager().parse_records_text(CSV_TEXT)
    assert {r.month for r in records} == {"2024-06", "2024-05"}
    assert latest_month(records) == "2024-06"


def test_missing_identity_column():
    with pytest.raises(DataFormatError):
        LocalCSVQueryManager().parse_records_text("Market,Month,YTD\nKuwait,2024-06,1\n")


def test_empty_input():
    with pytest.raises(DataFormatError):
        LocalCSVQueryManager().parse_records_text("")


def test_duplicate_rows_are_kept_and_logged(caplog):
    text = "Key,Market,Month,vs_Target\nSLS_TTL,Kuwait,2024-06,-0.08\nSLS_TTL,Kuwait,2024-06,-0.09\n"
    records = LocalCSVQueryManager().parse_records_text(text)
    assert len(records) == 2
    assert "Duplicate row for SLS_TTL/Kuwait/2024-06" in caplog.text


def test_fetch_records_from_folder(tmp_path):
    (tmp_path / "muse.csv").write_text(CSV_TEXT, encoding="utf-8")
    qm = LocalCSVQueryManager(data_folder=str(tmp_path))
    records = qm.fetch_records("muse.csv")
    assert [r.metric_key for r in records] == ["SLS_TTL", "SLS_TTL", "PCT_XBP"]

    with pytest.raises(FileNotFoundError):
        qm.fetch_records("missing.csv")


def test_numeric_column_rules():
    assert is_numeric_column("YTD")
    assert is_numeric_column("M12_2023")
    assert not is_numeric_column("Market")
    assert not is_numeric_column("Format")
    assert parse_numeric("  0.5 ") == 0.5
    assert parse_numeric("NULL") is None
    assert parse_numeric("nan") is None
    assert parse_numeric(None) is None
