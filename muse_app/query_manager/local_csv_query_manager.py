import io
import logging
import os
import re
import pandas as pd
from typing import Dict, List, Optional
from .base_query_manager import BaseQueryManager
from muse_app.core.exceptions import DataFormatError
from muse_app.intelligence_engine.data_structures import MetricRecord, clean_number

logger = logging.getLogger(__name__)

NUMERIC_COLUMNS = [
    "YTD", "LYTD", "Target", "R12M", "LMR12M", "LYR12M",
    "vs_Target", "vs_LYTD", "vs_LMR12M", "vs_LYR12M",
]
MONTH_BUCKET_PATTERN = re.compile(r"^M\d{2}_")
NULL_TOKENS = {"", "null"}

IDENTITY_COLUMNS = {"Key": "metric_key", "Market": "market", "Month": "month"}

# header -> MetricRecord field
FIELD_COLUMNS = {
    "YTD": "current_period_value",
    "Target": "target_value",
    "LYTD": "prior_year_value",
    "R12M": "rolling_12mo_value",
    "LMR12M": "prior_month_rolling_12mo_value",
    "LYR12M": "prior_year_rolling_12mo_value",
    "vs_Target": "variance_vs_target",
    "vs_LYTD": "variance_vs_prior_year",
    "vs_LMR12M": "variance_vs_rolling_12mo",
}


def is_numeric_column(header: str) -> bool:
    return header in NUMERIC_COLUMNS or bool(MONTH_BUCKET_PATTERN.match(header))


def parse_numeric(token: Optional[str]) -> Optional[float]:
    """
    Numeric column cell -> float or None. Null tokens, unparseable text and
    non-finite numbers all become None.
    """
    if token is None:
        return None
    text = str(token).strip()
    if text.lower() in NULL_TOKENS:
        return None
    return clean_number(text)


class LocalCSVQueryManager(BaseQueryManager):
    """
    Reads local delimited files of metric rows, one row per (Key, Market, Month).
    Every column is read as text first; numeric columns (the allowlist plus
    month-bucket columns such as 'M01_2024') are then converted to float-or-None.
    """

    def __init__(self, data_folder: str = ".", sep: str = ","):
        """
        :param data_folder: directory the source file names are resolved against
        :param sep: field delimiter
        """
        self.data_folder = data_folder
        self.sep = sep

    def fetch_records(self, source: str) -> List[MetricRecord]:
        df = self._read_csv(source)
        return self.frame_to_records(df)

    def parse_records_text(self, text: str) -> List[MetricRecord]:
        """Parse already-loaded delimited text, e.g. an uploaded file."""
        df = self._read_frame(io.StringIO(text))
        return self.frame_to_records(df)

    def frame_to_records(self, df: pd.DataFrame) -> List[MetricRecord]:
        missing = [c for c in IDENTITY_COLUMNS if c not in df.columns]
        if missing:
            raise DataFormatError(f"Missing required columns: {missing}")

        bucket_cols = [c for c in df.columns if MONTH_BUCKET_PATTERN.match(c)]
        field_cols = [c for c in FIELD_COLUMNS if c in df.columns]

        records = []
        seen = set()
        for raw in df.to_dict(orient="records"):
            kwargs = {f: str(raw[c]).strip() for c, f in IDENTITY_COLUMNS.items()}
            for col in field_cols:
                kwargs[FIELD_COLUMNS[col]] = parse_numeric(raw[col])
            kwargs["monthly_values"] = self._bucket_values(raw, bucket_cols)

            record = MetricRecord(**kwargs)
            if record.key in seen:
                logger.warning("Duplicate row for %s/%s/%s", *record.key)
            seen.add(record.key)
            records.append(record)

        logger.debug("Parsed %d metric records", len(records))
        return records

    def _bucket_values(self, raw: Dict[str, str], bucket_cols: List[str]) -> Dict[str, Optional[float]]:
        return {c: parse_numeric(raw[c]) for c in bucket_cols}

    def _read_csv(self, source: str) -> pd.DataFrame:
        csv_path = source if os.path.isabs(source) else os.path.join(self.data_folder, source)
        if not os.path.exists(csv_path):
            raise FileNotFoundError(f"No CSV found at {csv_path}")
        return self._read_frame(csv_path)

    def _read_frame(self, path_or_buffer) -> pd.DataFrame:
        try:
            df = pd.read_csv(
                path_or_buffer,
                sep=self.sep,
                dtype=str,
                keep_default_na=False,
            )
        except pd.errors.EmptyDataError:
            raise DataFormatError("Input has no header row.") from None
        except pd.errors.ParserError as e:
            raise DataFormatError(f"Could not parse delimited input: {e}") from e
        df.columns = [str(c).strip() for c in df.columns]
        return df
