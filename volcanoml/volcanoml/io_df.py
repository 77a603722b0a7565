import io
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

import pandas as pd
import polars as pl

from .exceptions import DataLoadError, SchemaError
from .io_http import get_bytes, is_url

DATA_URL = (
    "https://raw.githubusercontent.com/rfordatascience/tidytuesday/master/"
    "data/2020/2020-05-12/volcano.csv"
)

# Columns the volcano analysis reads; everything else in the file is ignored.
RAW_COLUMNS: List[str] = [
    "primary_volcano_type",
    "volcano_number",
    "latitude",
    "longitude",
    "elevation",
    "tectonic_settings",
    "major_rock_1",
]

log = logging.getLogger(__name__)


def load_tabular(file_bytes: bytes, filename: str):
    name = filename.lower()
    if name.endswith((".xlsx", ".xls")):
        pdf = pd.read_excel(io.BytesIO(file_bytes))
        return pl.from_pandas(pdf)
    # CSV, and the fallback for unknown extensions. Full-file inference keeps
    # mixed columns (e.g. years with "Unknown") as strings instead of failing.
    return pl.read_csv(io.BytesIO(file_bytes), infer_schema_length=None, null_values=["NA"])


def ensure_pandas(df) -> pd.DataFrame:
    """
    Convert a pandas or polars frame (or anything exposing .to_pandas())
    into a plain pandas.DataFrame copy.
    """
    if isinstance(df, pd.DataFrame):
        return df.copy()
    if isinstance(df, pl.LazyFrame):
        df = df.collect()
    if isinstance(df, pl.DataFrame):
        return df.to_pandas(use_pyarrow_extension_array=False)
    if hasattr(df, "to_pandas"):
        return df.to_pandas()
    raise TypeError("`df` must be a pandas.DataFrame or expose .to_pandas().")


# ---- version-agnostic dtype classifier ----
_NUMERIC_PREFIXES = ("Int", "UInt", "Float", "Decimal")
_DATETIME_TOKENS = ("Datetime", "Date", "Time", "Duration")


def _role_from_dtype(dtype: pl.DataType) -> str:
    s = str(dtype)
    if s.startswith(_NUMERIC_PREFIXES):
        return "numeric"
    if any(tok in s for tok in _DATETIME_TOKENS):
        return "datetime"
    return "categorical"


def quick_profile(df) -> Dict[str, Any]:
    if isinstance(df, pd.DataFrame):
        df = pl.from_pandas(df)
    rows, cols = df.height, df.width
    schema = []
    for c in df.columns:
        s = df[c]
        schema.append({
            "name": c,
            "dtype": str(s.dtype),
            "role": _role_from_dtype(s.dtype),
            "missing_rate": float(s.null_count()) / max(1, rows),
            "nunique": int(s.n_unique()),
        })
    return {"rows": rows, "cols": cols, "schema": schema}


def check_columns(columns: Iterable[str], required: Iterable[str] = RAW_COLUMNS) -> None:
    """Raise SchemaError for the first required column not in `columns`."""
    present = list(columns)
    for col in required:
        if col not in present:
            raise SchemaError(col, available=present)


def read_source(source: str) -> bytes:
    if is_url(source):
        return get_bytes(source)
    path = Path(source)
    try:
        return path.read_bytes()
    except OSError as e:
        raise DataLoadError(str(source), str(e)) from e


def load_volcanoes(source: str = DATA_URL) -> pd.DataFrame:
    """
    Load raw volcano records from a URL or local path.

    Unused columns are kept but ignored downstream; a missing required column
    raises SchemaError, an unreadable or unparsable source DataLoadError.
    """
    raw = read_source(source)
    try:
        df = load_tabular(raw, str(source))
    except Exception as e:
        raise DataLoadError(str(source), f"could not parse: {e}") from e
    check_columns(df.columns)
    log.info("Loaded %d volcano records (%d columns) from %s", df.height, df.width, source)
    return ensure_pandas(df)
