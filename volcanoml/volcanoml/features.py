import logging
from typing import List

import pandas as pd

from .io_df import RAW_COLUMNS, check_columns, ensure_pandas
from .labels import derive_volcano_types

TARGET = "volcano_type"
ID_COLUMN = "volcano_number"
NUMERIC_PREDICTORS: List[str] = ["latitude", "longitude", "elevation"]
CATEGORICAL_PREDICTORS: List[str] = ["tectonic_settings", "major_rock_1"]
MODELING_COLUMNS: List[str] = [TARGET, ID_COLUMN, *NUMERIC_PREDICTORS, *CATEGORICAL_PREDICTORS]

MISSING_LEVEL = "unknown"

log = logging.getLogger(__name__)


def select_modeling_table(raw) -> pd.DataFrame:
    """
    Project raw volcano records onto the modeling table.

    - derives `volcano_type` from `primary_volcano_type`
    - keeps the id, numeric and categorical predictors, in a fixed order
    - drops rows with a missing numeric predictor
    - recodes missing categorical values to the level "unknown"

    The result has a fresh RangeIndex, so index labels equal row positions.
    """
    pdf = ensure_pandas(raw)
    check_columns(pdf.columns, RAW_COLUMNS)

    table = pd.DataFrame({TARGET: derive_volcano_types(pdf["primary_volcano_type"])})
    table[ID_COLUMN] = pdf[ID_COLUMN]
    for c in NUMERIC_PREDICTORS:
        table[c] = pd.to_numeric(pdf[c], errors="coerce").astype(float)
    for c in CATEGORICAL_PREDICTORS:
        table[c] = pdf[c].astype("object").where(pdf[c].notna(), MISSING_LEVEL).astype(str)

    missing = table[NUMERIC_PREDICTORS].isna().any(axis=1)
    if missing.any():
        log.warning("Dropping %d of %d rows with missing numeric predictors", int(missing.sum()), len(table))
        table = table.loc[~missing]

    return table[MODELING_COLUMNS].reset_index(drop=True)
