from typing import Any, List, Tuple

import pandas as pd

CLASSES: List[str] = ["Stratovolcano", "Shield", "Caldera", "Other"]
OTHER = "Other"

# Evaluated in order; the first substring found in the free-text type wins.
_RULES: Tuple[Tuple[str, str], ...] = (
    ("Stratovolcano", "Stratovolcano"),
    ("Shield", "Shield"),
    ("Caldera", "Caldera"),
)


def derive_volcano_type(primary_type: Any) -> str:
    """Map a free-text primary volcano type onto one of CLASSES."""
    if not isinstance(primary_type, str):
        return OTHER
    for needle, label in _RULES:
        if needle in primary_type:
            return label
    return OTHER


def derive_volcano_types(primary_types: pd.Series) -> pd.Series:
    labels = primary_types.map(derive_volcano_type)
    return pd.Series(pd.Categorical(labels, categories=CLASSES), index=primary_types.index,
                     name="volcano_type")
