"""
Two-phase preprocessing for the volcano modeling table.

`PreprocessingPipeline.fit` learns everything from one data set (one
resample's in-bag rows) and returns a `FittedPipeline`; `FittedPipeline.transform`
applies that frozen state to any frame and never re-estimates anything.

Steps
-----
1. Rare-level collapsing: categorical levels below `other_threshold` (relative
   frequency) become "other"; so do levels first seen at transform time.
2. One-hot encoding with the first level of each predictor as reference.
3. Zero-variance filter on the encoded columns.
4. Standardization with fit-time mean and (population) standard deviation.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.compose import ColumnTransformer
from sklearn.feature_selection import VarianceThreshold
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, StandardScaler
from sklearn.utils.validation import check_is_fitted

from ..exceptions import ConfigurationError, DegenerateFitError
from ..features import CATEGORICAL_PREDICTORS, ID_COLUMN, NUMERIC_PREDICTORS

logger = logging.getLogger(__name__)

OTHER_LEVEL = "other"
DEFAULT_OTHER_THRESHOLD = 0.05


class RareLevelCollapser(BaseEstimator, TransformerMixin):
    """Pool infrequent categorical levels into a single `other_level`."""

    def __init__(self, threshold: float = DEFAULT_OTHER_THRESHOLD, other_level: str = OTHER_LEVEL):
        self.threshold = threshold
        self.other_level = other_level

    def fit(self, X, y=None):
        X = self._as_frame(X)
        self.feature_names_in_ = np.asarray(X.columns, dtype=object)
        self.n_features_in_ = X.shape[1]
        self.levels_: Dict[str, Tuple[str, ...]] = {}
        for c in X.columns:
            freq = X[c].astype(str).value_counts(normalize=True)
            self.levels_[c] = tuple(sorted(freq.index[freq >= self.threshold]))
        return self

    def transform(self, X):
        check_is_fitted(self, "levels_")
        X = self._as_frame(X, columns=self.feature_names_in_)
        out = pd.DataFrame(index=X.index)
        for c in self.feature_names_in_:
            s = X[c].astype(str)
            out[c] = s.where(s.isin(self.levels_[c]), self.other_level)
        return out

    def get_feature_names_out(self, input_features=None):
        check_is_fitted(self, "levels_")
        return np.asarray(self.feature_names_in_, dtype=object)

    @staticmethod
    def _as_frame(X, columns=None) -> pd.DataFrame:
        if isinstance(X, pd.DataFrame):
            return X
        return pd.DataFrame(np.asarray(X, dtype=object), columns=columns)


@dataclass(frozen=True)
class FittedPipeline:
    """
    Preprocessing state learned from exactly one data set.

    Attributes cannot be reassigned. The mappings and `_pipeline` are the
    fitted objects themselves, not copies; treat them as read-only.
    """

    id_column: Optional[str]
    categorical: Tuple[str, ...]
    numeric: Tuple[str, ...]
    retained_levels: Dict[str, Tuple[str, ...]]
    reference_levels: Dict[str, str]
    vocabulary: Dict[str, Tuple[str, ...]]
    dropped_columns: Tuple[str, ...]
    feature_names: Tuple[str, ...]
    means: Dict[str, float]
    scales: Dict[str, float]
    _pipeline: Pipeline = field(repr=False, compare=False)

    def features(self, df: pd.DataFrame) -> pd.DataFrame:
        """Model input: the standardized feature matrix, indexed like `df`."""
        # Bootstrap rows repeat index labels; sklearn sees positions only.
        X = df[list(self.categorical) + list(self.numeric)].reset_index(drop=True)
        with warnings.catch_warnings():
            # Levels unseen at fit time without an "other" dummy encode as all zeros.
            warnings.filterwarnings("ignore", message="Found unknown categories", category=UserWarning)
            out = self._pipeline.transform(X)
        out.index = df.index
        return out

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Feature matrix with the id column passed through in front."""
        out = self.features(df)
        if self.id_column and self.id_column in df.columns:
            out.insert(0, self.id_column, df[self.id_column].to_numpy())
        return out


class PreprocessingPipeline:
    def __init__(
            self,
            categorical: Sequence[str] = tuple(CATEGORICAL_PREDICTORS),
            numeric: Sequence[str] = tuple(NUMERIC_PREDICTORS),
            id_column: Optional[str] = ID_COLUMN,
            other_threshold: float = DEFAULT_OTHER_THRESHOLD,
    ):
        if not 0.0 <= other_threshold < 1.0:
            raise ConfigurationError(
                f"other_threshold must be in [0, 1), got {other_threshold!r}", config_key="OTHER_THRESHOLD"
            )
        self.categorical = tuple(categorical)
        self.numeric = tuple(numeric)
        self.id_column = id_column
        self.other_threshold = other_threshold

    def build(self) -> Pipeline:
        transformers: List[Tuple[str, object, List[str]]] = []
        if self.numeric:
            transformers.append(("num", "passthrough", list(self.numeric)))
        if self.categorical:
            cat_pipe = Pipeline(steps=[
                ("other", RareLevelCollapser(threshold=self.other_threshold)),
                ("dummy", OneHotEncoder(drop="first", handle_unknown="ignore", sparse_output=False,
                                        dtype=np.float64)),
            ])
            transformers.append(("cat", cat_pipe, list(self.categorical)))

        encode = ColumnTransformer(
            transformers=transformers,
            remainder="drop",
            verbose_feature_names_out=False,
        )
        pipe = Pipeline(steps=[
            ("encode", encode),
            ("zv", VarianceThreshold(threshold=0.0)),
            ("normalize", StandardScaler()),
        ])
        return pipe.set_output(transform="pandas")

    def fit(self, table: pd.DataFrame) -> FittedPipeline:
        X = table[list(self.categorical) + list(self.numeric)].reset_index(drop=True)
        pipe = self.build()
        encoded = pipe.named_steps["encode"].fit_transform(X)
        if not (encoded.var(ddof=0) > 0).any():
            raise DegenerateFitError(len(X))
        # Slicing shares the step estimators, so this fits `pipe` in place.
        pipe[1:].fit(encoded)
        return self._snapshot(pipe)

    def _snapshot(self, pipe: Pipeline) -> FittedPipeline:
        encode: ColumnTransformer = pipe.named_steps["encode"]
        zv: VarianceThreshold = pipe.named_steps["zv"]
        scaler: StandardScaler = pipe.named_steps["normalize"]

        retained: Dict[str, Tuple[str, ...]] = {}
        reference: Dict[str, str] = {}
        vocabulary: Dict[str, Tuple[str, ...]] = {}
        if self.categorical:
            cat_pipe: Pipeline = encode.named_transformers_["cat"]
            retained = dict(cat_pipe.named_steps["other"].levels_)
            ohe: OneHotEncoder = cat_pipe.named_steps["dummy"]
            for col, cats, drop_idx in zip(self.categorical, ohe.categories_, ohe.drop_idx_):
                levels = [str(v) for v in cats]
                reference[col] = levels[drop_idx]
                vocabulary[col] = tuple(v for i, v in enumerate(levels) if i != drop_idx)

        encoded = np.asarray(encode.get_feature_names_out(), dtype=object)
        support = zv.get_support()
        dropped = tuple(str(c) for c in encoded[~support])
        if dropped:
            logger.debug("Dropped zero-variance columns: %s", list(dropped))

        names = tuple(str(c) for c in scaler.feature_names_in_)
        return FittedPipeline(
            id_column=self.id_column,
            categorical=self.categorical,
            numeric=self.numeric,
            retained_levels=retained,
            reference_levels=reference,
            vocabulary=vocabulary,
            dropped_columns=dropped,
            feature_names=names,
            means={n: float(m) for n, m in zip(names, scaler.mean_)},
            scales={n: float(s) for n, s in zip(names, scaler.scale_)},
            _pipeline=pipe,
        )
