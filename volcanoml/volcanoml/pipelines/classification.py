"""
Bootstrap evaluation of a random forest volcano-type classifier.

Features
--------
- Four-class target derived from the free-text primary volcano type
- Per-resample preprocessing fit (rare-level pooling, dummies, zero-variance
  filter, standardization) so no statistic leaks from the holdout
- Random forest (or any fit/predict/predict_proba model) per bootstrap resample,
  evaluated on that resample's out-of-bag rows
- Parallel map over resamples with joblib
- Accuracy, per-class PPV, one-vs-rest ROC AUC, confusion matrices
- Variable importance from one refit on the full table
- Per-volcano correctness joined back to latitude / longitude
"""

from __future__ import annotations

# ======================= Standard Library & Third-Party =======================

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.ensemble import RandomForestClassifier
from sklearn.inspection import permutation_importance

from ..exceptions import ConfigurationError, DegenerateFitError
from ..features import (
    CATEGORICAL_PREDICTORS,
    ID_COLUMN,
    MODELING_COLUMNS,
    NUMERIC_PREDICTORS,
    TARGET,
    select_modeling_table,
)
from ..io_df import DATA_URL, ensure_pandas, load_volcanoes
from ..labels import CLASSES
from .metrics import MetricsAggregator, prediction_columns, proba_column
from .preprocessing import FittedPipeline, PreprocessingPipeline
from .resampling import Resample, ResampleSet, bootstraps

# ================================ Logging =====================================

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
logger.setLevel(logging.INFO)


# ========================= Public Configuration ===============================

@dataclass(frozen=True)
class Config:
    # Resampling
    N_RESAMPLES: int = 25
    SEED: int = 42

    # Preprocessing
    OTHER_THRESHOLD: float = 0.05

    # Model
    N_TREES: int = 1000
    FOREST_N_JOBS: int = 1

    # Parallel resamples (joblib n_jobs semantics; -1 uses all cores)
    N_JOBS: int = 1

    # Importance: "permutation" or "impurity"
    IMPORTANCE: str = "permutation"
    PERMUTATION_REPEATS: int = 5


DEFAULT_CONFIG = Config()

_IMPORTANCE_KINDS = ("permutation", "impurity")


def _validate(cfg: Config) -> None:
    if cfg.N_RESAMPLES < 1:
        raise ConfigurationError("N_RESAMPLES must be >= 1", config_key="N_RESAMPLES")
    if cfg.N_TREES < 1:
        raise ConfigurationError("N_TREES must be >= 1", config_key="N_TREES")
    if cfg.IMPORTANCE not in _IMPORTANCE_KINDS:
        raise ConfigurationError(
            f"IMPORTANCE must be one of {_IMPORTANCE_KINDS}, got {cfg.IMPORTANCE!r}", config_key="IMPORTANCE"
        )


ModelFactory = Callable[[int], Any]


def make_forest(cfg: Config = DEFAULT_CONFIG) -> ModelFactory:
    """Default model factory: seed -> unfitted RandomForestClassifier."""

    def factory(seed: int) -> RandomForestClassifier:
        return RandomForestClassifier(
            n_estimators=cfg.N_TREES,
            n_jobs=cfg.FOREST_N_JOBS,
            random_state=seed,
        )

    return factory


# ==============================================================================
#                                  Trainer
# ==============================================================================

class ClassifierTrainer:
    """
    Fits preprocessing + model on one set of rows and scores another.

    The model only needs `fit(X, y)`, `predict(X)`, `predict_proba(X)` and
    `classes_`. Pipeline and model state never outlive a single resample.
    """

    def __init__(self, cfg: Config = DEFAULT_CONFIG, model_factory: Optional[ModelFactory] = None):
        _validate(cfg)
        self.cfg = cfg
        self.model_factory = model_factory or make_forest(cfg)

    def preprocessor(self) -> PreprocessingPipeline:
        return PreprocessingPipeline(
            categorical=CATEGORICAL_PREDICTORS,
            numeric=NUMERIC_PREDICTORS,
            id_column=ID_COLUMN,
            other_threshold=self.cfg.OTHER_THRESHOLD,
        )

    def fit(self, rows: pd.DataFrame, seed: Optional[int] = None) -> Tuple[FittedPipeline, Any]:
        fitted = self.preprocessor().fit(rows)
        X = fitted.features(rows)
        y = rows[TARGET].astype(str).to_numpy()
        model = self.model_factory(self.cfg.SEED if seed is None else seed)
        model.fit(X, y)
        return fitted, model

    @staticmethod
    def _proba_frame(model: Any, X: pd.DataFrame) -> pd.DataFrame:
        """predict_proba aligned to CLASSES; classes unseen in training score 0."""
        proba = model.predict_proba(X)
        out = pd.DataFrame(0.0, index=X.index, columns=[proba_column(c) for c in CLASSES])
        for j, cls in enumerate(model.classes_):
            out[proba_column(str(cls))] = proba[:, j]
        return out

    def fit_resample(self, table: pd.DataFrame, resample: Resample, seed: Optional[int] = None) -> pd.DataFrame:
        holdout = resample.assessment(table)
        if holdout.empty:
            logger.warning("%s: no out-of-bag rows, nothing to score", resample.id)
            return pd.DataFrame(columns=prediction_columns())

        try:
            fitted, model = self.fit(resample.analysis(table), seed=seed)
        except DegenerateFitError as e:
            logger.warning("%s: %s, resample skipped", resample.id, e)
            return pd.DataFrame(columns=prediction_columns())
        X = fitted.features(holdout)
        predicted = np.asarray(model.predict(X)).astype(str)
        truth = holdout[TARGET].astype(str).to_numpy()

        out = pd.DataFrame({
            "resample_id": resample.id,
            "row": resample.out_of_bag,
            "volcano_number": holdout[ID_COLUMN].to_numpy(),
            "truth": truth,
            "predicted": predicted,
        })
        proba = self._proba_frame(model, X).reset_index(drop=True)
        out = pd.concat([out, proba], axis=1)
        out["correct"] = out["predicted"] == out["truth"]
        logger.info("%s: scored %d out-of-bag rows, accuracy %.3f",
                    resample.id, len(out), float(out["correct"].mean()))
        return out[prediction_columns()]

    def fit_resamples(self, table: pd.DataFrame, resamples: ResampleSet) -> pd.DataFrame:
        """Fit every resample (in parallel when N_JOBS != 1) and stack the predictions."""
        jobs = (
            delayed(self.fit_resample)(table, r, self.cfg.SEED + k)
            for k, r in enumerate(resamples)
        )
        parts = Parallel(n_jobs=self.cfg.N_JOBS)(jobs)
        parts = [p for p in parts if not p.empty]
        if not parts:
            return pd.DataFrame(columns=prediction_columns())
        preds = pd.concat(parts, ignore_index=True)
        preds["truth"] = pd.Categorical(preds["truth"], categories=CLASSES)
        preds["predicted"] = pd.Categorical(preds["predicted"], categories=CLASSES)
        return preds

    def variable_importance(self, table: pd.DataFrame) -> pd.DataFrame:
        """
        Refit on the full table and rank the transformed features by importance.

        Both kinds are training-set importances: permutation scores are taken
        on the same rows the forest was fit on, so features the forest can
        memorise (noise included) rank higher than they would on held-out rows.
        Use the per-resample metrics for generalization performance.
        """
        fitted, model = self.fit(table)
        X = fitted.features(table)
        if self.cfg.IMPORTANCE == "impurity":
            scores = np.asarray(model.feature_importances_, dtype=float)
        else:
            y = table[TARGET].astype(str).to_numpy()
            result = permutation_importance(
                model, X, y,
                n_repeats=self.cfg.PERMUTATION_REPEATS,
                random_state=self.cfg.SEED,
                n_jobs=self.cfg.N_JOBS,
            )
            scores = result.importances_mean
        imp = pd.DataFrame({"feature": list(X.columns), "importance": scores})
        imp = imp.sort_values("importance", ascending=False, kind="mergesort").reset_index(drop=True)
        imp["rank"] = np.arange(1, len(imp) + 1)
        return imp


# ==============================================================================
#                                   Report
# ==============================================================================

@dataclass
class RunReport:
    metrics: pd.DataFrame
    accuracy_by_resample: pd.DataFrame
    precision_by_resample: pd.DataFrame
    roc_auc_by_resample: pd.DataFrame
    confusion_matrix: pd.DataFrame
    resampled_confusion_matrix: pd.DataFrame
    roc_curves: pd.DataFrame
    importance: pd.DataFrame
    spatial_accuracy: pd.DataFrame
    predictions: pd.DataFrame
    info: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready summary; large per-row tables stay out (see artifacts.write_report)."""
        cm = self.confusion_matrix
        return {
            "info": self.info,
            "metrics": self.metrics.to_dict(orient="records"),
            "accuracy_by_resample": self.accuracy_by_resample.to_dict(orient="records"),
            "precision_by_resample": self.precision_by_resample.to_dict(orient="records"),
            "roc_auc_by_resample": self.roc_auc_by_resample.to_dict(orient="records"),
            "confusion_matrix": {
                "labels": [str(c) for c in cm.index],
                "counts": cm.to_numpy().tolist(),
            },
            "resampled_confusion_matrix": self.resampled_confusion_matrix.to_dict(orient="records"),
            "importance": self.importance.to_dict(orient="records"),
        }


# ==============================================================================
#                                   Main API
# ==============================================================================

def _as_modeling_table(df: Any) -> pd.DataFrame:
    pdf = ensure_pandas(df)
    if set(MODELING_COLUMNS).issubset(pdf.columns):
        return pdf[MODELING_COLUMNS].reset_index(drop=True)
    return select_modeling_table(pdf)


def run_classification(
        df: Any,
        *,
        cfg: Config = DEFAULT_CONFIG,
        model_factory: Optional[ModelFactory] = None,
        resamples: Optional[ResampleSet] = None,
        importance: bool = True,
) -> RunReport:
    """
    Evaluate the volcano-type classifier with bootstrap resampling.

    Parameters
    ----------
    df : Any
        Raw volcano records or a prepared modeling table; pandas, polars or
        anything exposing .to_pandas().
    cfg : Config
        Configuration knobs (defaults provided).
    model_factory : Optional[Callable[[int], model]]
        Builds an unfitted model from a seed; defaults to a random forest.
    resamples : Optional[ResampleSet]
        Pre-drawn resamples; drawn from cfg.N_RESAMPLES / cfg.SEED otherwise.
    importance : bool
        Whether to run the full-table importance refit.
    """
    table = _as_modeling_table(df)
    trainer = ClassifierTrainer(cfg, model_factory=model_factory)

    if resamples is None:
        resamples = bootstraps(table, times=cfg.N_RESAMPLES, seed=cfg.SEED)
    elif resamples.n_rows != len(table):
        raise ConfigurationError(
            f"resamples were drawn for {resamples.n_rows} rows, table has {len(table)}"
        )

    class_counts = {str(k): int(v) for k, v in table[TARGET].value_counts(sort=False).items()}
    info: Dict[str, Any] = {
        "rows": int(len(table)),
        "class_counts": class_counts,
        "resamples": len(resamples),
        "config": asdict(cfg),
    }
    logger.info("Modeling table: %d rows, classes %s", len(table), class_counts)

    predictions = trainer.fit_resamples(table, resamples)
    agg = MetricsAggregator(predictions)

    if importance:
        imp = trainer.variable_importance(table)
    else:
        imp = pd.DataFrame(columns=["feature", "importance", "rank"])

    report = RunReport(
        metrics=agg.summary(),
        accuracy_by_resample=agg.accuracy_by_resample(),
        precision_by_resample=agg.precision_by_resample(),
        roc_auc_by_resample=agg.roc_auc_by_resample(),
        confusion_matrix=agg.confusion_matrix(),
        resampled_confusion_matrix=agg.resampled_confusion_matrix(),
        roc_curves=agg.roc_curves(),
        importance=imp,
        spatial_accuracy=agg.spatial_accuracy(table),
        predictions=predictions,
        info=info,
    )
    for rec in report.metrics.to_dict(orient="records"):
        logger.info("%s: mean %.3f over %d resamples", rec["metric"], rec["mean"], rec["n"])
    return report


def run_volcano_analysis(source: str = DATA_URL, *, cfg: Config = DEFAULT_CONFIG, **kwargs) -> RunReport:
    """Load the volcano CSV from a URL or path and run the full evaluation."""
    raw = load_volcanoes(source)
    report = run_classification(raw, cfg=cfg, **kwargs)
    report.info["source"] = str(source)
    return report
