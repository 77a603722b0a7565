"""
Resample-aware evaluation metrics for multiclass predictions.

Every function tolerates resamples whose holdout misses one or more classes:
the affected metric becomes NaN instead of raising, and aggregate tables skip
NaN values when averaging.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import confusion_matrix, precision_score, roc_auc_score, roc_curve

from ..labels import CLASSES

PROBA_PREFIX = "proba_"


def proba_column(cls: str) -> str:
    return f"{PROBA_PREFIX}{cls}"


def prediction_columns(classes: Sequence[str] = CLASSES) -> List[str]:
    return ["resample_id", "row", "volcano_number", "truth", "predicted",
            *[proba_column(c) for c in classes], "correct"]


def accuracy_from_confusion(cm: pd.DataFrame) -> float:
    values = np.asarray(cm, dtype=float)
    total = values.sum()
    return float(np.trace(values) / total) if total else float("nan")


def _ovr_auc(truth: np.ndarray, scores: pd.DataFrame, classes: Sequence[str]) -> Tuple[float, Dict[str, float]]:
    """Macro one-vs-rest AUC over the classes that have both positives and negatives."""
    per_class: Dict[str, float] = {}
    if len(np.unique(truth)) < 2:
        return float("nan"), per_class
    for c in classes:
        y = truth == c
        if y.all() or not y.any():
            continue
        per_class[c] = float(roc_auc_score(y, scores[proba_column(c)].to_numpy()))
    if not per_class:
        return float("nan"), per_class
    return float(np.mean(list(per_class.values()))), per_class


def _std_err(values: pd.Series) -> float:
    v = values.dropna()
    if len(v) < 2:
        return float("nan")
    return float(v.std(ddof=1) / np.sqrt(len(v)))


class MetricsAggregator:
    """Metrics over a prediction table with one row per (resample, out-of-bag row)."""

    def __init__(self, predictions: pd.DataFrame, classes: Sequence[str] = CLASSES):
        self.predictions = predictions
        self.classes = list(classes)

    # ------------------------------------------------------------------ groups

    @property
    def resample_ids(self) -> List[str]:
        return [str(r) for r in pd.unique(self.predictions["resample_id"])]

    def _groups(self) -> Iterator[Tuple[str, pd.DataFrame]]:
        for rid, g in self.predictions.groupby("resample_id", sort=False):
            yield str(rid), g

    @staticmethod
    def _labels(g: pd.DataFrame, col: str) -> np.ndarray:
        return g[col].astype(str).to_numpy()

    # ---------------------------------------------------------------- accuracy

    def accuracy(self) -> float:
        if self.predictions.empty:
            return float("nan")
        return float(self.predictions["correct"].astype(bool).mean())

    def accuracy_by_resample(self) -> pd.DataFrame:
        rows = []
        for rid, g in self._groups():
            rows.append({"resample_id": rid, "n": int(len(g)),
                         "accuracy": float(g["correct"].astype(bool).mean()) if len(g) else float("nan")})
        return pd.DataFrame(rows, columns=["resample_id", "n", "accuracy"])

    # --------------------------------------------------------------- precision

    def precision_by_resample(self) -> pd.DataFrame:
        """Positive predictive value per class and resample; NaN without predicted positives."""
        rows = []
        for rid, g in self._groups():
            ppv = precision_score(
                self._labels(g, "truth"), self._labels(g, "predicted"),
                labels=self.classes, average=None, zero_division=np.nan,
            )
            for cls, value in zip(self.classes, ppv):
                rows.append({"resample_id": rid, "class": cls, "ppv": float(value)})
        return pd.DataFrame(rows, columns=["resample_id", "class", "ppv"])

    # ----------------------------------------------------------------- roc auc

    def roc_auc_by_resample(self) -> pd.DataFrame:
        rows = []
        for rid, g in self._groups():
            auc, per_class = _ovr_auc(self._labels(g, "truth"), g, self.classes)
            row = {"resample_id": rid, "roc_auc": auc}
            for c in self.classes:
                row[f"roc_auc_{c}"] = per_class.get(c, float("nan"))
            rows.append(row)
        return pd.DataFrame(rows, columns=["resample_id", "roc_auc", *[f"roc_auc_{c}" for c in self.classes]])

    def roc_curves(self) -> pd.DataFrame:
        """One-vs-rest ROC points per resample and class, for plotting."""
        frames = []
        for rid, g in self._groups():
            truth = self._labels(g, "truth")
            for c in self.classes:
                y = truth == c
                if y.all() or not y.any():
                    continue
                fpr, tpr, thr = roc_curve(y, g[proba_column(c)].to_numpy())
                frames.append(pd.DataFrame({
                    "resample_id": rid, "class": c,
                    "fpr": fpr, "tpr": tpr, "threshold": thr,
                }))
        if not frames:
            return pd.DataFrame(columns=["resample_id", "class", "fpr", "tpr", "threshold"])
        return pd.concat(frames, ignore_index=True)

    # -------------------------------------------------------- confusion matrix

    def confusion_matrix(self, resample_id: Optional[str] = None) -> pd.DataFrame:
        """Truth (rows) x predicted (columns) counts, over all resamples or one."""
        g = self.predictions
        if resample_id is not None:
            g = g[g["resample_id"] == resample_id]
        n = len(self.classes)
        if g.empty:
            values = np.zeros((n, n), dtype=int)
        else:
            values = confusion_matrix(self._labels(g, "truth"), self._labels(g, "predicted"), labels=self.classes)
        return pd.DataFrame(
            values,
            index=pd.Index(self.classes, name="truth"),
            columns=pd.Index(self.classes, name="predicted"),
        )

    def resampled_confusion_matrix(self) -> pd.DataFrame:
        """Mean cell count per resample, in long form (truth, predicted, freq)."""
        ids = self.resample_ids
        total = np.zeros((len(self.classes), len(self.classes)), dtype=float)
        for rid in ids:
            total += self.confusion_matrix(rid).to_numpy()
        mean = total / len(ids) if ids else total * np.nan
        cm = pd.DataFrame(mean, index=pd.Index(self.classes, name="truth"),
                          columns=pd.Index(self.classes, name="predicted"))
        return cm.stack().rename("freq").reset_index()

    # ----------------------------------------------------------------- summary

    def summary(self) -> pd.DataFrame:
        """Overall table: mean, non-NaN resample count and standard error per metric."""
        acc = self.accuracy_by_resample()["accuracy"]
        auc = self.roc_auc_by_resample()["roc_auc"]
        rows = []
        for metric, estimator, values in (("accuracy", "multiclass", acc), ("roc_auc", "ovr_macro", auc)):
            v = values.dropna()
            rows.append({
                "metric": metric,
                "estimator": estimator,
                "mean": float(v.mean()) if len(v) else float("nan"),
                "n": int(len(v)),
                "std_err": _std_err(values),
            })
        return pd.DataFrame(rows, columns=["metric", "estimator", "mean", "n", "std_err"])

    # ----------------------------------------------------------------- spatial

    def spatial_accuracy(self, table: pd.DataFrame) -> pd.DataFrame:
        """
        Per modeling-table row: share of resamples that classified it correctly
        while it was out of bag, with its coordinates for mapping.
        """
        cols = ["row", "volcano_number", "latitude", "longitude", "volcano_type", "n", "correct"]
        if self.predictions.empty:
            return pd.DataFrame(columns=cols)
        agg = (
            self.predictions.assign(correct=self.predictions["correct"].astype(float))
            .groupby("row")
            .agg(n=("correct", "size"), correct=("correct", "mean"))
        )
        rows = agg.index.to_numpy()
        geo = table.iloc[rows][["volcano_number", "latitude", "longitude", "volcano_type"]]
        out = geo.reset_index(drop=True)
        out.insert(0, "row", rows)
        out["volcano_type"] = out["volcano_type"].astype(str)
        out["n"] = agg["n"].to_numpy()
        out["correct"] = agg["correct"].to_numpy()
        return out[cols]
