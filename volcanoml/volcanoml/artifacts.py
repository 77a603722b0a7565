"""
Persist a RunReport as plain files for an external reporting layer.

- metrics.json          : RunReport.to_dict() (NaN -> null)
- predictions.csv       : one row per (resample, out-of-bag volcano)
- spatial_accuracy.csv  : per-volcano correctness with coordinates
- importance.csv        : ranked variable importance
- roc_curves.csv        : one-vs-rest ROC points per resample and class
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np

log = logging.getLogger(__name__)


def _json_default(o):
    # Datetime-like
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    # NumPy scalars (np.float64, np.int64, etc.)
    if isinstance(o, np.generic):
        return _sanitize(o.item())
    if isinstance(o, np.ndarray):
        return _sanitize(o.tolist())
    # Fallback: stringify (safe for Decimal, Timedelta, etc.)
    return str(o)


def _sanitize(o: Any) -> Any:
    """Replace non-finite floats by None so the output is strict JSON."""
    if isinstance(o, float):
        return o if math.isfinite(o) else None
    if isinstance(o, np.floating):
        return _sanitize(float(o))
    if isinstance(o, dict):
        return {str(k): _sanitize(v) for k, v in o.items()}
    if isinstance(o, (list, tuple)):
        return [_sanitize(v) for v in o]
    return o


def dumps(payload: Dict[str, Any]) -> str:
    return json.dumps(_sanitize(payload), ensure_ascii=False, default=_json_default, allow_nan=False)


def write_report(report, out_dir: Union[str, Path]) -> Dict[str, str]:
    """Write the report files to `out_dir` (created if needed); returns name -> path."""
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    paths = {
        "metrics": out / "metrics.json",
        "predictions": out / "predictions.csv",
        "spatial_accuracy": out / "spatial_accuracy.csv",
        "importance": out / "importance.csv",
        "roc_curves": out / "roc_curves.csv",
    }
    paths["metrics"].write_text(dumps(report.to_dict()), encoding="utf-8")
    report.predictions.to_csv(paths["predictions"], index=False)
    report.spatial_accuracy.to_csv(paths["spatial_accuracy"], index=False)
    report.importance.to_csv(paths["importance"], index=False)
    report.roc_curves.to_csv(paths["roc_curves"], index=False)

    log.info("Wrote report artifacts to %s", out)
    return {k: str(v) for k, v in paths.items()}
