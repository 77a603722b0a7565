"""Exception hierarchy for volcanoml.

Loading and schema problems are fatal and raised as the types below.
Undefined metrics are never raised; they surface as NaN in the result tables.
"""
from typing import Optional


class VolcanoMLError(Exception):
    """Base class for all volcanoml errors."""


class ConfigurationError(VolcanoMLError):
    """Invalid pipeline or resampling configuration."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        super().__init__(message)


class DataLoadError(VolcanoMLError):
    """The dataset could not be fetched or parsed."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to load {source}: {reason}")


class SchemaError(VolcanoMLError):
    """A required column is missing from the input records."""

    def __init__(self, column: str, available: Optional[list] = None):
        self.column = column
        self.available = list(available or [])
        super().__init__(f"Missing required column: {column!r}")


class DegenerateFitError(VolcanoMLError):
    """Every encoded predictor is constant on the rows a pipeline was fit on."""

    def __init__(self, n_rows: int):
        self.n_rows = n_rows
        super().__init__(f"No predictor varies across the {n_rows} fit rows")
