from .exceptions import VolcanoMLError, ConfigurationError, DataLoadError, DegenerateFitError, SchemaError
from .io_http import get_bytes
from .io_df import DATA_URL, load_tabular, load_volcanoes, quick_profile, ensure_pandas
from .labels import CLASSES, derive_volcano_type, derive_volcano_types
from .features import select_modeling_table
from .pipelines import (
    Config,
    DEFAULT_CONFIG,
    ClassifierTrainer,
    MetricsAggregator,
    PreprocessingPipeline,
    FittedPipeline,
    RunReport,
    bootstraps,
    run_classification,
    run_volcano_analysis,
)
from .artifacts import write_report
