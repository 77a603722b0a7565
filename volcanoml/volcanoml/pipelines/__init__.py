from .preprocessing import PreprocessingPipeline, FittedPipeline, RareLevelCollapser
from .resampling import Resample, ResampleSet, bootstraps
from .metrics import MetricsAggregator, accuracy_from_confusion
from .classification import (
    Config,
    DEFAULT_CONFIG,
    ClassifierTrainer,
    RunReport,
    make_forest,
    run_classification,
    run_volcano_analysis,
)
