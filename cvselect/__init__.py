"""cvselect: cross-validated model selection and evaluation harness.

Splits a dataset into train/test partitions and cross-validation folds,
applies a declarative preprocessing pipeline fitted on training sides only,
grid-searches hyperparameters of a pluggable classifier, and refits the
selected point once for a held-out test score.
"""

from .errors import (
    HarnessError,
    ConfigurationError,
    InsufficientDataError,
    DataShapeError,
    UnitFailure,
    FitFailure,
    PredictFailure,
    ScoreFailure,
    AllPointsFailedError,
)
from .data import Dataset, Partition, FoldSet, Preprocessor, split, make_folds
from .models import BaseModel, ModelFactory
from .metrics import MetricsWrapper, ConfusionTable
from .tuning import (
    HyperparameterPoint,
    HyperparameterGrid,
    GridSearchTuner,
    aggregate,
    select_best,
    finalize,
    HarnessReport,
)
from .utils import Config, HarnessSettings
from .experiment import ModelSelectionExperiment

__version__ = '1.0.0'

__all__ = [
    'HarnessError',
    'ConfigurationError',
    'InsufficientDataError',
    'DataShapeError',
    'UnitFailure',
    'FitFailure',
    'PredictFailure',
    'ScoreFailure',
    'AllPointsFailedError',
    'Dataset',
    'Partition',
    'FoldSet',
    'Preprocessor',
    'split',
    'make_folds',
    'BaseModel',
    'ModelFactory',
    'MetricsWrapper',
    'ConfusionTable',
    'HyperparameterPoint',
    'HyperparameterGrid',
    'GridSearchTuner',
    'aggregate',
    'select_best',
    'finalize',
    'HarnessReport',
    'Config',
    'HarnessSettings',
    'ModelSelectionExperiment',
]
