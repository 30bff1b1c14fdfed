"""Data handling module."""

from .dataset import Dataset, Partition, Fold, FoldSet
from .splitter import split, make_folds
from .feature_scaler import FeatureScaler, StepState
from .preprocessing_pipeline import (
    Preprocessor,
    PreprocessorState,
    ProjectionStep,
    DecorrelationStep,
)

__all__ = [
    "Dataset",
    "Partition",
    "Fold",
    "FoldSet",
    "split",
    "make_folds",
    "FeatureScaler",
    "StepState",
    "Preprocessor",
    "PreprocessorState",
    "ProjectionStep",
    "DecorrelationStep",
]
