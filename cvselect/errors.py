"""Error taxonomy for the model-selection harness.

Run-wide errors (bad configuration, nothing selectable) abort a run.
Unit errors (one point on one fold) are recorded on the MetricRecord and
never raised past the tuner.
"""

from typing import Any, Optional


class HarnessError(Exception):
    """Base class for all harness errors."""


class ConfigurationError(HarnessError, ValueError):
    """Invalid split, fold, grid or metric settings, detected before any work starts."""


class InsufficientDataError(ConfigurationError):
    """A label class is too small for the requested stratified split or fold count."""


class DataShapeError(HarnessError):
    """Feature layout differs between the data a step was fit on and the data it is applied to."""


class UnitFailure(HarnessError):
    """A model plugin failed for one (point, fold) unit."""

    stage = 'unit'

    def __init__(self, message: str, point: Optional[Any] = None, fold_index: Optional[int] = None):
        super().__init__(message)
        self.point = point
        self.fold_index = fold_index

    def __str__(self) -> str:
        where = []
        if self.point is not None:
            where.append(f"point={self.point}")
        if self.fold_index is not None:
            where.append(f"fold={self.fold_index}")
        base = super().__str__()
        return f"{base} ({', '.join(where)})" if where else base


class FitFailure(UnitFailure):
    """The plugin raised during fit."""

    stage = 'fit'


class PredictFailure(UnitFailure):
    """The plugin raised during predict or predict_proba, or returned invalid labels."""

    stage = 'predict'


class AllPointsFailedError(HarnessError):
    """Every grid point had zero successful folds; no selection is possible."""


class ScoreFailure(UnitFailure):
    """Metric computation failed on the plugin's output."""

    stage = 'score'
