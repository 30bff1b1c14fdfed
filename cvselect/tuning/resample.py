"""Resample evaluator: scores one hyperparameter point on one fold."""

from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
from loguru import logger

from ..data.dataset import Dataset, FoldSet
from ..data.preprocessing_pipeline import Preprocessor
from ..errors import FitFailure, PredictFailure, ScoreFailure, UnitFailure
from ..metrics import MetricsWrapper
from ..models.base import BaseModel
from .grid import HyperparameterPoint
from .records import MetricRecord, WorkItem


def fit_plugin(plugin_factory: Callable[[Any], BaseModel], point: HyperparameterPoint,
               X: np.ndarray, y: np.ndarray, fold_index: Optional[int] = None) -> BaseModel:
    """Create a fresh plugin for ``point`` and fit it; any plugin error becomes a FitFailure."""
    try:
        model = plugin_factory(point.as_dict())
        fitted = model.fit(X, y)
    except Exception as e:
        raise FitFailure(f"{type(e).__name__}: {e}", point=point, fold_index=fold_index) from e
    return model if fitted is None else fitted


def predict_plugin(model: BaseModel, X: np.ndarray, point: HyperparameterPoint,
                   fold_index: Optional[int] = None, labels: Optional[Sequence[Any]] = None):
    """
    Predict labels (and probabilities where supported).

    ``predict_proba`` raising AttributeError or NotImplementedError means
    "unsupported" and yields None; any other error is a PredictFailure.

    Returns:
        Tuple of (labels, probabilities or None)

    Raises:
        PredictFailure: If predict or predict_proba raises, predict returns the
            wrong number of labels, or a label outside ``labels``
    """
    try:
        y_pred = np.asarray(model.predict(X))
    except Exception as e:
        raise PredictFailure(f"{type(e).__name__}: {e}", point=point, fold_index=fold_index) from e

    if y_pred.ndim != 1 or len(y_pred) != len(X):
        raise PredictFailure(
            f"predict returned shape {y_pred.shape} for {len(X)} samples",
            point=point, fold_index=fold_index,
        )
    if labels is not None:
        unknown = set(y_pred.tolist()) - set(labels)
        if unknown:
            raise PredictFailure(
                f"predict returned labels {sorted(map(repr, unknown))} outside the dataset classes {list(labels)}",
                point=point, fold_index=fold_index,
            )

    try:
        y_proba = model.predict_proba(X)
    except (AttributeError, NotImplementedError) as e:
        logger.debug(f"predict_proba unavailable for {point}: {e}")
        y_proba = None
    except Exception as e:
        raise PredictFailure(f"predict_proba {type(e).__name__}: {e}",
                             point=point, fold_index=fold_index) from e
    return y_pred, y_proba


def score_predictions(model: BaseModel, metrics: Sequence[str], y_true: np.ndarray,
                      y_pred: np.ndarray, y_proba: Optional[np.ndarray], labels: Sequence[Any],
                      positive_label: Any, point: HyperparameterPoint,
                      fold_index: Optional[int] = None) -> Dict[str, float]:
    """Align probabilities to ``labels`` and compute ``metrics``; any error becomes a ScoreFailure."""
    try:
        y_proba = MetricsWrapper.align_proba(y_proba, getattr(model, 'classes_', None), labels)
        return MetricsWrapper.get_eval_metrics(metrics, y_true, y_pred, y_proba,
                                               labels=labels, positive_label=positive_label)
    except Exception as e:
        raise ScoreFailure(f"{type(e).__name__}: {e}", point=point, fold_index=fold_index) from e


class ResampleEvaluator:
    """
    Evaluates hyperparameter points on cross-validation folds.

    Every unit fits its own preprocessor state on the fold's training side
    only, creates a fresh plugin, and discards the fitted model once scored.
    Unit failures are returned as failed MetricRecords, never raised.
    """

    def __init__(self, dataset: Dataset, plugin_factory: Callable[[Any], BaseModel],
                 preprocessor: Optional[Preprocessor], metrics: Sequence[str],
                 positive_label: Any = None):
        self.dataset = dataset
        self.plugin_factory = plugin_factory
        self.preprocessor = preprocessor or Preprocessor()
        self.metrics = MetricsWrapper.validate(metrics)
        self.labels = list(dataset.classes)
        self.positive_label = positive_label

    def evaluate_unit(self, item: WorkItem) -> MetricRecord:
        point, fold = item.point, item.fold

        X_train, y_train = self.dataset.take(fold.train)
        X_held, y_held = self.dataset.take(fold.held_out)

        try:
            state = self.preprocessor.fit(X_train)
            X_train_t = state.apply(X_train)
            X_held_t = state.apply(X_held)
        except Exception as e:
            logger.warning(f"Preprocessing failed for {point} on fold {fold.fold_index}: {e}")
            return MetricRecord(fold.fold_index, point, success=False,
                                stage='preprocess', error=f"{type(e).__name__}: {e}")

        try:
            model = fit_plugin(self.plugin_factory, point, X_train_t, y_train, fold.fold_index)
            y_pred, y_proba = predict_plugin(model, X_held_t, point, fold.fold_index, self.labels)
            scores = score_predictions(model, self.metrics, y_held, y_pred, y_proba, self.labels,
                                       self.positive_label, point, fold.fold_index)
        except UnitFailure as e:
            logger.warning(f"{e.stage.capitalize()} failed for {point} on fold {fold.fold_index}: "
                           f"{e.args[0]}")
            return MetricRecord(fold.fold_index, point, success=False, stage=e.stage, error=e.args[0])

        logger.debug(f"Fold {fold.fold_index} {point}: {scores}")
        return MetricRecord(fold.fold_index, point, metrics=scores)

    def evaluate(self, point: HyperparameterPoint, fold_set: FoldSet) -> List[MetricRecord]:
        """Score ``point`` on every fold, in fold order."""
        return [self.evaluate_unit(WorkItem(point, fold)) for fold in fold_set]
