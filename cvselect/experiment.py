"""One end-to-end model-selection run for a single model family."""

import threading
from typing import Any, Callable, Optional

from loguru import logger

from .data.dataset import Dataset
from .data.preprocessing_pipeline import Preprocessor
from .data.splitter import make_folds, split
from .errors import ConfigurationError
from .models.base import BaseModel
from .tuning.aggregator import select_best
from .tuning.final import FinalEvaluator
from .tuning.grid import HyperparameterGrid
from .tuning.grid_search import GridSearchTuner
from .tuning.report import HarnessReport
from .utils.config import HarnessSettings


class ModelSelectionExperiment:
    """
    Split → folds → grid search → selection → final test evaluation.

    Examples:
        >>> settings = HarnessSettings(metrics=('accuracy', 'f1'), grid={'C': [0.1, 1.0]})
        >>> experiment = ModelSelectionExperiment(settings, Preprocessor.from_config(['scale']))
        >>> report = experiment.run(dataset, ModelFactory.plugin_factory('logistic_regression'))
    """

    def __init__(self, settings: HarnessSettings, preprocessor: Optional[Preprocessor] = None):
        self.settings = settings.validate()
        self.preprocessor = preprocessor or Preprocessor()

    def _check_dataset(self, dataset: Dataset) -> None:
        classes = dataset.classes
        if len(classes) < 2:
            raise ConfigurationError(f"Need at least 2 label classes, dataset has {list(classes)}")
        label = self.settings.positive_label
        if label is not None and label not in classes:
            raise ConfigurationError(f"positive_label {label!r} is not one of the dataset classes {list(classes)}")

    def run(self,
            dataset: Dataset,
            plugin_factory: Callable[[Any], BaseModel],
            grid: Any = None,
            model_name: Optional[str] = None,
            cancel_event: Optional[threading.Event] = None) -> HarnessReport:
        """
        Run the full selection for one model family.

        Args:
            dataset: Input dataset (never modified)
            plugin_factory: hyperparameters -> fresh model plugin
            grid: Overrides ``settings.grid`` when given
            model_name: Label for logs and the report
            cancel_event: Stops tuning early; completed points are still selectable

        Raises:
            ConfigurationError: Invalid settings for this dataset
            AllPointsFailedError: No grid point had a successful fold
            FitFailure / PredictFailure / ScoreFailure: The selected point failed in the final fit
        """
        s = self.settings
        model_name = model_name or getattr(plugin_factory, 'name', 'model')
        grid = HyperparameterGrid.from_spec(grid if grid is not None else s.grid)
        self._check_dataset(dataset)

        logger.info(f"[{model_name}] {dataset.n_samples} samples, {dataset.n_features} features, "
                    f"classes {dataset.class_counts()}")
        logger.info(f"[{model_name}] Preprocessing: {self.preprocessor}")

        train, test = split(dataset, s.test_fraction, stratify=s.stratify, seed=s.seed)
        logger.info(f"[{model_name}] Split: train={len(train)} {dataset.class_counts(train.indices)}, "
                    f"test={len(test)} {dataset.class_counts(test.indices)}")

        fold_set = make_folds(dataset, train, s.fold_count, stratify=s.stratify, seed=s.seed)

        tuner = GridSearchTuner(n_jobs=s.n_jobs, backend=s.backend)
        result = tuner.run(
            plugin_factory, grid, dataset, fold_set, self.preprocessor, s.metrics,
            primary_metric=s.primary_metric, positive_label=s.positive_label,
            cancel_event=cancel_event,
        )

        best = select_best(result.summaries, s.primary_metric, s.tie_break)
        logger.info(f"[{model_name}] Selected {best} by {s.primary_metric} ({s.tie_break} tie-break)")

        final = FinalEvaluator(s.metrics, s.positive_label).finalize(
            plugin_factory, best, dataset, train, test, self.preprocessor, model_name=model_name,
        )

        return HarnessReport(
            model_name=model_name,
            settings=s,
            summaries=result.summaries,
            selected_point=best,
            final=final,
            records=result.records,
            incomplete_points=result.incomplete_points,
            cancelled=result.cancelled,
        )
