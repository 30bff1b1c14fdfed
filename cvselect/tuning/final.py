"""Final evaluator: one fit on the training partition, one score on the test partition."""

from typing import Any, Callable, Mapping, Optional, Sequence, Union

from loguru import logger

from ..data.dataset import Dataset, Partition
from ..data.preprocessing_pipeline import Preprocessor
from ..metrics import MetricsWrapper
from ..models.base import BaseModel
from ..utils.model_analysis import ModelAnalyzer
from .grid import HyperparameterPoint
from .records import FinalReport
from .resample import fit_plugin, predict_plugin, score_predictions


class FinalEvaluator:
    """
    Refits the selected point on the whole training partition and scores
    it exactly once on the test partition.

    The test metrics are the only reported performance numbers; fold means
    from tuning stay in their own report section.
    """

    def __init__(self, metrics: Sequence[str], positive_label: Any = None):
        self.metrics = MetricsWrapper.validate(metrics)
        self.positive_label = positive_label

    def finalize(self,
                 plugin_factory: Callable[[Any], BaseModel],
                 point: Union[HyperparameterPoint, Mapping[str, Any]],
                 dataset: Dataset,
                 train: Partition,
                 test: Partition,
                 preprocessor: Optional[Preprocessor] = None,
                 model_name: Optional[str] = None) -> FinalReport:
        """
        Fit and score the selected point.

        Raises:
            FitFailure: The plugin failed on the training partition
            PredictFailure: The plugin failed or returned invalid labels on the test partition
            ScoreFailure: Metrics could not be computed from the plugin output
        """
        point = point if isinstance(point, HyperparameterPoint) else HyperparameterPoint(point)
        preprocessor = preprocessor or Preprocessor()
        labels = list(dataset.classes)

        X_train, y_train = dataset.take(train)
        X_test, y_test = dataset.take(test)
        logger.info(f"Final fit of {point} on {len(train)} training samples")

        state = preprocessor.fit(X_train)
        model = fit_plugin(plugin_factory, point, state.apply(X_train), y_train)
        y_pred, y_proba = predict_plugin(model, state.apply(X_test), point, labels=labels)
        scores = score_predictions(model, self.metrics, y_test, y_pred, y_proba, labels,
                                   self.positive_label, point)
        confusion = MetricsWrapper.confusion_table(y_test, y_pred, labels)

        n_parameters = ModelAnalyzer.count_parameters(model)
        logger.info(f"Test scores ({len(test)} samples): "
                    + ", ".join(f"{k}={v:.4f}" for k, v in scores.items()))

        return FinalReport(
            model_name=model_name or getattr(plugin_factory, 'name', type(model).__name__),
            selected_point=point,
            metrics=scores,
            confusion=confusion,
            train_size=len(train),
            test_size=len(test),
            n_parameters=n_parameters,
            model=model,
            preprocessor_state=state,
        )


def finalize(plugin_factory, point, dataset, train, test, preprocessor, metrics,
             positive_label=None, model_name=None) -> FinalReport:
    """Functional form of :meth:`FinalEvaluator.finalize`."""
    return FinalEvaluator(metrics, positive_label).finalize(
        plugin_factory, point, dataset, train, test, preprocessor, model_name=model_name)
