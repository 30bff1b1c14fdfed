import numpy as np
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from loguru import logger
from sklearn.metrics import (
    accuracy_score, precision_score, recall_score, f1_score,
    roc_auc_score, matthews_corrcoef, balanced_accuracy_score,
    average_precision_score, cohen_kappa_score, log_loss, confusion_matrix
)
from sklearn.preprocessing import label_binarize

from ..errors import ConfigurationError


@dataclass(frozen=True)
class MetricSpec:
    """A registered metric: function, direction and input kind."""
    func: Callable
    needs_proba: bool = False
    greater_is_better: bool = True


def _average(labels: Sequence[Any]) -> str:
    return 'binary' if len(labels) == 2 else 'macro'


def _pos_index(labels: Sequence[Any], pos_label: Any) -> int:
    return list(labels).index(pos_label)


def _auc(y_t, proba, labels, pos_label):
    if len(labels) == 2:
        return roc_auc_score(y_t == pos_label, proba[:, _pos_index(labels, pos_label)])
    return roc_auc_score(y_t, proba, multi_class='ovr', labels=list(labels))


def _auprc(y_t, proba, labels, pos_label):
    if len(labels) == 2:
        return average_precision_score(y_t == pos_label, proba[:, _pos_index(labels, pos_label)])
    return average_precision_score(label_binarize(y_t, classes=list(labels)), proba, average='macro')


@dataclass(frozen=True, eq=False)
class ConfusionTable:
    """
    Counts of actual × predicted labels over one evaluation set.

    ``counts[i][j]`` is the number of samples whose actual label is
    ``labels[i]`` and whose predicted label is ``labels[j]``.
    """
    labels: Tuple[Any, ...]
    counts: Tuple[Tuple[int, ...], ...]

    @classmethod
    def from_predictions(cls, y_true: np.ndarray, y_pred: np.ndarray,
                         labels: Sequence[Any]) -> 'ConfusionTable':
        cm = confusion_matrix(y_true, y_pred, labels=list(labels))
        return cls(labels=tuple(labels), counts=tuple(tuple(int(c) for c in row) for row in cm))

    def count(self, predicted: Any, actual: Any) -> int:
        return self.counts[self.labels.index(actual)][self.labels.index(predicted)]

    @property
    def total(self) -> int:
        return sum(sum(row) for row in self.counts)

    @property
    def correct(self) -> int:
        return sum(self.counts[i][i] for i in range(len(self.labels)))

    @property
    def misclassified(self) -> int:
        return self.total - self.correct

    def to_dict(self) -> Dict[str, Any]:
        return {'labels': list(self.labels), 'counts': [list(row) for row in self.counts]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConfusionTable':
        return cls(labels=tuple(data['labels']), counts=tuple(tuple(row) for row in data['counts']))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConfusionTable):
            return NotImplemented
        return self.labels == other.labels and self.counts == other.counts

    __hash__ = None


class MetricsWrapper:
    """
    A metrics registry for classification evaluation.

    Every metric is a pure function of (true labels, predictions or
    probabilities, ordered class labels, positive label). For two classes,
    precision/recall/f1 score the positive label; for more, they are
    macro-averaged.
    """

    # Define once, use everywhere
    METRICS: Dict[str, MetricSpec] = {
        # Standard prediction-based metrics
        'accuracy': MetricSpec(lambda y_t, y_p, labels, pos: accuracy_score(y_t, y_p)),
        'balanced_accuracy': MetricSpec(lambda y_t, y_p, labels, pos: balanced_accuracy_score(y_t, y_p)),
        'precision': MetricSpec(lambda y_t, y_p, labels, pos: precision_score(
            y_t, y_p, labels=list(labels), average=_average(labels), pos_label=pos, zero_division=0)),
        'precision_macro': MetricSpec(lambda y_t, y_p, labels, pos: precision_score(
            y_t, y_p, labels=list(labels), average='macro', zero_division=0)),
        'precision_weighted': MetricSpec(lambda y_t, y_p, labels, pos: precision_score(
            y_t, y_p, labels=list(labels), average='weighted', zero_division=0)),
        'recall': MetricSpec(lambda y_t, y_p, labels, pos: recall_score(
            y_t, y_p, labels=list(labels), average=_average(labels), pos_label=pos, zero_division=0)),
        'recall_macro': MetricSpec(lambda y_t, y_p, labels, pos: recall_score(
            y_t, y_p, labels=list(labels), average='macro', zero_division=0)),
        'recall_weighted': MetricSpec(lambda y_t, y_p, labels, pos: recall_score(
            y_t, y_p, labels=list(labels), average='weighted', zero_division=0)),
        'f1': MetricSpec(lambda y_t, y_p, labels, pos: f1_score(
            y_t, y_p, labels=list(labels), average=_average(labels), pos_label=pos, zero_division=0)),
        'f1_macro': MetricSpec(lambda y_t, y_p, labels, pos: f1_score(
            y_t, y_p, labels=list(labels), average='macro', zero_division=0)),
        'f1_weighted': MetricSpec(lambda y_t, y_p, labels, pos: f1_score(
            y_t, y_p, labels=list(labels), average='weighted', zero_division=0)),
        'matthews_corrcoef': MetricSpec(lambda y_t, y_p, labels, pos: matthews_corrcoef(y_t, y_p)),
        'cohen_kappa': MetricSpec(lambda y_t, y_p, labels, pos: cohen_kappa_score(y_t, y_p, labels=list(labels))),

        # Probability-based metrics
        'auc': MetricSpec(_auc, needs_proba=True),
        'auprc': MetricSpec(_auprc, needs_proba=True),
        'log_loss': MetricSpec(lambda y_t, proba, labels, pos: log_loss(y_t, proba, labels=list(labels)),
                               needs_proba=True, greater_is_better=False),
    }

    @classmethod
    def available(cls) -> List[str]:
        return list(cls.METRICS.keys())

    @classmethod
    def validate(cls, metrics_names: Iterable[str]) -> Tuple[str, ...]:
        """
        Check metric names against the registry.

        Raises:
            ConfigurationError: If a name is unknown or the list is empty
        """
        names = tuple(metrics_names)
        if not names:
            raise ConfigurationError("At least one metric is required")
        unknown = [n for n in names if n not in cls.METRICS]
        if unknown:
            raise ConfigurationError(f"Metric(s) {unknown} not found. Available metrics: {cls.available()}")
        return names

    @classmethod
    def greater_is_better(cls, name: str) -> bool:
        cls.validate([name])
        return cls.METRICS[name].greater_is_better

    @staticmethod
    def align_proba(proba: Optional[np.ndarray], model_classes: Optional[Sequence[Any]],
                    labels: Sequence[Any]) -> Optional[np.ndarray]:
        """
        Reorder probability columns to ``labels`` order.

        Classes the model never saw during fit get a zero column.
        """
        if proba is None:
            return None
        proba = np.asarray(proba, dtype=float)
        if proba.ndim != 2:
            return None
        if model_classes is None:
            return proba if proba.shape[1] == len(labels) else None

        model_classes = list(model_classes)
        if proba.shape[1] != len(model_classes):
            return None
        aligned = np.zeros((proba.shape[0], len(labels)))
        for j, label in enumerate(labels):
            if label in model_classes:
                aligned[:, j] = proba[:, model_classes.index(label)]
        return aligned

    @classmethod
    def get_eval_metrics(cls,
                         metrics_names: Iterable[str],
                         y_true: np.ndarray,
                         y_pred: np.ndarray,
                         y_proba: Optional[np.ndarray] = None,
                         labels: Optional[Sequence[Any]] = None,
                         positive_label: Any = None) -> Dict[str, float]:
        """
        Compute the requested metrics.

        Args:
            metrics_names: Metric names to compute
            y_true: True labels
            y_pred: Predicted labels
            y_proba: Class probabilities aligned with ``labels`` (optional)
            labels: Ordered class labels; defaults to the sorted union of y_true and y_pred
            positive_label: Positive class for binary metrics; defaults to the last label

        Returns:
            Mapping metric name → float. Probability metrics without
            probabilities, and metrics undefined on this data, are NaN.

        Examples:
            >>> scores = MetricsWrapper.get_eval_metrics(['accuracy', 'f1'], y_true, y_pred)
        """
        names = cls.validate(metrics_names)
        y_true = np.asarray(y_true)
        y_pred = np.asarray(y_pred)
        if labels is None:
            labels = np.unique(np.concatenate([y_true, y_pred])).tolist()
        labels = list(labels)
        if positive_label is None:
            positive_label = labels[-1]

        results = {}
        for name in names:
            spec = cls.METRICS[name]
            if spec.needs_proba and y_proba is None:
                results[name] = float('nan')
                continue
            try:
                value = spec.func(y_true, y_proba if spec.needs_proba else y_pred, labels, positive_label)
                results[name] = float(value)
            except (ValueError, IndexError, ZeroDivisionError) as e:
                logger.debug(f"Metric '{name}' undefined on this data: {e}")
                results[name] = float('nan')

        return results

    @staticmethod
    def confusion_table(y_true: np.ndarray, y_pred: np.ndarray,
                        labels: Sequence[Any]) -> ConfusionTable:
        return ConfusionTable.from_predictions(y_true, y_pred, labels)
