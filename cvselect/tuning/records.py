"""Result records produced by the tuner, aggregator and final evaluator."""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..data.dataset import Fold
from ..metrics import ConfusionTable
from .grid import HyperparameterPoint


def _to_float(value: Any) -> float:
    return float('nan') if value is None else float(value)


@dataclass(frozen=True)
class WorkItem:
    """One (point, fold) tuning unit."""
    point: HyperparameterPoint
    fold: Fold

    @property
    def fold_index(self) -> int:
        return self.fold.fold_index


@dataclass(frozen=True)
class MetricRecord:
    """
    Outcome of one (point, fold) attempt.

    Failed records carry the failing stage (``preprocess``, ``fit`` or
    ``predict``) and the error text; their metrics mapping is empty.
    """
    fold_index: int
    point: HyperparameterPoint
    metrics: Dict[str, float] = field(default_factory=dict)
    success: bool = True
    stage: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fold_index': self.fold_index,
            'point': self.point.as_dict(),
            'metrics': dict(self.metrics),
            'success': self.success,
            'stage': self.stage,
            'error': self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetricRecord':
        return cls(
            fold_index=int(data['fold_index']),
            point=HyperparameterPoint(data['point']),
            metrics={k: _to_float(v) for k, v in data.get('metrics', {}).items()},
            success=bool(data['success']),
            stage=data.get('stage'),
            error=data.get('error'),
        )


@dataclass(frozen=True)
class MetricStat:
    """Mean and population std of one metric over the folds where it was finite."""
    mean: float
    std: float
    successful_fold_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {'mean': self.mean, 'std': self.std, 'successful_fold_count': self.successful_fold_count}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetricStat':
        return cls(mean=_to_float(data['mean']), std=_to_float(data['std']),
                   successful_fold_count=int(data['successful_fold_count']))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MetricStat):
            return NotImplemented
        return (_same_float(self.mean, other.mean) and _same_float(self.std, other.std)
                and self.successful_fold_count == other.successful_fold_count)

    def __hash__(self) -> int:
        return hash((self.successful_fold_count,))


def _same_float(a: float, b: float) -> bool:
    return (math.isnan(a) and math.isnan(b)) or a == b


@dataclass(frozen=True)
class MetricSummary:
    """Per-point cross-validation summary."""
    point: HyperparameterPoint
    metrics: Dict[str, MetricStat]
    successful_fold_count: int
    failed_fold_count: int
    rank: Optional[int] = None

    @property
    def fold_count(self) -> int:
        return self.successful_fold_count + self.failed_fold_count

    def mean(self, metric: str) -> float:
        stat = self.metrics.get(metric)
        return float('nan') if stat is None else stat.mean

    def to_dict(self) -> Dict[str, Any]:
        return {
            'point': self.point.as_dict(),
            'metrics': {name: stat.to_dict() for name, stat in self.metrics.items()},
            'successful_fold_count': self.successful_fold_count,
            'failed_fold_count': self.failed_fold_count,
            'rank': self.rank,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetricSummary':
        rank = data.get('rank')
        return cls(
            point=HyperparameterPoint(data['point']),
            metrics={name: MetricStat.from_dict(stat) for name, stat in data['metrics'].items()},
            successful_fold_count=int(data['successful_fold_count']),
            failed_fold_count=int(data['failed_fold_count']),
            rank=None if rank is None else int(rank),
        )

    def to_row(self) -> Dict[str, Any]:
        """Flat row for tabular output (one column per metric mean/std)."""
        row = {'rank': self.rank, 'point': self.point.key,
               'successful_folds': self.successful_fold_count, 'failed_folds': self.failed_fold_count}
        for name, stat in self.metrics.items():
            row[f'{name}_mean'] = stat.mean
            row[f'{name}_std'] = stat.std
        return row


@dataclass(frozen=True, eq=False)
class FinalReport:
    """
    Held-out test evaluation of the selected point.

    ``model`` and ``preprocessor_state`` are kept in memory for saving and
    are not part of the serialised report.
    """
    model_name: str
    selected_point: HyperparameterPoint
    metrics: Dict[str, float]
    confusion: ConfusionTable
    train_size: int
    test_size: int
    n_parameters: Optional[int] = None
    model: Any = field(default=None, repr=False)
    preprocessor_state: Any = field(default=None, repr=False)

    @property
    def classes(self) -> Tuple[Any, ...]:
        return self.confusion.labels

    def to_dict(self) -> Dict[str, Any]:
        return {
            'model_name': self.model_name,
            'selected_point': self.selected_point.as_dict(),
            'metrics': dict(self.metrics),
            'confusion_table': self.confusion.to_dict(),
            'train_size': self.train_size,
            'test_size': self.test_size,
            'n_parameters': self.n_parameters,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FinalReport':
        n_parameters = data.get('n_parameters')
        return cls(
            model_name=data['model_name'],
            selected_point=HyperparameterPoint(data['selected_point']),
            metrics={k: _to_float(v) for k, v in data['metrics'].items()},
            confusion=ConfusionTable.from_dict(data['confusion_table']),
            train_size=int(data['train_size']),
            test_size=int(data['test_size']),
            n_parameters=None if n_parameters is None else int(n_parameters),
        )
