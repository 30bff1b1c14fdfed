"""
Dataset and Partition Containers
================================

Immutable in-memory containers shared by every harness stage. A Dataset is
read concurrently by all tuning units; Partitions and Folds only carry index
arrays into it.

"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..errors import DataShapeError

logger = logging.getLogger(__name__)


def _readonly(array: np.ndarray) -> np.ndarray:
    array = np.array(array, copy=True)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class Dataset:
    """
    Feature matrix, label vector and feature names.

    Attributes:
        features: Read-only array of shape (n_samples, n_features)
        labels: Read-only array of shape (n_samples,)
        feature_names: Column names in feature order
    """
    features: np.ndarray
    labels: np.ndarray
    feature_names: Tuple[str, ...]

    def __post_init__(self):
        features = np.asarray(self.features, dtype=float)
        labels = np.asarray(self.labels)

        if features.ndim != 2:
            raise DataShapeError(f"features must be 2-D, got shape {features.shape}")
        if labels.ndim != 1 or len(labels) != len(features):
            raise DataShapeError(
                f"labels must be 1-D with {len(features)} entries, got shape {labels.shape}"
            )
        if len(self.feature_names) != features.shape[1]:
            raise DataShapeError(
                f"{len(self.feature_names)} feature names for {features.shape[1]} feature columns"
            )

        object.__setattr__(self, 'features', _readonly(features))
        object.__setattr__(self, 'labels', _readonly(labels))
        object.__setattr__(self, 'feature_names', tuple(str(n) for n in self.feature_names))

    @classmethod
    def from_arrays(cls, X: np.ndarray, y: np.ndarray,
                    feature_names: Optional[Sequence[str]] = None) -> 'Dataset':
        X = np.asarray(X, dtype=float)
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        names = feature_names if feature_names is not None else [f'feature_{i}' for i in range(X.shape[1])]
        return cls(features=X, labels=np.asarray(y), feature_names=tuple(names))

    @classmethod
    def from_records(cls, records: Sequence[Mapping[str, Any]], label_key: str = 'label') -> 'Dataset':
        """
        Build a dataset from a sequence of feature-name → value mappings.

        Args:
            records: One mapping per sample, each holding every feature plus the label
            label_key: Key holding the categorical label

        Raises:
            DataShapeError: If records do not share the same feature set
        """
        if not records:
            raise DataShapeError("Cannot build a dataset from zero records")

        names = sorted(k for k in records[0] if k != label_key)
        expected = set(names)
        rows, labels = [], []
        for i, record in enumerate(records):
            if label_key not in record:
                raise DataShapeError(f"Record {i} has no '{label_key}' entry")
            keys = set(record) - {label_key}
            if keys != expected:
                missing = sorted(expected - keys)
                extra = sorted(keys - expected)
                raise DataShapeError(f"Record {i} feature mismatch: missing={missing}, extra={extra}")
            rows.append([float(record[name]) for name in names])
            labels.append(record[label_key])

        return cls(features=np.array(rows, dtype=float), labels=np.array(labels), feature_names=tuple(names))

    @classmethod
    def from_frame(cls, df: pd.DataFrame, label_column: str,
                   feature_columns: Optional[Sequence[str]] = None) -> 'Dataset':
        if label_column not in df.columns:
            raise DataShapeError(f"Label column '{label_column}' not in frame columns {list(df.columns)}")
        columns = list(feature_columns) if feature_columns else [c for c in df.columns if c != label_column]
        return cls(
            features=df[columns].to_numpy(dtype=float),
            labels=df[label_column].to_numpy(),
            feature_names=tuple(columns),
        )

    @classmethod
    def from_csv(cls, file_path: Union[str, Path], label_column: str,
                 feature_columns: Optional[Sequence[str]] = None) -> 'Dataset':
        """Read a CSV with a header row; no cleaning is applied."""
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")
        df = pd.read_csv(file_path)
        dataset = cls.from_frame(df, label_column, feature_columns)
        logger.info(f"Loaded: {dataset.n_samples} samples, {dataset.n_features} features from {file_path}")
        return dataset

    @property
    def n_samples(self) -> int:
        return self.features.shape[0]

    @property
    def n_features(self) -> int:
        return self.features.shape[1]

    @property
    def classes(self) -> Tuple[Any, ...]:
        return tuple(np.unique(self.labels).tolist())

    def class_counts(self, indices: Optional[np.ndarray] = None) -> dict:
        labels = self.labels if indices is None else self.labels[indices]
        unique, counts = np.unique(labels, return_counts=True)
        return dict(zip(unique.tolist(), counts.tolist()))

    def take(self, partition: 'Partition') -> Tuple[np.ndarray, np.ndarray]:
        """Return (features, labels) for the partition's indices."""
        return self.features[partition.indices], self.labels[partition.indices]

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(self.features, columns=list(self.feature_names))
        df['label'] = self.labels
        return df


@dataclass(frozen=True, eq=False)
class Partition:
    """Sorted, duplicate-free index set into a Dataset."""
    name: str
    indices: np.ndarray

    def __post_init__(self):
        indices = np.unique(np.asarray(self.indices, dtype=np.int64))
        object.__setattr__(self, 'indices', _readonly(indices))

    def __len__(self) -> int:
        return len(self.indices)

    def __contains__(self, index: int) -> bool:
        pos = np.searchsorted(self.indices, index)
        return bool(pos < len(self.indices) and self.indices[pos] == index)

    def intersection(self, other: 'Partition') -> np.ndarray:
        return np.intersect1d(self.indices, other.indices)

    def difference(self, other: 'Partition', name: str) -> 'Partition':
        return Partition(name, np.setdiff1d(self.indices, other.indices))

    @classmethod
    def full(cls, dataset: Dataset, name: str = 'all') -> 'Partition':
        return cls(name, np.arange(dataset.n_samples))


@dataclass(frozen=True, eq=False)
class Fold:
    fold_index: int
    train: Partition
    held_out: Partition


@dataclass(frozen=True, eq=False)
class FoldSet:
    """
    Ordered folds derived from one source partition.

    Held-out sides cover the source exactly once; each train side is the
    source minus that fold's held-out side.
    """
    source: Partition
    folds: Tuple[Fold, ...]
    stratified: bool
    seed: int

    def __len__(self) -> int:
        return len(self.folds)

    def __iter__(self) -> Iterator[Fold]:
        return iter(self.folds)

    def __getitem__(self, i: int) -> Fold:
        return self.folds[i]

    def assignment(self) -> List[List[int]]:
        """Held-out indices per fold as plain lists (stable for comparison and logging)."""
        return [fold.held_out.indices.tolist() for fold in self.folds]
