"""Shared fixtures for the cvselect test suite."""
import numpy as np
import pytest
from sklearn.datasets import make_classification

from cvselect.data import Dataset


@pytest.fixture
def balanced_records():
    """100 records, two balanced labels (50 'neg' / 50 'pos'), three numeric features."""
    rng = np.random.RandomState(0)
    records = []
    for i in range(100):
        label = 'pos' if i % 2 else 'neg'
        shift = 1.5 if label == 'pos' else 0.0
        records.append({
            'alpha': float(rng.normal(shift, 1.0)),
            'beta': float(rng.normal(-shift, 1.0)),
            'gamma': float(rng.normal(0.0, 1.0)),
            'label': label,
        })
    return records


@pytest.fixture
def balanced_dataset(balanced_records):
    return Dataset.from_records(balanced_records)


@pytest.fixture
def classification_dataset():
    """Separable binary problem: 120 samples, 5 features, exactly 60 per class."""
    X, y = make_classification(n_samples=120, n_features=5, n_informative=3, n_redundant=1,
                               flip_y=0.0, class_sep=1.5, random_state=42)
    return Dataset.from_arrays(X, y)


@pytest.fixture
def multiclass_dataset():
    """Three-class problem: 150 samples, 4 features, 50 per class."""
    X, y = make_classification(n_samples=150, n_features=4, n_informative=3, n_redundant=0,
                               n_classes=3, n_clusters_per_class=1, flip_y=0.0,
                               class_sep=2.0, random_state=7)
    return Dataset.from_arrays(X, y)
