"""
Tests for cvselect.data.dataset.
"""
import numpy as np
import pandas as pd
import pytest

from cvselect.data import Dataset, Partition
from cvselect.errors import DataShapeError


class TestDataset:
    """Dataset construction and immutability."""

    def test_from_records_sorts_feature_names(self, balanced_dataset):
        assert balanced_dataset.feature_names == ('alpha', 'beta', 'gamma')
        assert balanced_dataset.n_samples == 100
        assert balanced_dataset.n_features == 3

    def test_classes_and_counts(self, balanced_dataset):
        assert balanced_dataset.classes == ('neg', 'pos')
        assert balanced_dataset.class_counts() == {'neg': 50, 'pos': 50}

    def test_mismatched_records_rejected(self):
        records = [{'a': 1.0, 'b': 2.0, 'label': 0}, {'a': 1.0, 'label': 1}]
        with pytest.raises(DataShapeError, match="missing=\\['b'\\]"):
            Dataset.from_records(records)

    def test_missing_label_rejected(self):
        with pytest.raises(DataShapeError):
            Dataset.from_records([{'a': 1.0}])

    def test_arrays_are_read_only(self, classification_dataset):
        with pytest.raises(ValueError):
            classification_dataset.features[0, 0] = 99.0
        with pytest.raises(ValueError):
            classification_dataset.labels[0] = 5

    def test_source_array_not_shared(self):
        X = np.zeros((4, 2))
        dataset = Dataset.from_arrays(X, [0, 1, 0, 1])
        X[0, 0] = 1.0
        assert dataset.features[0, 0] == 0.0

    def test_label_length_mismatch(self):
        with pytest.raises(DataShapeError):
            Dataset.from_arrays(np.zeros((4, 2)), [0, 1, 0])

    def test_from_frame_and_csv(self, tmp_path):
        df = pd.DataFrame({'x1': [0.1, 0.2, 0.3, 0.4], 'x2': [1, 2, 3, 4], 'y': ['a', 'b', 'a', 'b']})
        path = tmp_path / 'data.csv'
        df.to_csv(path, index=False)

        dataset = Dataset.from_csv(path, 'y')
        assert dataset.feature_names == ('x1', 'x2')
        assert dataset.classes == ('a', 'b')
        np.testing.assert_allclose(dataset.features[:, 1], [1, 2, 3, 4])

    def test_from_frame_unknown_label(self):
        with pytest.raises(DataShapeError):
            Dataset.from_frame(pd.DataFrame({'x': [1.0]}), 'y')


class TestPartition:
    """Partition index handling."""

    def test_indices_sorted_and_unique(self):
        partition = Partition('p', [5, 1, 3, 1])
        assert partition.indices.tolist() == [1, 3, 5]
        assert len(partition) == 3
        assert 3 in partition
        assert 2 not in partition

    def test_difference(self):
        full = Partition('all', range(6))
        held = Partition('held', [1, 4])
        rest = full.difference(held, 'rest')
        assert rest.indices.tolist() == [0, 2, 3, 5]
        assert rest.intersection(held).size == 0

    def test_take(self, classification_dataset):
        partition = Partition('p', [0, 2])
        X, y = classification_dataset.take(partition)
        assert X.shape == (2, 5)
        np.testing.assert_array_equal(y, classification_dataset.labels[[0, 2]])
