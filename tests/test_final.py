"""
Tests for cvselect.tuning.final.
"""
import numpy as np
import pytest

from cvselect.data import Dataset, Partition, Preprocessor, split
from cvselect.errors import FitFailure, PredictFailure
from cvselect.models import BaseModel, ModelFactory
from cvselect.tuning import FinalEvaluator, HyperparameterPoint, finalize


@pytest.fixture
def skewed_dataset():
    """200 samples; train half and test half each hold 70 positives (1) and 30 negatives (0)."""
    rng = np.random.RandomState(3)
    labels = np.array(([1] * 70 + [0] * 30) * 2)
    features = rng.normal(size=(200, 3))
    dataset = Dataset.from_arrays(features, labels)
    return dataset, Partition('train', np.arange(100)), Partition('test', np.arange(100, 200))


class BrokenPredictModel(BaseModel):
    def fit(self, X, y):
        self.fitted = True

    def predict(self, X):
        raise RuntimeError("no predictions today")


class UnknownLabelModel(BaseModel):
    def fit(self, X, y):
        self.fitted = True

    def predict(self, X):
        return np.full(len(X), 'x')


class TestFinalEvaluator:
    """Single refit on the training partition and single test score."""

    def test_majority_baseline_scenario(self, skewed_dataset):
        dataset, train, test = skewed_dataset
        report = finalize(ModelFactory.plugin_factory('majority'), {}, dataset, train, test,
                          None, ['accuracy', 'recall', 'precision'])

        assert report.metrics['accuracy'] == pytest.approx(0.70)
        assert report.metrics['recall'] == pytest.approx(1.0)
        assert report.confusion.count(predicted=0, actual=1) == 0
        assert report.confusion.count(predicted=1, actual=0) == 30
        assert report.confusion.misclassified == 30
        assert report.train_size == 100
        assert report.test_size == 100
        assert report.model_name == 'majority'

    def test_preprocessor_fit_on_whole_train_partition(self, classification_dataset):
        train, test = split(classification_dataset, 0.25, seed=5)
        preprocessor = Preprocessor.from_config(['scale'])
        report = FinalEvaluator(['accuracy', 'auc']).finalize(
            ModelFactory.plugin_factory('logistic_regression'), HyperparameterPoint({'C': 1.0}),
            classification_dataset, train, test, preprocessor)

        X_train, _ = classification_dataset.take(train)
        scaled = report.preprocessor_state.apply(X_train)
        np.testing.assert_allclose(scaled.mean(axis=0), 0.0, atol=1e-10)
        assert report.metrics['accuracy'] > 0.8
        assert 0.0 <= report.metrics['auc'] <= 1.0
        assert report.n_parameters == 6
        assert report.model.fitted

    def test_fit_failure_raises(self, classification_dataset):
        train, test = split(classification_dataset, 0.25, seed=5)
        with pytest.raises(FitFailure):
            finalize(ModelFactory.plugin_factory('logistic_regression'), {'C': -1.0},
                     classification_dataset, train, test, None, ['accuracy'])

    def test_predict_failure_raises(self, classification_dataset):
        train, test = split(classification_dataset, 0.25, seed=5)
        with pytest.raises(PredictFailure, match='no predictions today'):
            finalize(lambda params: BrokenPredictModel(params), {}, classification_dataset,
                     train, test, None, ['accuracy'])

    def test_labels_outside_dataset_classes_raise(self, skewed_dataset):
        dataset, train, test = skewed_dataset
        with pytest.raises(PredictFailure, match='outside the dataset classes'):
            finalize(lambda params: UnknownLabelModel(params), {}, dataset, train, test,
                     None, ['accuracy'])

    def test_report_serialises_without_fitted_objects(self, skewed_dataset):
        dataset, train, test = skewed_dataset
        report = finalize(ModelFactory.plugin_factory('majority'), {}, dataset, train, test,
                          None, ['accuracy'], model_name='baseline')
        data = report.to_dict()
        assert data['model_name'] == 'baseline'
        assert 'model' not in data
        assert data['confusion_table'] == {'labels': [0, 1], 'counts': [[0, 30], [0, 70]]}
