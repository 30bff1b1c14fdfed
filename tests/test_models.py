"""
Tests for cvselect.models.
"""
import pickle

import numpy as np
import pytest

from cvselect.models import (
    BaseModel,
    KNNModel,
    LogisticRegressionModel,
    MajorityClassModel,
    ModelFactory,
    PluginFactory,
    safe_float,
    safe_int,
)
from cvselect.utils import ModelAnalyzer


@pytest.fixture
def classification_data(classification_dataset):
    X, y = classification_dataset.features, classification_dataset.labels
    return {'X_train': X[:90], 'y_train': y[:90], 'X_test': X[90:], 'y_test': y[90:]}


class TestModelFactory:
    """Registry behavior."""

    def test_registered_families(self):
        registered = ModelFactory.list_models()
        for name in ['logistic_regression', 'naive_bayes', 'knn', 'knn_weighted', 'svm',
                     'svm_linear', 'lda', 'decision_tree', 'random_forest',
                     'gradient_boosting', 'majority']:
            assert name in registered

    def test_unknown_model(self):
        with pytest.raises(ValueError, match='Unknown model'):
            ModelFactory.create_model('perceptron_xl')

    def test_resolve_prefers_longest_match(self):
        assert ModelFactory.resolve_model_name('knn') == 'knn'
        assert ModelFactory.resolve_model_name('knn_weighted_v2') == 'knn_weighted'
        assert ModelFactory.resolve_model_name('svm_rbf') == 'svm'
        assert ModelFactory.resolve_model_name('transformer') is None

    def test_variant_registrations(self):
        assert ModelFactory.create_model('svm_linear').params['kernel'] == 'linear'
        assert ModelFactory.create_model('knn_weighted', {'n_neighbors': 3}).params == {
            'n_neighbors': 3, 'weights': 'distance'}

    def test_new_family_needs_only_registration(self, classification_data):
        class ConstantModel(BaseModel):
            def fit(self, X, y):
                self.label = y[0]
                self.fitted = True

            def predict(self, X):
                return np.full(len(X), self.label)

        ModelFactory.register_model('constant_test', ConstantModel)
        model = ModelFactory.create_model('constant_test')
        assert model.fit(classification_data['X_train'], classification_data['y_train']) is None
        assert model.predict_proba(classification_data['X_test']) is None
        assert len(model.predict(classification_data['X_test'])) == 30


class TestPluginFactory:
    """Picklable hyperparameter → plugin callables."""

    def test_grid_values_override_defaults(self):
        factory = ModelFactory.plugin_factory('logistic_regression', C=0.5, max_iter=200)
        model = factory({'C': 2.0})
        assert isinstance(model, LogisticRegressionModel)
        assert model.params['C'] == 2.0
        assert model.params['max_iter'] == 200

    def test_each_call_builds_a_fresh_plugin(self):
        factory = ModelFactory.plugin_factory('knn')
        assert factory({}) is not factory({})

    def test_picklable(self):
        factory = ModelFactory.plugin_factory('knn_weighted', n_neighbors=3)
        restored = pickle.loads(pickle.dumps(factory))
        assert isinstance(restored, PluginFactory)
        assert restored.name == 'knn_weighted'
        assert isinstance(restored({'n_neighbors': 4}), KNNModel)

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            ModelFactory.plugin_factory('transformer')


class TestSklearnModels:
    """Fit/predict through the plugin contract."""

    @pytest.mark.parametrize('name', ['logistic_regression', 'naive_bayes', 'knn', 'svm', 'lda',
                                      'decision_tree', 'random_forest', 'gradient_boosting'])
    def test_fit_predict(self, name, classification_data):
        model = ModelFactory.create_model(name)
        fitted = model.fit(classification_data['X_train'], classification_data['y_train'])
        assert fitted is model
        predictions = model.predict(classification_data['X_test'])
        assert predictions.shape == (30,)
        proba = model.predict_proba(classification_data['X_test'])
        assert proba.shape == (30, 2)
        np.testing.assert_allclose(proba.sum(axis=1), 1.0)
        assert list(model.classes_) == [0, 1]

    def test_predict_before_fit(self):
        with pytest.raises(ValueError, match='not trained'):
            ModelFactory.create_model('lda').predict(np.zeros((2, 2)))

    def test_unknown_hyperparameters_ignored(self):
        model = ModelFactory.create_model('naive_bayes', {'var_smoothing': '1e-5', 'C': 3})
        assert model.params == {'var_smoothing': 1e-5}

    def test_majority_baseline(self):
        model = MajorityClassModel()
        model.fit(np.zeros((10, 1)), np.array([1] * 7 + [0] * 3))
        assert model.predict(np.zeros((4, 1))).tolist() == [1, 1, 1, 1]

    def test_save_and_load(self, classification_data, tmp_path):
        model = ModelFactory.create_model('logistic_regression')
        model.fit(classification_data['X_train'], classification_data['y_train'])
        path = model.save(str(tmp_path / 'lr'))
        assert path.suffix == '.joblib'

        restored = LogisticRegressionModel()
        restored.load(str(path))
        np.testing.assert_array_equal(restored.predict(classification_data['X_test']),
                                      model.predict(classification_data['X_test']))

    def test_save_unfitted(self, tmp_path):
        with pytest.raises(ValueError):
            LogisticRegressionModel().save(str(tmp_path / 'x'))


class TestConversions:
    def test_safe_int(self):
        assert safe_int('1e1', 5) == 10
        assert safe_int(None, 5) == 5
        assert safe_int('abc', 5) == 5

    def test_safe_float(self):
        assert safe_float('1e-3', 0.0) == 1e-3
        assert safe_float(object(), 2.0) == 2.0


class TestModelAnalyzer:
    """Parameter counts of fitted plugins."""

    @pytest.mark.parametrize('name, expected', [
        ('logistic_regression', 6),      # 5 coefficients + intercept
        ('knn', 90 * 5),                 # stored training features
        ('naive_bayes', 2 * 2 * 5),      # per-class means and variances
        ('majority', 2),                 # class priors
    ])
    def test_count_parameters(self, classification_data, name, expected):
        model = ModelFactory.create_model(name)
        model.fit(classification_data['X_train'], classification_data['y_train'])
        assert ModelAnalyzer.count_parameters(model) == expected

    def test_forest_sums_its_trees(self, classification_data):
        model = ModelFactory.create_model('random_forest', {'n_estimators': 3})
        model.fit(classification_data['X_train'], classification_data['y_train'])
        nodes = sum(tree.tree_.node_count for tree in model.model.estimators_)
        assert ModelAnalyzer.count_parameters(model) == nodes

    def test_model_info(self, classification_data):
        model = ModelFactory.create_model('logistic_regression', {'C': 0.5})
        model.fit(classification_data['X_train'], classification_data['y_train'])
        info = ModelAnalyzer.get_model_info(model)
        assert info['type'] == 'LogisticRegression'
        assert info['parameters'] == 6
        assert info['hyperparameters']['C'] == 0.5
