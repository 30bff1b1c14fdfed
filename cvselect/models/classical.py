"""Scikit-learn classifier families exposed as model plugins."""

import numpy as np
from typing import Any, Callable, Dict, Optional
from sklearn.linear_model import LogisticRegression
from sklearn.svm import SVC
from sklearn.ensemble import RandomForestClassifier, GradientBoostingClassifier
from sklearn.neighbors import KNeighborsClassifier
from sklearn.naive_bayes import GaussianNB
from sklearn.tree import DecisionTreeClassifier
from sklearn.discriminant_analysis import LinearDiscriminantAnalysis
from sklearn.dummy import DummyClassifier
from loguru import logger

from .base import BaseModel, ModelFactory, safe_float, safe_int


class SklearnModel(BaseModel):
    """
    Plugin wrapping one scikit-learn classifier class.

    Subclasses declare the estimator and its settings:

    Attributes:
        estimator_class: scikit-learn classifier to build
        defaults: Values used unless the hyperparameter point sets them
        fixed: Values that always win over the point (variant families)
        coercions: Hyperparameter -> converter for values that may arrive as strings
    """

    estimator_class: type = None
    defaults: Dict[str, Any] = {}
    fixed: Dict[str, Any] = {}
    coercions: Dict[str, Callable[[Any], Any]] = {}

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        accepted = set(self.estimator_class().get_params(deep=False))

        params = dict(self.defaults)
        ignored = []
        for key, value in self.config.items():
            if key not in accepted:
                ignored.append(key)
                continue
            convert = self.coercions.get(key)
            params[key] = convert(value) if convert else value
        params.update(self.fixed)

        # random_state is offered to every family; only some accept it
        ignored = [k for k in ignored if k != 'random_state']
        if ignored:
            logger.warning(f"{self.estimator_class.__name__} ignores unknown hyperparameters: {ignored}")

        self.params = params
        self.model = self.estimator_class(**params)

    def fit(self, X: np.ndarray, y: np.ndarray) -> 'SklearnModel':
        self.model.fit(X, y)
        self.fitted = True
        logger.debug(f"{self.model_name} fit on {len(y)} samples with {self.params}")
        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        if not self.fitted:
            raise ValueError("Model not trained")
        return self.model.predict(X)

    def predict_proba(self, X: np.ndarray) -> Optional[np.ndarray]:
        if not self.fitted:
            raise ValueError("Model not trained")
        return super().predict_proba(X)


class LogisticRegressionModel(SklearnModel):
    """Logistic Regression classifier."""
    estimator_class = LogisticRegression
    defaults = {'max_iter': 1000, 'random_state': 42}
    coercions = {'C': lambda v: safe_float(v, 1.0)}


class SVMModel(SklearnModel):
    """Support Vector Machine; probability estimates on unless the point turns them off."""
    estimator_class = SVC
    defaults = {'probability': True, 'gamma': 'scale', 'random_state': 42}
    coercions = {'C': lambda v: safe_float(v, 1.0)}


class LinearSVMModel(SVMModel):
    fixed = {'kernel': 'linear'}


class KNNModel(SklearnModel):
    """K-Nearest Neighbors classifier."""
    estimator_class = KNeighborsClassifier
    defaults = {'n_neighbors': 5}
    coercions = {'n_neighbors': lambda v: safe_int(v, 5)}


class WeightedKNNModel(KNNModel):
    fixed = {'weights': 'distance'}


class NaiveBayesModel(SklearnModel):
    """Gaussian Naive Bayes classifier."""
    estimator_class = GaussianNB
    defaults = {'var_smoothing': 1e-9}
    coercions = {'var_smoothing': lambda v: safe_float(v, 1e-9)}


class LDAModel(SklearnModel):
    """Linear Discriminant Analysis classifier."""
    estimator_class = LinearDiscriminantAnalysis
    defaults = {'solver': 'svd'}


class DecisionTreeModel(SklearnModel):
    estimator_class = DecisionTreeClassifier
    defaults = {'random_state': 42}


class RandomForestModel(SklearnModel):
    """Random Forest classifier."""
    estimator_class = RandomForestClassifier
    # n_jobs=1: tuning units already run in parallel
    defaults = {'n_estimators': 100, 'n_jobs': 1, 'random_state': 42}
    coercions = {'n_estimators': lambda v: safe_int(v, 100)}


class GradientBoostingModel(SklearnModel):
    estimator_class = GradientBoostingClassifier
    defaults = {'n_estimators': 100, 'random_state': 42}
    coercions = {'n_estimators': lambda v: safe_int(v, 100)}


class MajorityClassModel(SklearnModel):
    """Baseline that always predicts the most frequent training label."""
    estimator_class = DummyClassifier
    defaults = {'strategy': 'most_frequent'}


for _name, _plugin in [
    ('logistic_regression', LogisticRegressionModel),
    ('svm', SVMModel),
    ('svm_linear', LinearSVMModel),
    ('knn', KNNModel),
    ('knn_weighted', WeightedKNNModel),
    ('naive_bayes', NaiveBayesModel),
    ('lda', LDAModel),
    ('decision_tree', DecisionTreeModel),
    ('random_forest', RandomForestModel),
    ('gradient_boosting', GradientBoostingModel),
    ('majority', MajorityClassModel),
]:
    ModelFactory.register_model(_name, _plugin)
