"""Models module for the model-selection harness.

This module provides the model plugin contract and the registered
classifier families (scikit-learn based):
- Linear: logistic regression, linear discriminant analysis, linear SVM
- Probabilistic: Gaussian naive Bayes
- Instance based: k-nearest-neighbors
- Trees and ensembles: decision tree, random forest, gradient boosting
- Baseline: majority class
"""

# Base classes and factories
from .base import (
    BaseModel,
    ModelFactory,
    PluginFactory,
    safe_int,
    safe_float
)

# Classical models
from .classical import (
    SklearnModel,
    LogisticRegressionModel,
    SVMModel,
    LinearSVMModel,
    KNNModel,
    WeightedKNNModel,
    NaiveBayesModel,
    LDAModel,
    DecisionTreeModel,
    RandomForestModel,
    GradientBoostingModel,
    MajorityClassModel
)

# Public API
__all__ = [
    # Base classes
    'BaseModel',
    'ModelFactory',
    'PluginFactory',

    # Utilities
    'safe_int',
    'safe_float',

    # Classical models
    'SklearnModel',
    'LogisticRegressionModel',
    'SVMModel',
    'LinearSVMModel',
    'KNNModel',
    'WeightedKNNModel',
    'NaiveBayesModel',
    'LDAModel',
    'DecisionTreeModel',
    'RandomForestModel',
    'GradientBoostingModel',
    'MajorityClassModel',
]
