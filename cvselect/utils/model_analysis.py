"""Model analysis utilities for fitted plugins."""

import logging
from typing import Any, Dict

import numpy as np

logger = logging.getLogger(__name__)


class ModelAnalyzer:
    """Utility class for analysing fitted scikit-learn based plugins."""

    @staticmethod
    def _unwrap(model: Any) -> Any:
        if hasattr(model, 'model') and model.model is not None:
            return model.model
        return model

    @staticmethod
    def count_parameters(model: Any) -> int:
        """
        Count learned parameters in a fitted model.

        Linear models count coefficients and intercepts, trees count nodes,
        instance-based models count stored feature values, and naive Bayes
        counts per-class means and variances. Custom plugins may expose
        their own ``count_parameters``.

        Args:
            model: A plugin (``BaseModel``) or a bare estimator

        Returns:
            Total number of parameters (0 when nothing is recognised)
        """
        if hasattr(model, 'count_parameters') and callable(model.count_parameters):
            return int(model.count_parameters())

        estimator = ModelAnalyzer._unwrap(model)
        param_count = 0

        # Linear models (LogisticRegression, LDA, linear SVM)
        if hasattr(estimator, 'coef_'):
            param_count += np.size(estimator.coef_)
            if hasattr(estimator, 'intercept_'):
                param_count += np.size(estimator.intercept_)

        # Single decision tree
        elif hasattr(estimator, 'tree_'):
            param_count += estimator.tree_.node_count

        # Ensembles (random forest, gradient boosting)
        elif hasattr(estimator, 'estimators_'):
            for member in np.ravel(np.asarray(estimator.estimators_, dtype=object)):
                param_count += ModelAnalyzer.count_parameters(member)

        # Kernel SVM
        elif hasattr(estimator, 'support_vectors_'):
            param_count += estimator.support_vectors_.size + np.size(estimator.dual_coef_)

        # KNN stores the training set
        elif hasattr(estimator, '_fit_X'):
            param_count += estimator._fit_X.size

        # Gaussian naive Bayes
        elif hasattr(estimator, 'theta_'):
            param_count += estimator.theta_.size
            if hasattr(estimator, 'var_'):
                param_count += estimator.var_.size

        # Majority baseline
        elif hasattr(estimator, 'class_prior_'):
            param_count += np.size(estimator.class_prior_)

        else:
            logger.debug(f"No parameter count rule for {type(estimator).__name__}")

        return int(param_count)

    @staticmethod
    def get_model_info(model: Any) -> Dict[str, Any]:
        """
        Get a short description of a fitted model.

        Returns:
            Dictionary with parameter count, estimator type and hyperparameters
        """
        estimator = ModelAnalyzer._unwrap(model)
        info = {
            'parameters': ModelAnalyzer.count_parameters(model),
            'type': type(estimator).__name__,
        }
        if hasattr(estimator, 'get_params'):
            info['hyperparameters'] = {k: v for k, v in estimator.get_params(deep=False).items()
                                       if isinstance(v, (int, float, str, bool, type(None)))}
        return info
