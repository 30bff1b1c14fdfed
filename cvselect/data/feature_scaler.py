"""
Feature Scaler Step
===================

Scaling step for preprocessing pipelines. Fitting returns an immutable
StepState; the step object itself never holds fitted statistics.

"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np
from sklearn.preprocessing import MinMaxScaler, RobustScaler, StandardScaler

from ..errors import ConfigurationError, DataShapeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class StepState:
    """
    Fitted state of one preprocessing step.

    Attributes:
        name: Step type name ('scale', 'project', 'decorrelate')
        n_features_in: Feature count seen at fit
        n_features_out: Feature count produced by apply
        transformer: Fitted scikit-learn transformer, if the step uses one
        indices: Kept column indices, if the step selects columns
        info: Extra values worth reporting (scaler type, dropped columns, ...)
    """
    name: str
    n_features_in: int
    n_features_out: int
    transformer: Any = None
    indices: Optional[Tuple[int, ...]] = None
    info: Dict[str, Any] = field(default_factory=dict)

    def transform(self, X: np.ndarray) -> np.ndarray:
        if X.ndim != 2 or X.shape[1] != self.n_features_in:
            raise DataShapeError(
                f"Feature mismatch in '{self.name}' step: data has "
                f"{X.shape[1] if X.ndim == 2 else X.shape} features, step was fit on {self.n_features_in}"
            )
        if self.indices is not None:
            X = X[:, list(self.indices)]
        if self.transformer is not None:
            X = self.transformer.transform(X)
        return np.asarray(X, dtype=float)


class FeatureScaler:
    """Scaling step ('standard', 'minmax' or 'robust')."""

    name = 'scale'

    SCALERS = {
        'standard': StandardScaler,
        'minmax': MinMaxScaler,
        'robust': RobustScaler
    }

    def __init__(self, scaler_type: str = 'standard'):
        """
        Initialize scaler step.

        Args:
            scaler_type: Type of scaler ('standard', 'minmax', 'robust')

        Raises:
            ConfigurationError: If the scaler type is unknown
        """
        if scaler_type not in self.SCALERS:
            raise ConfigurationError(
                f"Unknown scaler '{scaler_type}'. Available: {list(self.SCALERS)}"
            )
        self.scaler_type = scaler_type

    def fit(self, X_train: np.ndarray) -> StepState:
        """Fit a fresh scaler on training data only."""
        scaler = self.SCALERS[self.scaler_type]()
        scaler.fit(X_train)
        logger.debug(f"Fitted {self.scaler_type} scaler on {X_train.shape[1]} features")
        return StepState(
            name=self.name,
            n_features_in=X_train.shape[1],
            n_features_out=X_train.shape[1],
            transformer=scaler,
            info={'scaler_type': self.scaler_type},
        )

    def get_config(self) -> Dict[str, Any]:
        return {'type': self.name, 'scaler_type': self.scaler_type}
