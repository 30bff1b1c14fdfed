"""
Preprocessing Pipeline Implementation
=========================================================

A declarative preprocessing pipeline for model-selection workflows.

A pipeline is an ordered list of stateless step specifications. ``fit`` runs
on a training side only and returns an immutable PreprocessorState; ``apply``
replays that state, in the same order, on any subset (training, held-out or
test).

Pipeline steps:
1. scale        - StandardScaler / MinMaxScaler / RobustScaler
2. project      - PCA or NMF projection to ``n_components``
3. decorrelate  - drop one feature of every highly correlated pair

"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import joblib
import numpy as np
from sklearn.decomposition import NMF, PCA

from ..errors import ConfigurationError, DataShapeError
from .feature_scaler import FeatureScaler, StepState

logger = logging.getLogger(__name__)


class ProjectionStep:
    """Linear projection step (PCA, or NMF for non-negative data)."""

    name = 'project'

    METHODS = ('pca', 'nmf')

    def __init__(self, n_components: Union[int, float] = 2, method: str = 'pca',
                 random_state: int = 42, max_iter: int = 1000):
        if method not in self.METHODS:
            raise ConfigurationError(f"Unknown projection method '{method}'. Available: {list(self.METHODS)}")
        if isinstance(n_components, bool) or n_components is None or n_components <= 0:
            raise ConfigurationError(f"n_components must be positive, got {n_components!r}")
        if method == 'nmf' and not isinstance(n_components, int):
            raise ConfigurationError("NMF needs an integer n_components")
        self.n_components = n_components
        self.method = method
        self.random_state = random_state
        self.max_iter = max_iter

    def fit(self, X_train: np.ndarray) -> StepState:
        n_features = X_train.shape[1]
        if isinstance(self.n_components, int) and self.n_components > min(X_train.shape):
            raise DataShapeError(
                f"Cannot project {X_train.shape[0]}x{n_features} training data onto {self.n_components} components"
            )

        if self.method == 'pca':
            transformer = PCA(n_components=self.n_components, svd_solver='full')
        else:
            if np.any(X_train < 0):
                raise DataShapeError("NMF projection needs non-negative training features")
            transformer = NMF(n_components=self.n_components, init='nndsvd',
                              random_state=self.random_state, max_iter=self.max_iter)
        transformer.fit(X_train)

        n_out = int(transformer.n_components_)
        info: Dict[str, Any] = {'method': self.method}
        if self.method == 'pca':
            info['explained_variance'] = float(np.sum(transformer.explained_variance_ratio_))
        logger.debug(f"  project ({self.method}): {n_features} → {n_out}")

        return StepState(name=self.name, n_features_in=n_features, n_features_out=n_out,
                         transformer=transformer, info=info)

    def get_config(self) -> Dict[str, Any]:
        return {'type': self.name, 'method': self.method, 'n_components': self.n_components,
                'random_state': self.random_state, 'max_iter': self.max_iter}


class DecorrelationStep:
    """
    Remove highly correlated features, fit on training data only.

    For each pair with |correlation| above the threshold (strongest first),
    the feature with the higher average correlation to the remaining
    features is dropped, while at least ``min_features`` are kept.
    """

    name = 'decorrelate'

    def __init__(self, threshold: float = 0.95, min_features: int = 1):
        if not 0.0 < threshold <= 1.0:
            raise ConfigurationError(f"decorrelate threshold must be in (0, 1], got {threshold}")
        if min_features < 1:
            raise ConfigurationError(f"min_features must be >= 1, got {min_features}")
        self.threshold = threshold
        self.min_features = min_features

    def _select_features(self, corr_matrix: np.ndarray) -> np.ndarray:
        n_features = len(corr_matrix)

        high_corr_pairs = []
        for i in range(n_features):
            for j in range(i + 1, n_features):
                if corr_matrix[i, j] > self.threshold:
                    high_corr_pairs.append((corr_matrix[i, j], i, j))
        high_corr_pairs.sort(key=lambda p: (-p[0], p[1], p[2]))

        to_drop = set()
        for _, i, j in high_corr_pairs:
            if i in to_drop or j in to_drop:
                continue
            if n_features - len(to_drop) - 1 < self.min_features:
                break
            avg_i = np.mean([corr_matrix[i, k] for k in range(n_features) if k != i and k not in to_drop])
            avg_j = np.mean([corr_matrix[j, k] for k in range(n_features) if k != j and k not in to_drop])
            to_drop.add(i if avg_i > avg_j else j)

        return np.array([k for k in range(n_features) if k not in to_drop], dtype=int)

    def fit(self, X_train: np.ndarray) -> StepState:
        n_features = X_train.shape[1]
        if n_features < 2:
            keep = np.arange(n_features)
        else:
            with np.errstate(invalid='ignore', divide='ignore'):
                corr = np.abs(np.corrcoef(X_train.T))
            # constant columns have undefined correlation
            corr = np.nan_to_num(corr, nan=0.0)
            keep = self._select_features(corr)

        dropped = sorted(set(range(n_features)) - set(keep.tolist()))
        logger.debug(f"  decorrelate: kept {len(keep)}/{n_features} (threshold={self.threshold})")
        return StepState(name=self.name, n_features_in=n_features, n_features_out=len(keep),
                         indices=tuple(int(k) for k in keep),
                         info={'threshold': self.threshold, 'dropped': dropped})

    def get_config(self) -> Dict[str, Any]:
        return {'type': self.name, 'threshold': self.threshold, 'min_features': self.min_features}


@dataclass(frozen=True, eq=False)
class PreprocessorState:
    """Fitted pipeline state: one StepState per step, in pipeline order."""
    steps: Tuple[StepState, ...]
    n_features_in: int

    @property
    def n_features_out(self) -> int:
        return self.steps[-1].n_features_out if self.steps else self.n_features_in

    def apply(self, X: np.ndarray) -> np.ndarray:
        X = np.asarray(X, dtype=float)
        if X.ndim != 2 or X.shape[1] != self.n_features_in:
            raise DataShapeError(
                f"Feature mismatch: data has {X.shape[1] if X.ndim == 2 else X.shape} features, "
                f"but pipeline was fit on {self.n_features_in} features"
            )
        for step in self.steps:
            X = step.transform(X)
        return X

    def describe(self) -> List[Dict[str, Any]]:
        return [{'name': s.name, 'n_features_in': s.n_features_in,
                 'n_features_out': s.n_features_out, **s.info} for s in self.steps]


class Preprocessor:
    """
    Ordered pipeline of preprocessing steps.

    Example config:
        [{'type': 'scale', 'scaler_type': 'standard'},
         {'type': 'project', 'method': 'pca', 'n_components': 3}]
    """

    STEPS = {
        'scale': FeatureScaler,
        'project': ProjectionStep,
        'decorrelate': DecorrelationStep,
    }

    def __init__(self, steps: Optional[Sequence[Any]] = None):
        self.steps = tuple(steps or ())

    @classmethod
    def from_config(cls, config: Optional[Sequence[Dict[str, Any]]]) -> 'Preprocessor':
        """
        Build a pipeline from a list of step mappings.

        Each mapping needs a 'type' key naming a registered step; steps with
        ``enabled: false`` are skipped.

        Raises:
            ConfigurationError: On an unknown step type or invalid step parameters
        """
        steps = []
        for i, step_config in enumerate(config or []):
            if isinstance(step_config, str):
                step_config = {'type': step_config}
            if not isinstance(step_config, dict) or 'type' not in step_config:
                raise ConfigurationError(f"Preprocessing step {i} must be a mapping with a 'type' key")
            if not step_config.get('enabled', True):
                continue
            params = {k: v for k, v in step_config.items() if k not in ('type', 'enabled')}
            step_type = step_config['type']
            if step_type not in cls.STEPS:
                raise ConfigurationError(f"Unknown preprocessing step '{step_type}'. Available: {list(cls.STEPS)}")
            try:
                steps.append(cls.STEPS[step_type](**params))
            except TypeError as e:
                raise ConfigurationError(f"Invalid parameters for step '{step_type}': {e}") from e
        return cls(steps)

    def fit(self, X_train: np.ndarray) -> PreprocessorState:
        """Fit every step in order on training features only."""
        X = np.asarray(X_train, dtype=float)
        if X.ndim != 2 or X.shape[0] == 0:
            raise DataShapeError(f"Cannot fit preprocessing on data of shape {X.shape}")

        states = []
        for step in self.steps:
            state = step.fit(X)
            X = state.transform(X)
            states.append(state)
        return PreprocessorState(steps=tuple(states), n_features_in=np.asarray(X_train).shape[1])

    @staticmethod
    def apply(state: PreprocessorState, X: np.ndarray) -> np.ndarray:
        return state.apply(X)

    def get_config(self) -> List[Dict[str, Any]]:
        return [step.get_config() for step in self.steps]

    def __repr__(self) -> str:
        names = ' → '.join(step.name for step in self.steps) or 'identity'
        return f"Preprocessor({names})"

    @staticmethod
    def save_state(state: PreprocessorState, filepath: Union[str, Path]) -> None:
        """
        Save a fitted preprocessing state to disk.

        Args:
            state: Fitted state
            filepath: Path to save the state file
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(state, filepath)
        logger.info(f"Saved preprocessing state to {filepath}")

    @staticmethod
    def load_state(filepath: Union[str, Path]) -> PreprocessorState:
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Preprocessing state not found: {filepath}")
        state = joblib.load(filepath)
        logger.info(f"Loaded preprocessing state from {filepath}")
        return state
