"""Model plugin contract and registry.

Every classifier family reaches the model-selection harness through this
contract and nothing else:

- BaseModel: fit / predict / optional predict_proba, joblib persistence
- ModelFactory: registry mapping a model-kind name to a plugin class
- PluginFactory: picklable callable turning a hyperparameter point into a fresh plugin
"""

from abc import ABC, abstractmethod
import numpy as np
from typing import Any, Dict, Mapping, Optional
from loguru import logger
from pathlib import Path
import joblib


def safe_int(value: Any, default: int) -> int:
    """Integer from YAML-ish input ('1e1', 10.0, None); ``default`` when it does not parse."""
    if value is None:
        return default
    try:
        return int(float(str(value)))
    except (TypeError, ValueError):
        return default


def safe_float(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        return float(str(value))
    except (TypeError, ValueError):
        return default


class BaseModel(ABC):
    """
    Abstract base class for all model plugins.

    A plugin instance is created from one hyperparameter point, fit once,
    and then used only for prediction. Instances are never shared between
    tuning units.

    Attributes:
        config: Hyperparameters the plugin was created with
        model: The underlying estimator (None until a subclass builds one)
        fitted: Set by ``fit``
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = dict(config or {})
        self.model = None
        self.fitted = False
        self.model_name = self.__class__.__name__

    @abstractmethod
    def fit(self, X: np.ndarray, y: np.ndarray) -> Optional['BaseModel']:
        """Fit on (n_samples, n_features) X and (n_samples,) y; returning None means self."""

    @abstractmethod
    def predict(self, X: np.ndarray) -> np.ndarray:
        """One label per row of X."""

    def predict_proba(self, X: np.ndarray) -> Optional[np.ndarray]:
        """(n_samples, n_classes) probabilities in ``classes_`` order, or None when unsupported."""
        if hasattr(self.model, 'predict_proba'):
            return self.model.predict_proba(X)
        return None

    @property
    def classes_(self) -> Optional[np.ndarray]:
        return getattr(self.model, 'classes_', None)

    def save(self, filepath: str) -> Path:
        """
        Persist the fitted estimator and its hyperparameters with joblib.

        Returns:
            Path actually written (suffix forced to .joblib)

        Raises:
            ValueError: If the plugin has not been fit
        """
        if not self.fitted:
            raise ValueError("Cannot save unfitted model")

        filepath = Path(filepath).with_suffix('.joblib')
        filepath.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump({'model_name': self.model_name, 'hyperparameters': self.config,
                     'fitted': True, 'model': self.model}, filepath)
        logger.info(f"Saved {self.model_name}: {filepath}")
        return filepath

    def load(self, filepath: str) -> None:
        """Restore an estimator written by :meth:`save` into this plugin."""
        filepath = Path(filepath).with_suffix('.joblib')
        saved = joblib.load(filepath)
        if not saved.get('fitted', False):
            raise ValueError("Cannot load unfitted model")

        self.config = saved.get('hyperparameters', {})
        self.model_name = saved.get('model_name', self.__class__.__name__)
        self.model = saved['model']
        self.fitted = True
        logger.info(f"Loaded {self.model_name}: {filepath}")


class ModelFactory:
    """
    Registry of model plugins by kind name.

    Adding a model kind never touches the harness: register it and refer to
    it by name in the configuration.
    """

    _models: Dict[str, Any] = {}

    @classmethod
    def register_model(cls, name: str, model_class: type) -> None:
        """Register a callable accepting ``config=`` and returning a BaseModel."""
        cls._models[name] = model_class

    @classmethod
    def create_model(cls, name: str, config: Optional[Dict[str, Any]] = None, **kwargs) -> BaseModel:
        """
        Create an unfitted plugin by registered name.

        ``kwargs`` are merged over ``config``.

        Raises:
            ValueError: If the name is not registered
        """
        if name not in cls._models:
            raise ValueError(f"Unknown model: {name}. Available: {cls.list_models()}")
        return cls._models[name](config={**(config or {}), **kwargs})

    @classmethod
    def list_models(cls) -> list:
        return list(cls._models)

    @classmethod
    def resolve_model_name(cls, model_name: str) -> Optional[str]:
        """
        Resolve a configured name to a registered one.

        An exact match wins; otherwise the longest registered name the given
        name starts with or contains (so 'knn_weighted_v2' resolves to
        'knn_weighted', not 'knn'). Returns None when nothing matches.
        """
        if model_name in cls._models:
            return model_name

        matches = [registered for registered in cls._models
                   if model_name.startswith(registered) or registered in model_name]
        if not matches:
            return None
        return max(matches, key=len)

    @classmethod
    def plugin_factory(cls, name: str, **defaults) -> 'PluginFactory':
        """
        Build a picklable plugin factory for one model kind.

        Args:
            name: Registered (or resolvable) model name
            **defaults: Fixed settings (e.g. random_state); grid values override them

        Raises:
            ValueError: If the name does not resolve to a registered model
        """
        resolved = cls.resolve_model_name(name)
        if resolved is None:
            raise ValueError(f"Unknown model: {name}. Available: {cls.list_models()}")
        return PluginFactory(resolved, defaults)


class PluginFactory:
    """Callable ``hyperparameters -> BaseModel`` for one registered model kind."""

    def __init__(self, name: str, defaults: Optional[Mapping[str, Any]] = None):
        self.name = name
        self.defaults = dict(defaults or {})

    def __call__(self, hyperparameters: Optional[Mapping[str, Any]] = None) -> BaseModel:
        config = {**self.defaults, **dict(hyperparameters or {})}
        return ModelFactory.create_model(self.name, config=config)

    def __repr__(self) -> str:
        return f"PluginFactory({self.name!r}, defaults={self.defaults})"
