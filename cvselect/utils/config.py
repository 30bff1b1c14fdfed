"""Configuration management for the model-selection harness."""

import copy
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from ..errors import ConfigurationError
from ..metrics import MetricsWrapper

logger = logging.getLogger(__name__)

SETTINGS_SECTIONS = ('selection', 'evaluation', 'execution')


class Config:
    """
    YAML configuration loader that preserves all keys while expanding references.

    A model's ``preprocessing: name`` string is expanded to the named
    pipeline from the top-level ``preprocessing`` section. All other values
    remain untouched.
    """

    def __init__(self, config_path: Union[str, Path, None] = None, config: Optional[Dict[str, Any]] = None):
        """Load configuration from a YAML file, or wrap an already-parsed dict."""
        self.config_path = Path(config_path) if config_path is not None else None
        if config is not None:
            self.config = copy.deepcopy(config)
        elif self.config_path is not None:
            with open(self.config_path, 'r') as f:
                self.config = yaml.safe_load(f) or {}
        else:
            raise ConfigurationError("Config needs a path or a dict")

        if not isinstance(self.config, dict):
            raise ConfigurationError(f"Top level of {self.config_path} must be a mapping")

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'Config':
        return cls(config=config)

    def get_model_config(self, model_name: str) -> Dict[str, Any]:
        """
        Get model configuration with expanded references.

        Args:
            model_name: Model name from 'models' section

        Returns:
            Deep copy of model config with the preprocessing reference expanded

        Raises:
            ConfigurationError: If the model or its named pipeline is not found
        """
        models = self.config.get('models', {}) or {}
        if model_name not in models:
            raise ConfigurationError(f"Model '{model_name}' not found. Available: {list(models)}")

        config = copy.deepcopy(models[model_name] or {})

        if isinstance(config.get('preprocessing'), str):
            config['preprocessing'] = self._get_named_config('preprocessing', config['preprocessing'])
        elif 'preprocessing' not in config and 'default' in (self.config.get('preprocessing') or {}):
            config['preprocessing'] = self._get_named_config('preprocessing', 'default')

        return config

    def _get_named_config(self, section: str, name: str) -> Any:
        """
        Get named configuration from a section.

        Raises:
            ConfigurationError: If the name is not defined in the section
        """
        configs = self.config.get(section, {}) or {}
        if name not in configs:
            raise ConfigurationError(
                f"'{name}' not defined in '{section}' section. Available: {list(configs)}"
            )
        return copy.deepcopy(configs[name])

    def enabled_models(self) -> List[str]:
        """Names of models with ``enabled: true`` (missing flag counts as enabled)."""
        models = self.config.get('models', {}) or {}
        return [name for name, cfg in models.items() if (cfg or {}).get('enabled', True)]

    # Simple getters for other sections
    def get_data_config(self) -> Dict[str, Any]:
        """Get data configuration."""
        return self.config.get('data', {}) or {}

    def get_selection_config(self) -> Dict[str, Any]:
        """Get split/fold/selection configuration."""
        return self.config.get('selection', {}) or {}

    def get_evaluation_config(self) -> Dict[str, Any]:
        """Get evaluation configuration."""
        return self.config.get('evaluation', {}) or {}

    def get_execution_config(self) -> Dict[str, Any]:
        """Get worker pool configuration."""
        return self.config.get('execution', {}) or {}

    def get_output_config(self) -> Dict[str, Any]:
        """Get output configuration."""
        return self.config.get('output', {}) or {}

    def __getitem__(self, key: str) -> Any:
        """Allow dict-like access to config."""
        return self.config[key]

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value with default."""
        return self.config.get(key, default)


@dataclass
class HarnessSettings:
    """
    Options recognised by one model-selection run.

    Attributes:
        test_fraction: Share of the dataset held out for the final test
        fold_count: Number of cross-validation folds over the training partition
        stratify: Preserve label proportions in the split and folds
        seed: Random state for the split and folds
        grid: Dict of lists (cartesian) or list of dicts (explicit); None means plugin defaults
        metrics: Metric names computed per fold and on the test partition
        primary_metric: Selection metric (defaults to the first metric)
        tie_break: 'lexicographic', 'fewest_parameters' or 'most_folds'
        n_jobs: Worker count for tuning (-1 = all cores)
        backend: 'thread', 'process' or 'sequential'
        positive_label: Positive class for binary precision/recall/f1 (defaults to the largest label)
    """
    test_fraction: float = 0.2
    fold_count: int = 5
    stratify: bool = True
    seed: int = 42
    grid: Any = None
    metrics: Tuple[str, ...] = ('accuracy',)
    primary_metric: Optional[str] = None
    tie_break: str = 'lexicographic'
    n_jobs: int = -1
    backend: str = 'thread'
    positive_label: Any = None

    def __post_init__(self):
        if isinstance(self.metrics, str):
            self.metrics = (self.metrics,)
        self.metrics = tuple(self.metrics)
        if self.primary_metric is None and self.metrics:
            self.primary_metric = self.metrics[0]
        self.validate()

    def validate(self) -> 'HarnessSettings':
        """
        Check every option that can be checked without the dataset.

        Raises:
            ConfigurationError: On the first invalid option
        """
        from ..tuning.aggregator import TIE_BREAKS
        from ..tuning.grid_search import GridSearchTuner

        if isinstance(self.test_fraction, bool) or not isinstance(self.test_fraction, (int, float)) \
                or not 0.0 < self.test_fraction < 1.0:
            raise ConfigurationError(f"test_fraction must be in (0, 1), got {self.test_fraction!r}")
        if isinstance(self.fold_count, bool) or not isinstance(self.fold_count, int) or self.fold_count < 2:
            raise ConfigurationError(f"fold_count must be an integer >= 2, got {self.fold_count!r}")
        if not isinstance(self.stratify, bool):
            raise ConfigurationError(f"stratify must be true or false, got {self.stratify!r}")
        if isinstance(self.seed, bool) or not isinstance(self.seed, int) or not 0 <= self.seed < 2 ** 32:
            raise ConfigurationError(f"seed must be an integer in [0, 2**32), got {self.seed!r}")

        MetricsWrapper.validate(self.metrics)
        if self.primary_metric not in self.metrics:
            raise ConfigurationError(
                f"primary_metric '{self.primary_metric}' must be one of the computed metrics {list(self.metrics)}"
            )
        if self.tie_break not in TIE_BREAKS:
            raise ConfigurationError(f"Unknown tie_break '{self.tie_break}'. Available: {list(TIE_BREAKS)}")
        if self.backend not in GridSearchTuner.BACKENDS:
            raise ConfigurationError(f"Unknown backend '{self.backend}'. Available: {list(GridSearchTuner.BACKENDS)}")
        if isinstance(self.n_jobs, bool) or not isinstance(self.n_jobs, int) or self.n_jobs == 0 or self.n_jobs < -1:
            raise ConfigurationError(f"n_jobs must be -1 or a positive integer, got {self.n_jobs!r}")
        return self

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HarnessSettings':
        names = set(cls.field_names())
        unknown = sorted(set(data) - names)
        if unknown:
            raise ConfigurationError(f"Unknown settings {unknown}. Recognised: {sorted(names)}")
        return cls(**data)

    @classmethod
    def from_config(cls, config: Config, model_name: Optional[str] = None) -> 'HarnessSettings':
        """
        Merge the global ``selection``/``evaluation``/``execution`` sections
        with a model's overrides.

        A model may override any setting at its top level (e.g. ``grid``,
        ``fold_count``) or inside its own copy of one of the three sections.
        """
        names = set(cls.field_names())
        merged: Dict[str, Any] = {}
        for section in SETTINGS_SECTIONS:
            merged.update({k: v for k, v in (config.get(section) or {}).items() if k in names})

        if model_name is not None:
            model_config = config.get_model_config(model_name)
            for section in SETTINGS_SECTIONS:
                merged.update({k: v for k, v in (model_config.get(section) or {}).items() if k in names})
            merged.update({k: v for k, v in model_config.items() if k in names})

        logger.debug(f"Settings for {model_name or 'all models'}: {merged}")
        return cls(**merged)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['metrics'] = list(self.metrics)
        return data
