"""Hyperparameter points and grids."""

import json
from collections.abc import Mapping
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

import numpy as np
from sklearn.model_selection import ParameterGrid

from ..errors import ConfigurationError


def _plain(value: Any) -> Any:
    """Convert numpy scalars/arrays to plain Python values for canonical keys."""
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class HyperparameterPoint(Mapping):
    """
    Immutable, hashable mapping of hyperparameter name to value.

    Two points are equal when their canonical keys (sorted-key JSON) are
    equal; ordering is lexicographic on that key.
    """

    __slots__ = ('_params', '_key')

    def __init__(self, params: Optional[Mapping[str, Any]] = None):
        params = {str(k): _plain(v) for k, v in dict(params or {}).items()}
        try:
            key = json.dumps(params, sort_keys=True, separators=(',', ':'))
        except TypeError as e:
            raise ConfigurationError(f"Hyperparameter values must be JSON-representable: {e}")
        object.__setattr__(self, '_params', params)
        object.__setattr__(self, '_key', key)

    def __setattr__(self, name, value):
        raise AttributeError("HyperparameterPoint is immutable")

    @property
    def key(self) -> str:
        return self._key

    def __getitem__(self, name: str) -> Any:
        return self._params[name]

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._params))

    def __len__(self) -> int:
        return len(self._params)

    def __hash__(self) -> int:
        return hash(self._key)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HyperparameterPoint):
            return self._key == other._key
        if isinstance(other, Mapping):
            return self == HyperparameterPoint(other)
        return NotImplemented

    def __lt__(self, other: 'HyperparameterPoint') -> bool:
        if not isinstance(other, HyperparameterPoint):
            return NotImplemented
        return self._key < other._key

    def __reduce__(self):
        return (HyperparameterPoint, (self._params,))

    def as_dict(self) -> Dict[str, Any]:
        return {k: self._params[k] for k in sorted(self._params)}

    def __repr__(self) -> str:
        return f"HyperparameterPoint({self._key})"

    def __str__(self) -> str:
        return self._key


class HyperparameterGrid:
    """
    Ordered, duplicate-free collection of hyperparameter points.

    Examples:
        >>> HyperparameterGrid.cartesian({'C': [0.1, 1.0], 'penalty': ['l2']})
        >>> HyperparameterGrid.explicit([{'C': 0.1}, {'C': 1.0}])
    """

    def __init__(self, points: Sequence[Union[HyperparameterPoint, Mapping[str, Any]]]):
        normalised = [p if isinstance(p, HyperparameterPoint) else HyperparameterPoint(p) for p in points]
        if not normalised:
            raise ConfigurationError("Hyperparameter grid has no points")
        seen = set()
        duplicates = []
        for point in normalised:
            if point in seen:
                duplicates.append(point.key)
            seen.add(point)
        if duplicates:
            raise ConfigurationError(f"Duplicate hyperparameter points in grid: {duplicates}")
        self._points = tuple(normalised)

    @classmethod
    def cartesian(cls, param_grid: Mapping[str, Sequence[Any]]) -> 'HyperparameterGrid':
        """Expand a mapping of name → candidate values; ``{}`` gives one default point."""
        if not param_grid:
            return cls([HyperparameterPoint()])
        for name, values in param_grid.items():
            if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
                raise ConfigurationError(f"Grid values for '{name}' must be a list, got {values!r}")
            if len(values) == 0:
                raise ConfigurationError(f"Grid values for '{name}' are empty")
        return cls([HyperparameterPoint(p) for p in ParameterGrid(dict(param_grid))])

    @classmethod
    def explicit(cls, points: Sequence[Mapping[str, Any]]) -> 'HyperparameterGrid':
        return cls([HyperparameterPoint(p) for p in points])

    @classmethod
    def from_spec(cls, spec: Union[None, Mapping[str, Any], Sequence[Mapping[str, Any]], 'HyperparameterGrid']
                  ) -> 'HyperparameterGrid':
        """Build a grid from config: a dict of lists (cartesian) or a list of dicts (explicit)."""
        if isinstance(spec, HyperparameterGrid):
            return spec
        if spec is None:
            return cls.cartesian({})
        if isinstance(spec, Mapping):
            return cls.cartesian(spec)
        if isinstance(spec, Sequence) and not isinstance(spec, (str, bytes)):
            if not all(isinstance(p, Mapping) for p in spec):
                raise ConfigurationError("An explicit grid must be a list of mappings")
            return cls.explicit(spec)
        raise ConfigurationError(f"Unsupported grid specification: {spec!r}")

    @property
    def points(self) -> tuple:
        return self._points

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[HyperparameterPoint]:
        return iter(self._points)

    def __contains__(self, point: Any) -> bool:
        return point in self._points

    def to_list(self) -> List[Dict[str, Any]]:
        return [p.as_dict() for p in self._points]

    def __repr__(self) -> str:
        return f"HyperparameterGrid({len(self)} points)"
