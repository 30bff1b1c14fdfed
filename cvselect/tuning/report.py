"""Structured run report with JSON and YAML round trips."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
import yaml

from ..utils.config import HarnessSettings
from .grid import HyperparameterPoint
from .records import FinalReport, MetricRecord, MetricSummary


@dataclass(eq=False)
class HarnessReport:
    """
    Output artifact of one model-selection run.

    Cross-validation summaries (selection signal) and the final test
    evaluation (reported performance) live in separate sections.
    """
    model_name: str
    settings: HarnessSettings
    summaries: List[MetricSummary]
    selected_point: Optional[HyperparameterPoint]
    final: Optional[FinalReport]
    records: List[MetricRecord] = field(default_factory=list)
    incomplete_points: List[HyperparameterPoint] = field(default_factory=list)
    cancelled: bool = False

    @property
    def record_counts(self) -> Dict[str, int]:
        successful = sum(1 for r in self.records if r.success)
        return {'total': len(self.records), 'successful': successful,
                'failed': len(self.records) - successful}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'model_name': self.model_name,
            'settings': self.settings.to_dict(),
            'cross_validation': {
                'summaries': [s.to_dict() for s in self.summaries],
                'incomplete_points': [p.as_dict() for p in self.incomplete_points],
                'cancelled': self.cancelled,
                'record_counts': self.record_counts,
                'records': [r.to_dict() for r in self.records],
            },
            'selected_point': None if self.selected_point is None else self.selected_point.as_dict(),
            'final_evaluation': None if self.final is None else self.final.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HarnessReport':
        cv = data.get('cross_validation', {})
        selected = data.get('selected_point')
        final = data.get('final_evaluation')
        return cls(
            model_name=data['model_name'],
            settings=HarnessSettings.from_dict(data['settings']),
            summaries=[MetricSummary.from_dict(s) for s in cv.get('summaries', [])],
            selected_point=None if selected is None else HyperparameterPoint(selected),
            final=None if final is None else FinalReport.from_dict(final),
            records=[MetricRecord.from_dict(r) for r in cv.get('records', [])],
            incomplete_points=[HyperparameterPoint(p) for p in cv.get('incomplete_points', [])],
            cancelled=bool(cv.get('cancelled', False)),
        )

    def to_json(self, path: Union[str, Path, None] = None, indent: int = 2) -> str:
        """Serialise to JSON (NaN written as ``NaN``); also writes ``path`` when given."""
        text = json.dumps(self.to_dict(), indent=indent)
        if path is not None:
            Path(path).write_text(text)
        return text

    @classmethod
    def from_json(cls, text: str) -> 'HarnessReport':
        return cls.from_dict(json.loads(text))

    def to_yaml(self, path: Union[str, Path, None] = None) -> str:
        text = yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)
        if path is not None:
            Path(path).write_text(text)
        return text

    @classmethod
    def from_yaml(cls, text: str) -> 'HarnessReport':
        return cls.from_dict(yaml.safe_load(text))

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'HarnessReport':
        """Read a report written by :meth:`to_json` or :meth:`to_yaml`."""
        path = Path(path)
        text = path.read_text()
        if path.suffix in ('.yaml', '.yml'):
            return cls.from_yaml(text)
        return cls.from_json(text)

    def summaries_frame(self) -> pd.DataFrame:
        """One row per summarised point, best rank first."""
        return pd.DataFrame([s.to_row() for s in self.summaries])

    def best_cv_mean(self) -> float:
        """Mean primary metric of the selected point across folds (selection signal)."""
        metric = self.settings.primary_metric
        for summary in self.summaries:
            if summary.point == self.selected_point:
                return summary.mean(metric)
        return float('nan')

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HarnessReport):
            return NotImplemented
        return (json.dumps(self.to_dict(), sort_keys=True)
                == json.dumps(other.to_dict(), sort_keys=True))

    __hash__ = None
