"""Hyperparameter tuning, aggregation, selection and final evaluation."""

from .grid import HyperparameterPoint, HyperparameterGrid
from .records import WorkItem, MetricRecord, MetricStat, MetricSummary, FinalReport
from .resample import ResampleEvaluator
from .aggregator import aggregate, rank_summaries, select_best, TIE_BREAKS
from .grid_search import GridSearchTuner, TuningResult
from .final import FinalEvaluator, finalize
from .report import HarnessReport

__all__ = [
    'HyperparameterPoint',
    'HyperparameterGrid',
    'WorkItem',
    'MetricRecord',
    'MetricStat',
    'MetricSummary',
    'FinalReport',
    'ResampleEvaluator',
    'aggregate',
    'rank_summaries',
    'select_best',
    'TIE_BREAKS',
    'GridSearchTuner',
    'TuningResult',
    'FinalEvaluator',
    'finalize',
    'HarnessReport',
]
