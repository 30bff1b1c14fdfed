"""Metric aggregation and best-point selection."""

import json
import math
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from ..errors import AllPointsFailedError, ConfigurationError
from ..metrics import MetricsWrapper
from .grid import HyperparameterPoint
from .records import MetricRecord, MetricStat, MetricSummary

TIE_TOLERANCE = 1e-12

# Tie-break rules: smaller key wins among points tied on the primary metric
TIE_BREAKS: Dict[str, Callable[[MetricSummary], Tuple]] = {
    'lexicographic': lambda s: (s.point.key,),
    'fewest_parameters': lambda s: (len(s.point), s.point.key),
    'most_folds': lambda s: (-s.successful_fold_count, s.point.key),
}


def _tied(a: float, b: float) -> bool:
    return math.isclose(a, b, rel_tol=TIE_TOLERANCE, abs_tol=TIE_TOLERANCE)


def _record_sort_key(record: MetricRecord) -> Tuple:
    return record.fold_index, json.dumps(record.to_dict(), sort_keys=True, default=str)


def _summarise(point: HyperparameterPoint, records: List[MetricRecord]) -> MetricSummary:
    records = sorted(records, key=_record_sort_key)
    successful = [r for r in records if r.success]

    names: List[str] = []
    for record in successful:
        names.extend(n for n in record.metrics if n not in names)

    stats = {}
    for name in names:
        values = [r.metrics[name] for r in successful
                  if name in r.metrics and np.isfinite(r.metrics[name])]
        if values:
            stats[name] = MetricStat(float(np.mean(values)), float(np.std(values)), len(values))
        else:
            stats[name] = MetricStat(float('nan'), float('nan'), 0)

    return MetricSummary(
        point=point,
        metrics=stats,
        successful_fold_count=len(successful),
        failed_fold_count=len(records) - len(successful),
    )


def _usable(summary: MetricSummary, metric: str) -> bool:
    return summary.successful_fold_count > 0 and math.isfinite(summary.mean(metric))


def rank_summaries(summaries: Iterable[MetricSummary], primary_metric: str) -> List[MetricSummary]:
    """
    Assign competition ranks (1 = best) on ``primary_metric``.

    Points tied within tolerance share a rank. Points with no usable
    primary value stay unranked and are listed last.
    """
    greater = MetricsWrapper.greater_is_better(primary_metric)
    summaries = list(summaries)
    usable = [s for s in summaries if _usable(s, primary_metric)]
    unusable = sorted((s for s in summaries if not _usable(s, primary_metric)), key=lambda s: s.point.key)

    sign = -1.0 if greater else 1.0
    usable.sort(key=lambda s: (sign * s.mean(primary_metric), s.point.key))

    ranked = []
    for position, summary in enumerate(usable, 1):
        if ranked and _tied(ranked[-1].mean(primary_metric), summary.mean(primary_metric)):
            rank = ranked[-1].rank
        else:
            rank = position
        ranked.append(MetricSummary(summary.point, summary.metrics, summary.successful_fold_count,
                                    summary.failed_fold_count, rank=rank))

    return ranked + [MetricSummary(s.point, s.metrics, s.successful_fold_count, s.failed_fold_count)
                     for s in unusable]


def aggregate(records: Iterable[MetricRecord], primary_metric: Optional[str] = None) -> List[MetricSummary]:
    """
    Group records by hyperparameter point and summarise each metric.

    Means and stds use successful records whose value is finite; NaN
    values (metric undefined on that fold) are skipped per metric. The
    output does not depend on the order of ``records``.

    Args:
        records: MetricRecords in any order
        primary_metric: When given, summaries are ranked on it and returned best first

    Returns:
        One MetricSummary per point, ordered by rank (or by point key)
    """
    groups: Dict[HyperparameterPoint, List[MetricRecord]] = {}
    for record in records:
        groups.setdefault(record.point, []).append(record)

    summaries = [_summarise(point, groups[point]) for point in sorted(groups)]
    if primary_metric is None:
        return summaries
    return rank_summaries(summaries, primary_metric)


def select_best(summaries: Sequence[MetricSummary], primary_metric: str,
                tie_break: str = 'lexicographic') -> HyperparameterPoint:
    """
    Pick the point with the best mean ``primary_metric``.

    Direction comes from the metric registry. Points with zero successful
    folds, or no finite primary mean, are never selected.

    Raises:
        ConfigurationError: Unknown metric or tie-break rule
        AllPointsFailedError: No point is selectable
    """
    MetricsWrapper.validate([primary_metric])
    if tie_break not in TIE_BREAKS:
        raise ConfigurationError(f"Unknown tie_break '{tie_break}'. Available: {list(TIE_BREAKS)}")

    candidates = [s for s in summaries if _usable(s, primary_metric)]
    if not candidates:
        raise AllPointsFailedError(
            f"None of {len(summaries)} hyperparameter points has a successful fold "
            f"with a finite '{primary_metric}'"
        )

    values = [s.mean(primary_metric) for s in candidates]
    best_value = max(values) if MetricsWrapper.greater_is_better(primary_metric) else min(values)
    tied = [s for s in candidates if _tied(s.mean(primary_metric), best_value)]

    best = min(tied, key=TIE_BREAKS[tie_break])
    if len(tied) > 1:
        logger.info(f"{len(tied)} points tied on {primary_metric}={best_value:.6f}; "
                    f"'{tie_break}' selected {best.point}")
    excluded = len(summaries) - len(candidates)
    if excluded:
        logger.info(f"{excluded} point(s) excluded from selection (no usable {primary_metric})")
    return best.point
