"""Grid search over (point × fold) work items on a worker pool."""

import os
import threading
from concurrent.futures import Future, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from loguru import logger

from ..data.dataset import Dataset, FoldSet
from ..data.preprocessing_pipeline import Preprocessor
from ..errors import ConfigurationError
from ..models.base import BaseModel
from .aggregator import aggregate
from .grid import HyperparameterGrid, HyperparameterPoint
from .records import MetricRecord, MetricSummary, WorkItem
from .resample import ResampleEvaluator

# Evaluator installed once per worker process by the pool initializer
_worker_evaluator: Optional[ResampleEvaluator] = None


def _install_evaluator(evaluator: ResampleEvaluator) -> None:
    global _worker_evaluator
    _worker_evaluator = evaluator


def _evaluate_in_worker(item: WorkItem) -> MetricRecord:
    return _worker_evaluator.evaluate_unit(item)


@dataclass
class TuningResult:
    """Raw records plus summaries of every point whose folds all finished."""
    records: List[MetricRecord]
    summaries: List[MetricSummary]
    cancelled: bool = False
    incomplete_points: List[HyperparameterPoint] = field(default_factory=list)
    n_units: int = 0

    @property
    def failed_records(self) -> List[MetricRecord]:
        return [r for r in self.records if not r.success]


class GridSearchTuner:
    """
    Evaluates every hyperparameter point on every fold.

    Work items are the flat product (point × fold) and run on a
    ``concurrent.futures`` pool. Units share only the read-only Dataset.

    Args:
        n_jobs: Worker count; -1 uses all cores
        backend: 'thread', 'process' or 'sequential'
    """

    BACKENDS = ('thread', 'process', 'sequential')

    def __init__(self, n_jobs: int = -1, backend: str = 'thread'):
        if backend not in self.BACKENDS:
            raise ConfigurationError(f"Unknown backend '{backend}'. Available: {list(self.BACKENDS)}")
        if isinstance(n_jobs, bool) or not isinstance(n_jobs, int) or n_jobs == 0 or n_jobs < -1:
            raise ConfigurationError(f"n_jobs must be -1 or a positive integer, got {n_jobs!r}")
        self.n_jobs = n_jobs
        self.backend = backend

    def _n_workers(self, n_units: int) -> int:
        cores = os.cpu_count() or 1
        workers = cores if self.n_jobs == -1 else self.n_jobs
        return max(1, min(workers, n_units))

    def _executor(self, n_workers: int, evaluator: ResampleEvaluator):
        if self.backend == 'process':
            # The dataset travels once per worker instead of once per unit
            return ProcessPoolExecutor(max_workers=n_workers, initializer=_install_evaluator,
                                       initargs=(evaluator,))
        return ThreadPoolExecutor(max_workers=n_workers, thread_name_prefix='cvselect')

    def _run_sequential(self, evaluator: ResampleEvaluator, items: List[WorkItem],
                        cancel_event: Optional[threading.Event]) -> List[MetricRecord]:
        records = []
        for item in items:
            if cancel_event is not None and cancel_event.is_set():
                break
            records.append(evaluator.evaluate_unit(item))
        return records

    def _run_pool(self, evaluator: ResampleEvaluator, items: List[WorkItem],
                  cancel_event: Optional[threading.Event]) -> List[MetricRecord]:
        if cancel_event is not None and cancel_event.is_set():
            return []
        collected: Dict[Future, MetricRecord] = {}
        evaluate = _evaluate_in_worker if self.backend == 'process' else evaluator.evaluate_unit
        with self._executor(self._n_workers(len(items)), evaluator) as pool:
            futures = [pool.submit(evaluate, item) for item in items]
            for future in as_completed(futures):
                collected[future] = future.result()
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = sum(f.cancel() for f in futures)
                    logger.warning(f"Tuning cancelled: {cancelled} pending unit(s) dropped")
                    break

        # Units already running at cancellation finish during pool shutdown
        for future in futures:
            if future not in collected and future.done() and not future.cancelled():
                collected[future] = future.result()
        return list(collected.values())

    def run(self,
            plugin_factory: Callable[[Any], BaseModel],
            grid: HyperparameterGrid,
            dataset: Dataset,
            fold_set: FoldSet,
            preprocessor: Optional[Preprocessor],
            metrics: Sequence[str],
            primary_metric: Optional[str] = None,
            positive_label: Any = None,
            cancel_event: Optional[threading.Event] = None) -> TuningResult:
        """
        Run the grid and summarise completed points.

        Args:
            plugin_factory: hyperparameters -> fresh model plugin (picklable for 'process')
            grid: Hyperparameter points to evaluate
            dataset: Source dataset (read only)
            fold_set: Folds over the training partition
            preprocessor: Pipeline fitted per fold on the training side
            metrics: Metric names to compute per unit
            primary_metric: Ranking metric; defaults to the first of ``metrics``
            positive_label: Positive class for binary metrics
            cancel_event: Setting it stops scheduling further units

        Returns:
            TuningResult; points with an unfinished fold are listed as
            incomplete and not summarised
        """
        grid = HyperparameterGrid.from_spec(grid)
        evaluator = ResampleEvaluator(dataset, plugin_factory, preprocessor, metrics, positive_label)
        primary_metric = primary_metric or evaluator.metrics[0]

        items = [WorkItem(point, fold) for point in grid for fold in fold_set]
        logger.info(f"Tuning {len(grid)} point(s) x {len(fold_set)} fold(s) = {len(items)} units "
                    f"[backend={self.backend}, workers={self._n_workers(len(items))}]")

        if self.backend == 'sequential':
            records = self._run_sequential(evaluator, items, cancel_event)
        else:
            records = self._run_pool(evaluator, items, cancel_event)
        records.sort(key=lambda r: (r.point.key, r.fold_index))

        finished: Dict[HyperparameterPoint, int] = {}
        for record in records:
            finished[record.point] = finished.get(record.point, 0) + 1
        complete = {p for p in grid if finished.get(p, 0) == len(fold_set)}
        incomplete = [p for p in grid if p not in complete]

        summaries = aggregate([r for r in records if r.point in complete], primary_metric)
        cancelled = cancel_event is not None and cancel_event.is_set()

        n_failed = sum(1 for r in records if not r.success)
        logger.info(f"Tuning finished: {len(records)}/{len(items)} units, {n_failed} failed, "
                    f"{len(summaries)} point(s) summarised")
        if incomplete:
            logger.warning(f"{len(incomplete)} point(s) incomplete: {[p.key for p in incomplete]}")

        return TuningResult(records=records, summaries=summaries, cancelled=cancelled,
                            incomplete_points=incomplete, n_units=len(items))

    def tune(self, plugin_factory, grid, dataset, fold_set, preprocessor, metrics,
             **kwargs) -> List[MetricSummary]:
        """Same as :meth:`run`, returning only the summaries."""
        return self.run(plugin_factory, grid, dataset, fold_set, preprocessor, metrics, **kwargs).summaries
