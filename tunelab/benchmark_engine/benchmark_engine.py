"""
BenchmarkEngine for the tuning workbench.

Evaluates every (task, learner, resampling) cell of a benchmark design on
identical folds. Cells are independent: an exception in one cell is logged
and recorded as a cell failure while the remaining cells keep running.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from tunelab.base import BaseEngine
from tunelab.benchmark_engine.stat_tests import friedman_test
from tunelab.resampling import Fold, Resampling, ResampleResult, resample
from tunelab.task import Task
from tunelab.utils import constants
from tunelab.utils.error_handling import handle_engine_errors
from tunelab.utils.exceptions import BenchmarkError
from tunelab.utils.file_io import save_dataframe, save_json

KEY_COLUMNS = ['task_id', 'learner_id', 'resampling_id']


@dataclass
class DesignEntry:
    task: Task
    learner: Any
    resampling: Resampling
    folds: Optional[List[Fold]]
    error: Optional[str] = None


@dataclass
class BenchmarkDesign:
    """Cross product of tasks, learners and resamplings with fixed folds."""
    entries: List[DesignEntry]

    def __len__(self) -> int:
        return len(self.entries)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {'task_id': e.task.task_id, 'learner_id': e.learner.id, 'resampling_id': e.resampling.id,
             'iters': len(e.folds) if e.folds is not None else 0}
            for e in self.entries
        ])


def benchmark_grid(tasks: Sequence[Task], learners: Sequence[Any], resamplings: Sequence[Resampling],
                   logger: Optional[logging.Logger] = None) -> BenchmarkDesign:
    """
    Build the full design. Folds are instantiated once per (task, resampling),
    so every learner of a task sees exactly the same splits. A task that the
    resampling cannot split keeps its cells with the error attached, so they
    fail on their own instead of aborting the design.
    """
    if not tasks or not learners or not resamplings:
        raise BenchmarkError("A benchmark needs at least one task, one learner and one resampling.")

    learner_ids = [learner.id for learner in learners]
    duplicates = sorted({i for i in learner_ids if learner_ids.count(i) > 1})
    if duplicates:
        raise BenchmarkError(f"Learner ids must be unique within a benchmark, duplicated: {duplicates}")
    task_ids = [task.task_id for task in tasks]
    if len(set(task_ids)) != len(task_ids):
        raise BenchmarkError(f"Task ids must be unique within a benchmark, got {task_ids}")

    logger = logger or logging.getLogger(__name__)
    entries = []
    for task in tasks:
        for resampling in resamplings:
            folds, error = None, None
            try:
                folds = resampling.instantiate(task)
            except Exception as e:
                error = f"{type(e).__name__}: {e}"
                logger.warning(f"Cannot instantiate {resampling.id} on '{task.task_id}': {error}")
            for learner in learners:
                entries.append(DesignEntry(task=task, learner=learner, resampling=resampling, folds=folds, error=error))
    return BenchmarkDesign(entries)


@dataclass
class BenchmarkCell:
    task_id: str
    learner_id: str
    resampling_id: str
    status: str
    error: Optional[str] = None
    runtime: float = 0.0
    result: Optional[ResampleResult] = None

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'task_id': self.task_id,
            'learner_id': self.learner_id,
            'resampling_id': self.resampling_id,
            'status': self.status,
            'error': self.error,
            'runtime': self.runtime,
            'aggregate': self.result.aggregate() if self.result is not None else None,
        }


@dataclass
class BenchmarkResult:
    cells: List[BenchmarkCell]
    measures: List[Any] = field(default_factory=list)

    @property
    def measure_ids(self) -> List[str]:
        return [m.id for m in self.measures]

    def _measure(self, measure_id: str):
        for measure in self.measures:
            if measure.id == measure_id:
                return measure
        raise BenchmarkError(f"Measure '{measure_id}' was not scored in this benchmark. Available: {self.measure_ids}")

    def failed_cells(self) -> List[BenchmarkCell]:
        return [cell for cell in self.cells if cell.failed]

    def score_table(self) -> pd.DataFrame:
        """Fold-level scores of every successful cell."""
        frames = []
        for cell in self.cells:
            if cell.result is None:
                continue
            frame = cell.result.scores.copy()
            frame['resampling_id'] = cell.resampling_id
            frames.append(frame)
        if not frames:
            return pd.DataFrame(columns=KEY_COLUMNS + ['iteration'] + self.measure_ids)
        return pd.concat(frames, ignore_index=True)

    def aggregate(self) -> pd.DataFrame:
        """Mean score per learner per task (successful cells only)."""
        rows = []
        for cell in self.cells:
            if cell.result is None:
                continue
            rows.append({
                'task_id': cell.task_id,
                'learner_id': cell.learner_id,
                'resampling_id': cell.resampling_id,
                'iters': cell.result.iters,
                **cell.result.aggregate(),
            })
        if not rows:
            return pd.DataFrame(columns=KEY_COLUMNS + ['iters'] + self.measure_ids)
        return pd.DataFrame(rows)

    def rank(self, measure_id: str) -> pd.DataFrame:
        """Rank learners within each task/resampling; rank 1 is the best."""
        measure = self._measure(measure_id)
        agg = self.aggregate()[KEY_COLUMNS + [measure_id]].copy()
        agg['rank'] = agg.groupby(['task_id', 'resampling_id'])[measure_id].rank(
            ascending=measure.minimize, method='min'
        )
        return agg.sort_values(['task_id', 'resampling_id', 'rank']).reset_index(drop=True)

    def friedman_test(self, measure_id: str, alpha: float = 0.05) -> Dict[str, Any]:
        measure = self._measure(measure_id)
        matrix = self.aggregate().pivot_table(
            index=['task_id', 'resampling_id'], columns='learner_id', values=measure_id, aggfunc='mean'
        )
        return friedman_test(matrix, minimize=measure.minimize, alpha=alpha)


class BenchmarkEngine(BaseEngine):
    """
    Runs a benchmark design and collects per-cell results.
    """

    def _get_engine_directory_name(self) -> str:
        return constants.BENCHMARK_DIR

    @handle_engine_errors("Benchmark", wrap_as=BenchmarkError)
    def execute(self, design: BenchmarkDesign, measures: Sequence[Any]) -> BenchmarkResult:
        self.logger.info(f"Starting benchmark with {len(design)} cells...")
        cells = []
        for i, entry in enumerate(design.entries, start=1):
            cells.append(self._run_cell(i, len(design), entry, measures))

        result = BenchmarkResult(cells=cells, measures=list(measures))
        n_failed = len(result.failed_cells())
        self.logger.info(f"Benchmark finished: {len(cells) - n_failed} succeeded, {n_failed} failed.")

        if self.persist_enabled:
            self._save_results(result)
        return result

    def _run_cell(self, index: int, total: int, entry: DesignEntry, measures: Sequence[Any]) -> BenchmarkCell:
        label = f"[{index}/{total}] {entry.task.task_id} x {entry.learner.id} x {entry.resampling.id}"
        start_time = time.time()
        try:
            if entry.error is not None:
                raise BenchmarkError(f"No folds for this cell: {entry.error}")
            result = resample(entry.task, entry.learner, entry.folds, measures)
            result.resampling_id = entry.resampling.id
        except Exception as e:
            self.logger.error(f"{label} failed: {type(e).__name__}: {e}")
            return BenchmarkCell(
                task_id=entry.task.task_id, learner_id=entry.learner.id, resampling_id=entry.resampling.id,
                status="failed", error=f"{type(e).__name__}: {e}", runtime=time.time() - start_time,
            )

        runtime = time.time() - start_time
        scores = ", ".join(f"{k}={v:.4f}" for k, v in result.aggregate().items())
        self.logger.info(f"{label}: {scores} ({runtime:.1f}s)")
        return BenchmarkCell(
            task_id=entry.task.task_id, learner_id=entry.learner.id, resampling_id=entry.resampling.id,
            status="success", runtime=runtime, result=result,
        )

    def _save_results(self, result: BenchmarkResult) -> None:
        save_dataframe(result.score_table(), self.output_dir / constants.BENCHMARK_SCORES_FILE,
                       excel_copy=self.excel_copy)
        save_dataframe(result.aggregate(), self.output_dir / constants.BENCHMARK_AGGREGATE_FILE,
                       excel_copy=self.excel_copy)
        ranks = [result.rank(m).assign(measure=m).rename(columns={m: 'score'}) for m in result.measure_ids]
        if ranks:
            save_dataframe(pd.concat(ranks, ignore_index=True), self.output_dir / constants.BENCHMARK_RANKS_FILE,
                           excel_copy=self.excel_copy)
        save_json([cell.to_dict() for cell in result.cells], self.output_dir / constants.BENCHMARK_CELLS_FILE)
        self.logger.info(f"Benchmark results saved to {self.output_dir}")


def benchmark(tasks: Sequence[Task], learners: Sequence[Any], resampling: Resampling, measures: Sequence[Any],
              config: Optional[Dict[str, Any]] = None, logger: Optional[logging.Logger] = None) -> BenchmarkResult:
    """Benchmark every learner on every task under one resampling."""
    config = config if config is not None else {'outputs': {'skip_dir_creation': True}}
    logger = logger or logging.getLogger(__name__)
    design = benchmark_grid(tasks, learners, [resampling], logger=logger)
    return BenchmarkEngine(config, logger).execute(design, measures)
