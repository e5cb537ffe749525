import logging
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd

from tunelab.base import BaseEngine
from tunelab.resampling import Fold, Resampling, ResampleResult, resample
from tunelab.task import Task
from tunelab.tuner import AutoTuner
from tunelab.utils import constants
from tunelab.utils.error_handling import handle_engine_errors
from tunelab.utils.exceptions import ModelTrainingError
from tunelab.utils.file_io import save_dataframe, save_json


def fold_score_summary(scores: pd.DataFrame, measure_ids: Sequence[str]) -> pd.DataFrame:
    """Per-measure spread of the outer fold scores."""
    rows = []
    for measure_id in measure_ids:
        values = scores[measure_id].to_numpy(dtype=float)
        if values.size == 0:
            continue
        rows.append({
            'measure': measure_id,
            'folds': len(values),
            'mean': float(np.nanmean(values)),
            'std': float(np.nanstd(values)),
            'min': float(np.nanmin(values)),
            'max': float(np.nanmax(values)),
        })
    return pd.DataFrame(rows)


class NestedResamplingEngine(BaseEngine):
    """
    Estimates the generalization performance of an auto-tuned learner.

    Every outer fold trains a fresh clone of the auto-tuner (inner search and
    refit on the outer training rows only) and scores it on the outer test
    rows. The per-fold inner tuning results are kept as they are, never
    averaged, since folds may legitimately pick different configurations.
    """

    def _get_engine_directory_name(self) -> str:
        return constants.NESTED_RESAMPLING_DIR

    @handle_engine_errors("Nested Resampling", wrap_as=ModelTrainingError)
    def execute(self, task: Task, auto_tuner: AutoTuner, outer_resampling: Union[Resampling, Sequence[Fold]],
                measures: Sequence[Any], row_ids: Optional[Sequence[int]] = None) -> ResampleResult:
        if auto_tuner.is_trained:
            self.logger.warning(f"Auto-tuner '{auto_tuner.id}' is already trained. Outer folds use fresh clones.")

        n_outer = outer_resampling.iters if isinstance(outer_resampling, Resampling) else len(outer_resampling)
        self.logger.info(
            f"Starting nested resampling of '{auto_tuner.id}' on task '{task.task_id}' "
            f"({n_outer} outer folds)..."
        )

        result = resample(task, auto_tuner, outer_resampling, measures, row_ids=row_ids)

        if len(result.tuning_results) != result.iters:
            raise ModelTrainingError(
                f"Expected {result.iters} inner tuning results, got {len(result.tuning_results)}."
            )

        for _, row in result.scores.iterrows():
            scores = ", ".join(f"{m}={row[m]:.4f}" for m in result.measure_ids)
            self.logger.info(f"  Outer fold {int(row['iteration'])}: {scores}")

        n_distinct = result.n_distinct_configurations()
        if n_distinct > 1:
            self.logger.warning(
                f"Outer folds selected {n_distinct} different configurations. "
                f"Inspect the inner tuning results before reporting a single setting."
            )

        aggregate = result.aggregate()
        self.logger.info("Nested aggregate: " + ", ".join(f"{k}={v:.4f}" for k, v in aggregate.items()))

        if self.persist_enabled:
            self._save_results(result, n_distinct)

        return result

    def _save_results(self, result: ResampleResult, n_distinct: int) -> None:
        save_dataframe(result.scores, self.output_dir / constants.OUTER_SCORES_FILE, excel_copy=self.excel_copy)
        save_dataframe(result.inner_tuning_table(), self.output_dir / constants.INNER_TUNING_RESULTS_FILE,
                       excel_copy=self.excel_copy)
        save_dataframe(fold_score_summary(result.scores, result.measure_ids),
                       self.output_dir / "outer_score_summary.parquet", excel_copy=self.excel_copy)

        payload: Dict[str, Any] = {
            **result.to_dict(),
            'n_distinct_configurations': n_distinct,
            'inner_results': [r.to_dict() for r in result.tuning_results],
        }
        save_json(payload, self.output_dir / constants.NESTED_AGGREGATE_FILE)
        self.logger.info(f"Nested resampling results saved to {self.output_dir}")


def evaluate(task: Task, auto_tuner: AutoTuner, outer_resampling: Union[Resampling, Sequence[Fold]],
             measures: Sequence[Any], row_ids: Optional[Sequence[int]] = None,
             config: Optional[Dict[str, Any]] = None, logger: Optional[logging.Logger] = None) -> ResampleResult:
    """Nested resampling in one call. Nothing is written to disk unless a config says otherwise."""
    config = config if config is not None else {'outputs': {'skip_dir_creation': True}}
    engine = NestedResamplingEngine(config, logger or logging.getLogger(__name__))
    return engine.execute(task, auto_tuner, outer_resampling, measures, row_ids=row_ids)
