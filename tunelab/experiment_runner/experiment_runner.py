import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import joblib
import numpy as np

from tunelab.benchmark_engine import BenchmarkEngine, BenchmarkResult, benchmark_grid
from tunelab.learner_factory import Learner
from tunelab.measures import MeasureFactory
from tunelab.nested_resampling import NestedResamplingEngine
from tunelab.resampling import ResampleResult, ResamplingFactory
from tunelab.search_space.presets import search_space_from_config
from tunelab.split_engine import SplitEngine
from tunelab.task import Task, TaskFactory
from tunelab.tuner import AutoTuner, EvaluationBudget, TunerFactory
from tunelab.utils import constants
from tunelab.utils.exceptions import BenchmarkError, ConfigurationError
from tunelab.utils.file_io import save_dataframe, save_json
from tunelab.visualization import TuningPlotter

MODES = ['tune', 'nested', 'benchmark', 'svm', 'all']
DEFAULT_RESAMPLING = {'method': 'cv', 'folds': 3}


class ExperimentRunner:
    """
    Orchestrates the tuning workflows of one run.

    tune      split the task, auto-tune on the training rows, score the refit
              model on the held-out rows
    nested    estimate the auto-tuner's performance by nested resampling
    benchmark compare plain and tuned learners across tasks on shared folds
    svm       draw SVM decision regions for a set of kernel configurations
    """

    def __init__(self, config: dict, logger: logging.Logger):
        self.config = config
        self.logger = logger
        self.base_dir = Path(config.get('outputs', {}).get('base_results_dir', 'results'))
        self.excel_copy = self.config.get("outputs", {}).get("save_excel_copy", False)
        self.save_plots = self.config.get("outputs", {}).get("save_plots", True)
        self.save_models = self.config.get("outputs", {}).get("save_models", False)
        self.persist_enabled = not self.config.get("outputs", {}).get("skip_dir_creation", False)

        self.seeds = config.get('_internal_seeds', {})
        self.n_jobs = config.get('execution', {}).get('n_jobs', 1)
        self.evaluation_measures = MeasureFactory.create_many(
            config.get('evaluation', {}).get('measures', ['accuracy', 'auc', 'brier'])
        )
        self.plotter = TuningPlotter(self.config, self.logger)
        self._task: Optional[Task] = None

    # ------------------------------------------------------------------ #
    # Construction helpers                                               #
    # ------------------------------------------------------------------ #
    @property
    def task(self) -> Task:
        if self._task is None:
            self._task = TaskFactory.from_config(self.config.get('task', {}))
            self.logger.info(f"Loaded {self._task}")
        return self._task

    def build_auto_tuner(self, block: Optional[Dict[str, Any]] = None, learner_id: Optional[str] = None) -> AutoTuner:
        """Compose an AutoTuner from a tuning config block (defaults to `tuning`)."""
        block = block if block is not None else self.config.get('tuning', {})
        learner_name = block['learner']
        learner = Learner(learner_name, block.get('learner_params', block.get('params')), seed=self.seeds.get('model'))
        resampling = ResamplingFactory.from_config(
            block.get('resampling', DEFAULT_RESAMPLING), seed=self.seeds.get('inner_resampling')
        )
        return AutoTuner(
            learner=learner,
            resampling=resampling,
            measure=MeasureFactory.create(block.get('measure', 'classification_error')),
            search_space=search_space_from_config(block.get('search_space', learner_name), learner_name=learner_name),
            budget=EvaluationBudget(block.get('budget', 20)),
            tuner=TunerFactory.from_config(block.get('tuner', {'method': 'random_search'})),
            seed=self.seeds.get('tuner'),
            n_jobs=block.get('n_jobs', self.n_jobs),
            learner_id=learner_id,
            logger=self.logger,
        )

    def _output_dir(self, name: str) -> Path:
        path = self.base_dir / name
        if self.persist_enabled:
            path.mkdir(parents=True, exist_ok=True)
        return path

    # ------------------------------------------------------------------ #
    # Workflows                                                          #
    # ------------------------------------------------------------------ #
    def run_tuning(self) -> Dict[str, Any]:
        """Split, auto-tune on the training rows and score on the test rows."""
        task = self.task
        train_ids, test_ids = SplitEngine(self.config, self.logger).execute(task)

        auto_tuner = self.build_auto_tuner()
        auto_tuner.train(task, train_ids)
        prediction = auto_tuner.predict(task, test_ids)
        holdout_scores = prediction.score(self.evaluation_measures)
        result = auto_tuner.tuning_result

        self.logger.info("Held-out scores: " + ", ".join(f"{k}={v:.4f}" for k, v in holdout_scores.items()))
        self.logger.debug(f"Confusion matrix:\n{prediction.confusion_matrix()}")

        if self.persist_enabled:
            out_dir = self._output_dir(constants.AUTO_TUNING_DIR)
            save_dataframe(result.archive, out_dir / constants.TUNING_ARCHIVE_FILE, excel_copy=self.excel_copy)
            save_json(result.to_dict(), out_dir / constants.BEST_CONFIGURATION_FILE)
            save_json({'n_train': len(train_ids), 'n_test': len(test_ids), **holdout_scores},
                      out_dir / constants.HOLDOUT_SCORES_FILE)
            save_dataframe(prediction.to_frame(), out_dir / "holdout_predictions.parquet", excel_copy=self.excel_copy)
            if self.save_models:
                joblib.dump(auto_tuner.model, out_dir / constants.FINAL_MODEL_FILE)
                self.logger.info(f"Final model saved to {out_dir / constants.FINAL_MODEL_FILE}")

        if self.save_plots:
            self._plot_tuning(auto_tuner)

        return {
            'train_ids': train_ids,
            'test_ids': test_ids,
            'auto_tuner': auto_tuner,
            'tuning_result': result,
            'holdout_scores': holdout_scores,
        }

    def run_nested(self) -> ResampleResult:
        nested_cfg = self.config.get('nested', {})
        outer = ResamplingFactory.from_config(
            nested_cfg.get('outer_resampling', DEFAULT_RESAMPLING), seed=self.seeds.get('outer_resampling')
        )
        engine = NestedResamplingEngine(self.config, self.logger)
        result = engine.execute(self.task, self.build_auto_tuner(), outer, self.evaluation_measures)

        if self.save_plots:
            for measure in self.evaluation_measures:
                self.plotter.plot_nested_folds(result, measure.id)
        return result

    def run_benchmark(self) -> BenchmarkResult:
        bench_cfg = self.config.get('benchmark', {})
        task_names = bench_cfg.get('tasks') or [self.config.get('task', {}).get('name')]
        tasks = [TaskFactory.create(name) for name in task_names]
        learners = [self._build_benchmark_learner(entry) for entry in bench_cfg.get('learners', [])]
        if not learners:
            raise ConfigurationError("benchmark.learners must list at least one learner.")
        resampling = ResamplingFactory.from_config(
            bench_cfg.get('resampling', DEFAULT_RESAMPLING), seed=self.seeds.get('outer_resampling')
        )
        measures = MeasureFactory.create_many(bench_cfg.get('measures', ['classification_error']))

        design = benchmark_grid(tasks, learners, [resampling], logger=self.logger)
        result = BenchmarkEngine(self.config, self.logger).execute(design, measures)

        primary = measures[0].id
        ranks = result.rank(primary)
        self.logger.info(f"Ranks by {primary}:\n{ranks.to_string(index=False)}")
        try:
            friedman = result.friedman_test(primary)
            self.logger.info(
                f"Friedman test on {primary}: chi2={friedman['statistic']:.3f}, p={friedman['p_value']:.4f} "
                f"({friedman['n_tasks']} tasks, {friedman['n_learners']} learners)"
            )
            if self.persist_enabled:
                save_json(friedman, self.base_dir / constants.BENCHMARK_DIR / "friedman_test.json")
        except BenchmarkError as e:
            self.logger.info(f"Friedman test skipped: {e}")

        if self.save_plots and not result.score_table().empty:
            for measure in measures:
                self.plotter.plot_benchmark(result.score_table(), measure.id)
        return result

    def _build_benchmark_learner(self, entry: Dict[str, Any]):
        learner_id = entry.get('id', entry['learner'])
        if entry.get('search_space') is not None:
            block = {**self.config.get('tuning', {}), **entry}
            block['learner_params'] = entry.get('params')
            return self.build_auto_tuner(block, learner_id=learner_id)
        return Learner(entry['learner'], entry.get('params'), learner_id=learner_id, seed=self.seeds.get('model'))

    def run_svm_exploration(self) -> List[Path]:
        """Decision regions of each configured SVM on two features of the training rows."""
        svm_cfg = self.config.get('svm_exploration', {})
        features = svm_cfg.get('features', self.task.feature_names[:2])
        configurations = svm_cfg.get('configurations', [{'kernel': 'radial', 'cost': 1.0}])
        train_ids, _ = SplitEngine(self.config, self.logger).execute(self.task)

        paths = []
        for i, params in enumerate(configurations):
            kernel = params.get('kernel', 'radial')
            self.logger.info(f"SVM exploration {i + 1}/{len(configurations)}: {params}")
            paths.append(self.plotter.plot_svm_decision_boundary(
                self.task, features, params, row_ids=train_ids, seed=self.seeds.get('model'),
                filename=f"svm_{i + 1:02d}_{kernel}.png",
            ))
        return paths

    def run(self, mode: str = 'all') -> Dict[str, Any]:
        if mode not in MODES:
            raise ConfigurationError(f"Unknown mode '{mode}'. Available: {MODES}")

        results: Dict[str, Any] = {}
        if mode in ('tune', 'all'):
            self._phase("AUTO-TUNING")
            results['tune'] = self.run_tuning()
        if mode == 'nested' or (mode == 'all' and self.config.get('nested', {}).get('enabled', False)):
            self._phase("NESTED RESAMPLING")
            results['nested'] = self.run_nested()
        if mode == 'benchmark' or (mode == 'all' and self.config.get('benchmark', {}).get('enabled', False)):
            self._phase("BENCHMARK")
            results['benchmark'] = self.run_benchmark()
        if mode == 'svm' or (mode == 'all' and self.config.get('svm_exploration', {}).get('enabled', False)):
            self._phase("SVM EXPLORATION")
            results['svm'] = self.run_svm_exploration()
        return results

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #
    def _phase(self, title: str) -> None:
        self.logger.info("\n" + "=" * 60)
        self.logger.info(f"PHASE: {title}")
        self.logger.info("=" * 60)

    def _plot_tuning(self, auto_tuner: AutoTuner) -> None:
        result = auto_tuner.tuning_result
        archive = result.archive
        self.plotter.plot_optimization_path(archive, result.measure_id, result.minimize)
        for name in auto_tuner.search_space.ids:
            if archive[name].notna().any() and np.issubdtype(archive[name].dtype, np.number):
                self.plotter.plot_tuning_archive(archive, name, result.measure_id, result.minimize)
