"""
Diagnostic plots for tuning runs, nested resampling and benchmarks.

All figures are rendered off-screen (Agg) and written as PNG files into the
run's plot directory.
"""

import contextlib
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.preprocessing import StandardScaler

from tunelab.learner_factory import Learner
from tunelab.resampling import ResampleResult
from tunelab.search_space import is_inactive
from tunelab.task import Task
from tunelab.utils import constants
from tunelab.utils.exceptions import DataValidationError

STATUS_COLORS = {
    'success': '#1f77b4',  # Blue
    'failed': '#d62728',   # Red
}


class TuningPlotter:
    """
    Generates tuning diagnostics.
    """

    def __init__(self, config: dict, logger: logging.Logger, output_dir: Optional[Path] = None):
        self.config = config
        self.logger = logger
        vis_cfg = config.get("visualization", {})
        self.dpi = vis_cfg.get("dpi", 150)
        self.style = vis_cfg.get("style", "whitegrid")
        base_dir = Path(config.get('outputs', {}).get('base_results_dir', 'results'))
        self.output_dir = Path(output_dir) if output_dir is not None else base_dir / constants.PLOTS_DIR

    @contextlib.contextmanager
    def _theme(self):
        with sns.axes_style(self.style), sns.plotting_context("notebook"):
            yield

    def _save(self, fig, filename: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / filename
        fig.savefig(path, dpi=self.dpi, bbox_inches='tight')
        plt.close(fig)
        self.logger.info(f"Saved plot: {path}")
        return path

    # ------------------------------------------------------------------ #
    # Tuning archive                                                     #
    # ------------------------------------------------------------------ #
    def plot_tuning_archive(self, archive: pd.DataFrame, param: str, measure_id: str, minimize: bool,
                            filename: Optional[str] = None, title: Optional[str] = None) -> Path:
        """Score of every evaluated candidate against one parameter."""
        if param not in archive.columns:
            raise DataValidationError(f"Parameter '{param}' not in tuning archive columns {list(archive.columns)}")

        data = archive.dropna(subset=[param])
        with self._theme():
            fig, ax = plt.subplots(figsize=(8, 5))
            ok = data[(data['status'] == 'success') & data['score'].notna()]
            if pd.api.types.is_numeric_dtype(data[param]):
                ax.scatter(ok[param], ok['score'], color=STATUS_COLORS['success'], alpha=0.8, label='evaluated')
                if len(ok):
                    best = ok.loc[ok['score'].idxmin() if minimize else ok['score'].idxmax()]
                    ax.scatter([best[param]], [best['score']], color='black', marker='*', s=200, label='best')
            else:
                sns.stripplot(data=ok, x=param, y='score', ax=ax, color=STATUS_COLORS['success'])
            failed = data[data['status'] == 'failed']
            if len(failed):
                ax.text(0.01, 0.01, f"{len(failed)} failed candidate(s) not shown", transform=ax.transAxes,
                        color=STATUS_COLORS['failed'], fontsize=9)
            ax.set_xlabel(param)
            ax.set_ylabel(measure_id)
            ax.set_title(title or f"Tuning archive: {measure_id} vs {param}")
            if len(ok) and pd.api.types.is_numeric_dtype(data[param]):
                ax.legend(loc='best')
            return self._save(fig, filename or f"tuning_archive_{param}.png")

    def plot_optimization_path(self, archive: pd.DataFrame, measure_id: str, minimize: bool,
                               filename: Optional[str] = None) -> Path:
        """Score per evaluation and the best score found so far."""
        scores = archive['score'].astype(float)
        filled = scores.fillna(np.inf if minimize else -np.inf)
        best_so_far = filled.cummin() if minimize else filled.cummax()
        best_so_far = best_so_far.replace([np.inf, -np.inf], np.nan)

        with self._theme():
            fig, ax = plt.subplots(figsize=(9, 5))
            evals = np.arange(1, len(archive) + 1)
            ax.scatter(evals, scores, alpha=0.6, label='candidate score')
            ax.step(evals, best_so_far, where='post', color='black', linewidth=2, label='best so far')
            ax.set_xlabel('Evaluation')
            ax.set_ylabel(measure_id)
            ax.set_title(f"Optimization path ({'minimize' if minimize else 'maximize'} {measure_id})")
            ax.legend(loc='best')
            return self._save(fig, filename or "optimization_path.png")

    # ------------------------------------------------------------------ #
    # Nested resampling                                                  #
    # ------------------------------------------------------------------ #
    def plot_nested_folds(self, result: ResampleResult, measure_id: str, filename: Optional[str] = None) -> Path:
        """Outer score per fold, annotated with the configuration that fold selected."""
        scores = result.scores
        with self._theme():
            fig, ax = plt.subplots(figsize=(max(6, 1.6 * len(scores)), 5))
            x = scores['iteration'].astype(int).astype(str)
            ax.bar(x, scores[measure_id], color=sns.color_palette("deep")[0])
            mean = scores[measure_id].mean()
            ax.axhline(mean, color='black', linestyle='--', label=f"mean = {mean:.4f}")
            for i, tuning in enumerate(result.tuning_results):
                if tuning is None or i >= len(scores):
                    continue
                ax.annotate(self._short_config(tuning.best_params), (i, scores[measure_id].iloc[i]),
                            textcoords="offset points", xytext=(0, 4), ha='center', fontsize=8, rotation=90)
            ax.set_xlabel('Outer fold')
            ax.set_ylabel(measure_id)
            ax.set_title(f"Nested resampling: {result.learner_id} on {result.task_id}")
            ax.legend(loc='lower right')
            return self._save(fig, filename or f"nested_folds_{measure_id}.png")

    # ------------------------------------------------------------------ #
    # Benchmark                                                          #
    # ------------------------------------------------------------------ #
    def plot_benchmark(self, score_table: pd.DataFrame, measure_id: str, filename: Optional[str] = None) -> Path:
        """Fold scores per learner, one panel per task."""
        if score_table.empty:
            raise DataValidationError("Benchmark score table is empty, nothing to plot.")

        task_ids: List[str] = list(dict.fromkeys(score_table['task_id']))
        with self._theme():
            fig, axes = plt.subplots(1, len(task_ids), figsize=(5 * len(task_ids), 5), squeeze=False)
            for ax, task_id in zip(axes[0], task_ids):
                subset = score_table[score_table['task_id'] == task_id]
                sns.boxplot(data=subset, x='learner_id', y=measure_id, ax=ax)
                sns.stripplot(data=subset, x='learner_id', y=measure_id, ax=ax, color='black', size=3)
                ax.set_title(task_id)
                ax.set_xlabel('')
                ax.tick_params(axis='x', rotation=45)
            fig.suptitle(f"Benchmark: {measure_id}")
            return self._save(fig, filename or f"benchmark_{measure_id}.png")

    # ------------------------------------------------------------------ #
    # SVM exploration                                                    #
    # ------------------------------------------------------------------ #
    def plot_svm_decision_boundary(self, task: Task, features: Sequence[str], params: Dict[str, Any],
                                   row_ids: Optional[Sequence[int]] = None, seed: Optional[int] = None,
                                   resolution: int = 200, filename: Optional[str] = None) -> Path:
        """
        Fit an SVM on two standardized features and draw its decision regions
        with the support vectors highlighted.
        """
        features = list(features)
        if len(features) != 2:
            raise DataValidationError(f"Decision boundary plots need exactly 2 features, got {features}")
        missing = [f for f in features if f not in task.feature_names]
        if missing:
            raise DataValidationError(f"Features {missing} not found in task '{task.task_id}'")

        X = task.X(row_ids)[features]
        y = task.y(row_ids)
        scaled = pd.DataFrame(StandardScaler().fit_transform(X), columns=features)
        data = scaled.assign(**{task.target: y.to_numpy()})
        sub_task = Task(f"{task.task_id}_2d", data, task.target, positive=task.positive)

        learner = Learner('svm', params, seed=seed).train(sub_task)
        model = learner.model

        x_min, x_max = scaled[features[0]].min() - 0.5, scaled[features[0]].max() + 0.5
        y_min, y_max = scaled[features[1]].min() - 0.5, scaled[features[1]].max() + 0.5
        xx, yy = np.meshgrid(np.linspace(x_min, x_max, resolution), np.linspace(y_min, y_max, resolution))
        grid = pd.DataFrame(np.c_[xx.ravel(), yy.ravel()], columns=features)

        labels = sub_task.class_labels
        label_codes = {label: i for i, label in enumerate(labels)}

        with self._theme():
            fig, ax = plt.subplots(figsize=(8, 7))
            regions = np.vectorize(label_codes.get)(model.predict(grid)).reshape(xx.shape)
            ax.contourf(xx, yy, regions, alpha=0.25, levels=np.arange(len(labels) + 1) - 0.5, cmap='coolwarm')
            if sub_task.is_binary:
                decision = model.decision_function(grid).reshape(xx.shape)
                ax.contour(xx, yy, decision, levels=[-1, 0, 1], colors='black',
                           linestyles=['--', '-', '--'], linewidths=1)

            palette = sns.color_palette("coolwarm", len(labels))
            for label in labels:
                mask = (y.to_numpy() == label)
                ax.scatter(scaled.loc[mask, features[0]], scaled.loc[mask, features[1]], s=15,
                           color=palette[label_codes[label]], label=str(label), edgecolor='none')
            sv = model.support_vectors_
            ax.scatter(sv[:, 0], sv[:, 1], s=60, facecolors='none', edgecolors='black', linewidths=0.8,
                       label=f"support vectors ({len(sv)})")

            ax.set_xlabel(f"{features[0]} (standardized)")
            ax.set_ylabel(f"{features[1]} (standardized)")
            ax.set_title(f"SVM decision regions: {self._short_config(params)}")
            ax.legend(loc='best', fontsize=8)
            return self._save(fig, filename or "svm_decision_boundary.png")

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #
    @staticmethod
    def _short_config(params: Dict[str, Any]) -> str:
        parts = []
        for k, v in params.items():
            if is_inactive(v):
                continue
            parts.append(f"{k}={v:.3g}" if isinstance(v, float) else f"{k}={v}")
        return ", ".join(parts)
