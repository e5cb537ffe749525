"""
SplitEngine for the tuning workbench.

Partitions the row ids of a task into a training and a test set with a
fixed ratio and seed. Stratifies on the target so both sets keep the class
balance of the full task, falling back to a random split when a class is
too small to be divided.
"""
import logging
from typing import Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from tunelab.base import BaseEngine
from tunelab.task import Task
from tunelab.utils import constants
from tunelab.utils.error_handling import handle_engine_errors
from tunelab.utils.exceptions import ConfigurationError, DataValidationError
from tunelab.utils.file_io import save_dataframe


class SplitEngine(BaseEngine):
    """
    Splits task rows into disjoint train/test id sets covering every row.
    """

    def __init__(self, config: dict, logger: logging.Logger):
        super().__init__(config, logger)
        split_cfg = self.config.get('splitting', {})
        self.train_ratio = split_cfg.get('train_ratio', 0.8)
        self.stratify = split_cfg.get('stratify', True)
        self.seed = self.config.get('_internal_seeds', {}).get('split', split_cfg.get('seed', 42))

        if not (0.0 < self.train_ratio < 1.0):
            raise ConfigurationError(f"train_ratio must be between 0 and 1 (exclusive), got {self.train_ratio}")

    def _get_engine_directory_name(self) -> str:
        return constants.TASK_SPLIT_DIR

    @handle_engine_errors("Task Splitting", wrap_as=DataValidationError)
    def execute(self, task: Task) -> Tuple[np.ndarray, np.ndarray]:
        """
        Execute the splitting workflow.

        Returns:
            (train_ids, test_ids), both sorted.
        """
        self.logger.info(f"Splitting task '{task.task_id}' ({task.n_rows} rows, train_ratio={self.train_ratio}, seed={self.seed})")

        row_ids = task.row_ids
        n_test = task.n_rows - int(np.floor(task.n_rows * self.train_ratio))
        if n_test < 1 or n_test >= task.n_rows:
            raise DataValidationError(
                f"Task '{task.task_id}' with {task.n_rows} rows cannot be split at ratio {self.train_ratio}."
            )

        stratify_labels = self._stratification_labels(task)
        train_ids, test_ids = train_test_split(
            row_ids,
            train_size=self.train_ratio,
            random_state=self.seed,
            shuffle=True,
            stratify=stratify_labels,
        )
        train_ids, test_ids = np.sort(train_ids), np.sort(test_ids)

        balance = self._class_balance(task, train_ids, test_ids)
        self.logger.info(f"Split done: Train={len(train_ids)}, Test={len(test_ids)}")
        self.logger.debug(f"Class balance:\n{balance.to_string(index=False)}")

        if self.persist_enabled:
            self._save_split(train_ids, test_ids, balance)

        return train_ids, test_ids

    def _stratification_labels(self, task: Task):
        if not self.stratify:
            return None
        counts = task.class_counts()
        if counts.min() < 2:
            self.logger.warning(
                f"Class(es) {counts[counts < 2].index.tolist()} have fewer than 2 rows. Using a random split."
            )
            return None
        n_test = task.n_rows - int(np.floor(task.n_rows * self.train_ratio))
        if n_test < len(counts) or task.n_rows - n_test < len(counts):
            self.logger.warning("Too few rows per split to hold every class. Using a random split.")
            return None
        return task.y().to_numpy()

    def _class_balance(self, task: Task, train_ids: np.ndarray, test_ids: np.ndarray) -> pd.DataFrame:
        train_counts = task.class_counts(train_ids)
        test_counts = task.class_counts(test_ids)
        rows = []
        for label in task.class_labels:
            n_train = int(train_counts.get(label, 0))
            n_test = int(test_counts.get(label, 0))
            rows.append({
                'class': str(label),
                'train_count': n_train,
                'test_count': n_test,
                'train_pct': 100.0 * n_train / max(len(train_ids), 1),
                'test_pct': 100.0 * n_test / max(len(test_ids), 1),
            })
        return pd.DataFrame(rows)

    def _save_split(self, train_ids: np.ndarray, test_ids: np.ndarray, balance: pd.DataFrame) -> None:
        save_dataframe(pd.DataFrame({constants.ROW_ID: train_ids}), self.output_dir / constants.TRAIN_IDS_FILE,
                       excel_copy=self.excel_copy)
        save_dataframe(pd.DataFrame({constants.ROW_ID: test_ids}), self.output_dir / constants.TEST_IDS_FILE,
                       excel_copy=self.excel_copy)
        save_dataframe(balance, self.output_dir / constants.CLASS_BALANCE_FILE, excel_copy=self.excel_copy)
