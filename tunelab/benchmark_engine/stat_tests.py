import numpy as np
import pandas as pd
from scipy import stats
from typing import Dict, Any

from tunelab.utils.exceptions import BenchmarkError


def friedman_test(score_matrix: pd.DataFrame, minimize: bool, alpha: float = 0.05) -> Dict[str, Any]:
    """
    Friedman test over a blocks x learners matrix of mean scores.

    Rows are blocks (tasks), columns learners. Rows with a missing score are
    dropped. Needs at least 2 complete blocks and 3 learners.
    """
    matrix = score_matrix.dropna(axis=0, how='any')
    n_blocks, n_learners = matrix.shape
    if n_learners < 3:
        raise BenchmarkError(f"Friedman test needs at least 3 learners, got {n_learners}.")
    if n_blocks < 2:
        raise BenchmarkError(f"Friedman test needs at least 2 tasks with complete scores, got {n_blocks}.")

    # Rank 1 = best learner of the block
    ranks = matrix.rank(axis=1, ascending=minimize, method='average')
    mean_ranks = ranks.mean(axis=0).sort_values()

    values = matrix.to_numpy(dtype=float)
    # All learners tied in every block: the statistic is undefined
    if np.all(values == values[:, [0]]):
        statistic, p_value = 0.0, 1.0
    else:
        statistic, p_value = stats.friedmanchisquare(*[values[:, j] for j in range(n_learners)])

    return {
        "statistic": float(statistic),
        "p_value": float(p_value),
        "n_tasks": int(n_blocks),
        "n_learners": int(n_learners),
        "mean_ranks": {str(k): float(v) for k, v in mean_ranks.items()},
        "significant": bool(p_value < alpha),
    }
