from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from tunelab.search_space import SearchSpace
from tunelab.utils.exceptions import ConfigurationError
from tunelab.utils.registry import Registry


@dataclass(frozen=True)
class EvaluationBudget:
    """Terminate after a fixed number of candidate evaluations."""
    n_evals: int

    def __post_init__(self):
        if isinstance(self.n_evals, bool) or not isinstance(self.n_evals, (int, np.integer)) or self.n_evals < 1:
            raise ConfigurationError(f"Evaluation budget must be a positive integer, got {self.n_evals!r}.")


class Tuner(ABC):
    """Search strategy: proposes the candidates an AutoTuner evaluates."""

    id = "tuner"

    @abstractmethod
    def propose(self, search_space: SearchSpace, budget: EvaluationBudget,
                rng: np.random.Generator) -> List[Dict[str, Any]]:
        pass

    def params(self) -> Dict[str, Any]:
        return {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.params()})"


class RandomSearchTuner(Tuner):
    """Uniform random sampling, exactly `budget.n_evals` candidates."""

    id = "random_search"

    def propose(self, search_space, budget, rng):
        return search_space.sample(budget.n_evals, rng)


class GridSearchTuner(Tuner):
    """
    Grid search with `resolution` points per numeric parameter.

    The grid is visited in an order shuffled by the seeded generator and cut
    to the budget; a budget larger than the grid evaluates every point once.
    """

    id = "grid_search"

    def __init__(self, resolution: int = 10, shuffle: bool = True,
                 param_resolutions: Optional[Dict[str, int]] = None):
        if resolution < 1:
            raise ConfigurationError(f"Grid resolution must be >= 1, got {resolution}.")
        self.resolution = resolution
        self.shuffle = shuffle
        self.param_resolutions = dict(param_resolutions or {})

    def params(self) -> Dict[str, Any]:
        return {'resolution': self.resolution, 'shuffle': self.shuffle}

    def propose(self, search_space, budget, rng):
        grid = search_space.grid(self.resolution, self.param_resolutions)
        if self.shuffle:
            grid = [grid[i] for i in rng.permutation(len(grid))]
        return grid[:budget.n_evals]

    def grid_size(self, search_space: SearchSpace) -> int:
        return search_space.grid_size(self.resolution, self.param_resolutions)


class TunerFactory:
    """
    Factory for creating search strategies by name.
    """

    TUNERS = Registry("tuner")
    TUNERS.register('random_search', RandomSearchTuner)
    TUNERS.register('grid_search', GridSearchTuner)

    @classmethod
    def create(cls, method: str, **params) -> Tuner:
        tuner_cls = cls.TUNERS.get(method)
        try:
            return tuner_cls(**params)
        except TypeError as e:
            raise ConfigurationError(f"Invalid parameters for tuner '{method}': {e}") from e

    @classmethod
    def from_config(cls, tuner_cfg: Dict[str, Any]) -> Tuner:
        params = {k: v for k, v in tuner_cfg.items() if k != 'method'}
        return cls.create(tuner_cfg.get('method', 'random_search'), **params)

    @classmethod
    def get_available_tuners(cls) -> List[str]:
        return cls.TUNERS.names()

    @classmethod
    def validate_registry(cls) -> None:
        cls.TUNERS.validate(
            lambda name, entry: None if isinstance(entry, type) and issubclass(entry, Tuner) and entry.id == name
            else "entry is not a Tuner subclass with a matching id"
        )
