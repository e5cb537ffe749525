import math
from typing import Any, Dict, Iterator, List, Optional, Sequence

import numpy as np

from tunelab.search_space.parameters import (
    INACTIVE,
    CategoricalParam,
    ParamDeclaration,
    is_inactive,
    param_from_config,
)
from tunelab.utils.exceptions import SearchSpaceError


class SearchSpace:
    """
    Ordered collection of parameter declarations.

    Conditions are evaluated left to right, so a declaration may only depend
    on parameters declared before it. Every candidate produced by `sample`
    or `grid` holds a value for every parameter id; parameters whose
    condition is not met hold `INACTIVE`.
    """

    def __init__(self, params: Sequence[ParamDeclaration]):
        self._params: Dict[str, ParamDeclaration] = {}
        for param in params:
            if not isinstance(param, ParamDeclaration):
                raise SearchSpaceError(f"Expected a parameter declaration, got {type(param).__name__}.")
            if param.name in self._params:
                raise SearchSpaceError(f"Duplicate parameter id '{param.name}' in search space.")
            if param.condition is not None:
                self._check_condition(param)
            self._params[param.name] = param

    def _check_condition(self, param: ParamDeclaration) -> None:
        parent_name = param.condition.param
        if parent_name == param.name:
            raise SearchSpaceError(f"'{param.name}' cannot depend on itself.")
        if parent_name not in self._params:
            raise SearchSpaceError(
                f"Condition of '{param.name}' references '{parent_name}', "
                f"which is not declared before it."
            )
        parent = self._params[parent_name]
        if not isinstance(parent, CategoricalParam):
            return
        unknown = [v for v in param.condition.values if not parent.contains(v)]
        if unknown:
            raise SearchSpaceError(
                f"Condition of '{param.name}' uses values {unknown} not allowed for '{parent_name}'."
            )

    @classmethod
    def from_config(cls, specs: Sequence[Dict[str, Any]]) -> "SearchSpace":
        return cls([param_from_config(spec) for spec in specs])

    # --- Container protocol ---

    @property
    def ids(self) -> List[str]:
        return list(self._params.keys())

    @property
    def params(self) -> List[ParamDeclaration]:
        return list(self._params.values())

    def __getitem__(self, name: str) -> ParamDeclaration:
        return self._params[name]

    def __contains__(self, name: object) -> bool:
        return name in self._params

    def __iter__(self) -> Iterator[ParamDeclaration]:
        return iter(self._params.values())

    def __len__(self) -> int:
        return len(self._params)

    def __repr__(self) -> str:
        return f"SearchSpace({self.ids})"

    # --- Candidate generation ---

    def sample(self, n: int, rng: np.random.Generator) -> List[Dict[str, Any]]:
        """Draw `n` candidates uniformly at random."""
        candidates = []
        for _ in range(n):
            candidate: Dict[str, Any] = {}
            for param in self._params.values():
                if param.condition is not None and not param.condition.is_met(candidate):
                    candidate[param.name] = INACTIVE
                else:
                    candidate[param.name] = param.sample(rng)
            candidates.append(candidate)
        return candidates

    def grid(self, resolution: int, param_resolutions: Optional[Dict[str, int]] = None) -> List[Dict[str, Any]]:
        """
        Full grid over the space.

        Numeric parameters get `resolution` evenly spaced points (overridable
        per parameter), categoricals all their values. Branches where a
        condition fails collapse to a single INACTIVE value, so the grid
        holds no duplicate rows.
        """
        if resolution < 1:
            raise SearchSpaceError(f"Grid resolution must be >= 1, got {resolution}.")
        param_resolutions = param_resolutions or {}
        unknown = set(param_resolutions) - set(self._params)
        if unknown:
            raise SearchSpaceError(f"param_resolutions references unknown parameters: {sorted(unknown)}")

        values = {
            name: param.grid_values(param_resolutions.get(name, resolution))
            for name, param in self._params.items()
        }

        rows: List[Dict[str, Any]] = [{}]
        for param in self._params.values():
            expanded = []
            for row in rows:
                if param.condition is not None and not param.condition.is_met(row):
                    expanded.append({**row, param.name: INACTIVE})
                else:
                    expanded.extend({**row, param.name: v} for v in values[param.name])
            rows = expanded
        return rows

    def grid_size(self, resolution: int, param_resolutions: Optional[Dict[str, int]] = None) -> int:
        """Upper bound on the grid size, ignoring conditional collapsing."""
        param_resolutions = param_resolutions or {}
        sizes = [
            len(param.grid_values(param_resolutions.get(name, resolution)))
            for name, param in self._params.items()
        ]
        return int(math.prod(sizes)) if sizes else 0

    # --- Candidate handling ---

    def validate_candidate(self, candidate: Dict[str, Any]) -> None:
        """Check a raw candidate for shape, domain and activation consistency."""
        missing = [name for name in self._params if name not in candidate]
        extra = [name for name in candidate if name not in self._params]
        if missing or extra:
            raise SearchSpaceError(f"Candidate shape mismatch. Missing: {missing}, unexpected: {extra}")

        for name, param in self._params.items():
            value = candidate[name]
            active = param.condition is None or param.condition.is_met(candidate)
            if not active:
                if not is_inactive(value):
                    raise SearchSpaceError(f"'{name}' must be inactive for candidate {candidate}.")
                continue
            if is_inactive(value) or not param.contains(value):
                raise SearchSpaceError(f"Value {value!r} is outside the domain of '{name}'.")

    def transform(self, candidate: Dict[str, Any]) -> Dict[str, Any]:
        """Apply declared transforms; INACTIVE values are kept as they are."""
        return {name: self._params[name].apply_transform(value) for name, value in candidate.items()}

    def to_learner_params(self, candidate: Dict[str, Any]) -> Dict[str, Any]:
        """Transformed values with inactive parameters left out."""
        return {name: value for name, value in self.transform(candidate).items() if not is_inactive(value)}

    def to_dict(self) -> List[Dict[str, Any]]:
        return [param.to_dict() for param in self._params.values()]


def candidates_equal(a: Dict[str, Any], b: Dict[str, Any]) -> bool:
    """Compare two candidates treating INACTIVE as equal to itself."""
    if a.keys() != b.keys():
        return False
    return all(
        (is_inactive(a[k]) and is_inactive(b[k])) or a[k] == b[k]
        for k in a
    )


def count_distinct(candidates: Sequence[Dict[str, Any]]) -> int:
    distinct: List[Dict[str, Any]] = []
    for candidate in candidates:
        if not any(candidates_equal(candidate, seen) for seen in distinct):
            distinct.append(candidate)
    return len(distinct)
