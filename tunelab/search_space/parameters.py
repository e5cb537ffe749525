"""
Parameter declarations for tuning search spaces.

A declaration knows its type, its bounds (or allowed values), an optional
transform applied before the value reaches the learner, and an optional
activation `Condition` on an earlier parameter. Bounds are checked when the
declaration is built, never at tuning time.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from tunelab.utils.exceptions import SearchSpaceError


class _Inactive:
    """Marker for a parameter whose activation condition is not met."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<inactive>"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        # Keeps identity across joblib/pickle round trips
        return (_Inactive, ())


INACTIVE = _Inactive()


def is_inactive(value: Any) -> bool:
    return value is INACTIVE


TRANSFORMS: Dict[str, Callable[[float], Any]] = {
    'exp2': lambda x: 2.0 ** x,
    'exp10': lambda x: 10.0 ** x,
    'exp': math.exp,
    'round': lambda x: int(round(x)),
}

Transform = Union[str, Callable[[Any], Any], None]


@dataclass(frozen=True)
class Condition:
    """
    Activation predicate: the owning parameter is active only while
    `param` takes one of `values`.
    """
    param: str
    values: Tuple[Any, ...]

    def __post_init__(self):
        if not self.param:
            raise SearchSpaceError("Condition must reference a parameter name.")
        if not self.values:
            raise SearchSpaceError(f"Condition on '{self.param}' needs at least one value.")

    @classmethod
    def equal(cls, param: str, value: Any) -> "Condition":
        return cls(param, (value,))

    @classmethod
    def any_of(cls, param: str, values: Sequence[Any]) -> "Condition":
        return cls(param, tuple(values))

    def is_met(self, assignment: Dict[str, Any]) -> bool:
        value = assignment.get(self.param, INACTIVE)
        if is_inactive(value):
            return False
        return value in self.values

    def to_dict(self) -> Dict[str, Any]:
        return {'param': self.param, 'values': list(self.values)}


@dataclass
class ParamDeclaration(ABC):
    """Base class for a single tunable parameter."""
    name: str
    transform: Transform = field(default=None, kw_only=True)
    condition: Optional[Condition] = field(default=None, kw_only=True)

    kind = "abstract"

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise SearchSpaceError("Parameter name must be a non-empty string.")
        if isinstance(self.transform, str) and self.transform not in TRANSFORMS:
            raise SearchSpaceError(
                f"Unknown transform '{self.transform}' for '{self.name}'. "
                f"Available: {list(TRANSFORMS)}"
            )
        if self.transform is not None and not isinstance(self.transform, str) and not callable(self.transform):
            raise SearchSpaceError(f"Transform for '{self.name}' must be a name or a callable.")
        self._validate()

    @abstractmethod
    def _validate(self) -> None:
        pass

    @abstractmethod
    def sample(self, rng: np.random.Generator) -> Any:
        """Draw one raw value uniformly from the declaration's domain."""
        pass

    @abstractmethod
    def grid_values(self, resolution: int) -> List[Any]:
        """Evenly spaced raw values (all values for categorical parameters)."""
        pass

    @abstractmethod
    def contains(self, value: Any) -> bool:
        pass

    def apply_transform(self, value: Any) -> Any:
        if is_inactive(value) or self.transform is None:
            return value
        fn = TRANSFORMS[self.transform] if isinstance(self.transform, str) else self.transform
        return fn(value)

    def _transform_name(self) -> Optional[str]:
        if self.transform is None or isinstance(self.transform, str):
            return self.transform
        return getattr(self.transform, '__name__', 'custom')

    def to_dict(self) -> Dict[str, Any]:
        out = {'name': self.name, 'type': self.kind}
        if self.transform is not None:
            out['transform'] = self._transform_name()
        if self.condition is not None:
            out['condition'] = self.condition.to_dict()
        return out


def _check_numeric_bounds(name: str, lower: Any, upper: Any) -> None:
    for label, bound in (('lower', lower), ('upper', upper)):
        if isinstance(bound, bool) or not isinstance(bound, (int, float, np.integer, np.floating)):
            raise SearchSpaceError(f"'{name}': {label} bound must be numeric, got {bound!r}.")
        if not math.isfinite(bound):
            raise SearchSpaceError(f"'{name}': {label} bound must be finite, got {bound}.")
    if lower > upper:
        raise SearchSpaceError(f"'{name}': lower bound ({lower}) must be <= upper bound ({upper}).")


@dataclass
class IntParam(ParamDeclaration):
    """Integer parameter on the closed range [lower, upper]."""
    lower: int = 0
    upper: int = 1

    kind = "integer"

    def _validate(self) -> None:
        _check_numeric_bounds(self.name, self.lower, self.upper)
        if int(self.lower) != self.lower or int(self.upper) != self.upper:
            raise SearchSpaceError(
                f"'{self.name}': integer bounds must be whole numbers, got [{self.lower}, {self.upper}]."
            )
        self.lower = int(self.lower)
        self.upper = int(self.upper)

    def sample(self, rng: np.random.Generator) -> int:
        return int(rng.integers(self.lower, self.upper, endpoint=True))

    def grid_values(self, resolution: int) -> List[int]:
        points = np.linspace(self.lower, self.upper, num=max(1, resolution))
        return sorted({int(round(p)) for p in points})

    def contains(self, value: Any) -> bool:
        return isinstance(value, (int, np.integer)) and not isinstance(value, bool) \
            and self.lower <= value <= self.upper

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), 'lower': self.lower, 'upper': self.upper}


@dataclass
class RealParam(ParamDeclaration):
    """Real-valued parameter on the closed range [lower, upper]."""
    lower: float = 0.0
    upper: float = 1.0

    kind = "real"

    def _validate(self) -> None:
        _check_numeric_bounds(self.name, self.lower, self.upper)
        self.lower = float(self.lower)
        self.upper = float(self.upper)

    def sample(self, rng: np.random.Generator) -> float:
        if self.lower == self.upper:
            return self.lower
        return float(rng.uniform(self.lower, self.upper))

    def grid_values(self, resolution: int) -> List[float]:
        points = np.linspace(self.lower, self.upper, num=max(1, resolution))
        return sorted({float(p) for p in points})

    def contains(self, value: Any) -> bool:
        return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool) \
            and self.lower <= value <= self.upper

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), 'lower': self.lower, 'upper': self.upper}


@dataclass
class CategoricalParam(ParamDeclaration):
    """Parameter taking one of a fixed list of values."""
    values: Sequence[Any] = ()

    kind = "categorical"

    def _validate(self) -> None:
        self.values = list(self.values)
        if not self.values:
            raise SearchSpaceError(f"'{self.name}': categorical parameter needs at least one value.")
        if len(set(map(repr, self.values))) != len(self.values):
            raise SearchSpaceError(f"'{self.name}': categorical values must be unique, got {self.values}.")

    def sample(self, rng: np.random.Generator) -> Any:
        return self.values[int(rng.integers(len(self.values)))]

    def grid_values(self, resolution: int) -> List[Any]:
        return list(self.values)

    def contains(self, value: Any) -> bool:
        return value in self.values

    def to_dict(self) -> Dict[str, Any]:
        return {**super().to_dict(), 'values': list(self.values)}


PARAM_TYPES = {
    'integer': IntParam,
    'int': IntParam,
    'real': RealParam,
    'float': RealParam,
    'categorical': CategoricalParam,
}


def param_from_config(spec: Dict[str, Any]) -> ParamDeclaration:
    """Build a declaration from its JSON form (see config/schema.json)."""
    kind = spec.get('type')
    if kind not in PARAM_TYPES:
        raise SearchSpaceError(f"Unknown parameter type '{kind}'. Available: {sorted(set(PARAM_TYPES))}")

    condition = None
    if spec.get('condition'):
        cond = spec['condition']
        condition = Condition.any_of(cond.get('param'), cond.get('values', []))

    common = {'transform': spec.get('transform'), 'condition': condition}
    cls = PARAM_TYPES[kind]
    if cls is CategoricalParam:
        return CategoricalParam(spec.get('name'), values=spec.get('values', []), **common)
    if 'lower' not in spec or 'upper' not in spec:
        raise SearchSpaceError(f"'{spec.get('name')}': numeric parameters need 'lower' and 'upper'.")
    return cls(spec.get('name'), lower=spec['lower'], upper=spec['upper'], **common)
