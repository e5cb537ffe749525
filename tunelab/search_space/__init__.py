"""
Search Space Module
===================

Responsibility:
- Typed parameter declarations (integer, real, categorical) with bounds,
  transforms and activation conditions on earlier parameters.
- Ordered search spaces producing uniformly shaped random/grid candidates,
  with unmet conditions materialized as `INACTIVE`.

Learner presets live in `tunelab.search_space.presets`.
"""

from .parameters import (
    INACTIVE,
    TRANSFORMS,
    CategoricalParam,
    Condition,
    IntParam,
    ParamDeclaration,
    RealParam,
    is_inactive,
    param_from_config,
)
from .search_space import SearchSpace, candidates_equal, count_distinct

__all__ = [
    'INACTIVE', 'TRANSFORMS', 'CategoricalParam', 'Condition', 'IntParam',
    'ParamDeclaration', 'RealParam', 'SearchSpace', 'candidates_equal',
    'count_distinct', 'is_inactive', 'param_from_config',
]
