# wflow/preprocessing/variables.py
"""
wflow.preprocessing.variables
=============================

列名を指定するだけの前処理（変換なし）。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import pandas as pd

from .blueprint import (
    Blueprint,
    MoldResult,
    _check_outcomes_present,
    _resolve_predictors,
    ptype_of,
)

__all__ = ["Variables", "VariablesBlueprint"]


@dataclass(frozen=True)
class VariablesBlueprint(Blueprint):
    def _forge_predictors(self, new_data: pd.DataFrame) -> pd.DataFrame:
        return new_data[self.predictor_names].copy()


@dataclass(frozen=True)
class Variables:
    """
    Parameters
    ----------
    outcomes : Sequence[str]
        目的変数の列名。
    predictors : Sequence[str] | None
        説明変数の列名。None なら outcomes 以外の全列。
    """

    outcomes: Tuple[str, ...]
    predictors: Optional[Tuple[str, ...]] = None

    kind = "variables"

    def __init__(self, outcomes: Sequence[str] | str, predictors: Optional[Sequence[str]] = None) -> None:
        if isinstance(outcomes, str):
            outcomes = [outcomes]
        object.__setattr__(self, "outcomes", tuple(outcomes))
        object.__setattr__(self, "predictors", tuple(predictors) if predictors is not None else None)

    def mold(self, data: pd.DataFrame) -> MoldResult:
        _check_outcomes_present(data, self.outcomes)
        predictors = _resolve_predictors(data, self.outcomes, self.predictors)

        blueprint = VariablesBlueprint(
            predictor_ptype=ptype_of(data, predictors),
            outcome_ptype=ptype_of(data, self.outcomes),
        )
        return MoldResult(
            predictors=data[predictors].copy(),
            outcomes=data[list(self.outcomes)].copy() if self.outcomes else None,
            blueprint=blueprint,
        )
