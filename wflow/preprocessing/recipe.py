# wflow/preprocessing/recipe.py
"""
wflow.preprocessing.recipe
==========================

scikit-learn の transformer を「レシピ」として使う前処理。

- mold: transformer を clone → 学習データの説明変数で fit → transform
- forge: 学習済み transformer で transform のみ（再 fit はしない）
- outcome_transformer を与えると outcome も同様に処理（例: FunctionTransformer(np.log)）

Example
-------
>>> import numpy as np
>>> from sklearn.compose import ColumnTransformer
>>> from sklearn.preprocessing import FunctionTransformer
>>> ct = ColumnTransformer(
...     [("log", FunctionTransformer(np.log, feature_names_out="one-to-one"), ["disp"])],
...     remainder="passthrough",
... )
>>> rec = Recipe(ct, outcomes=["mpg"], predictors=["cyl", "disp"])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.base import clone

from .blueprint import (
    Blueprint,
    MoldResult,
    _check_outcomes_present,
    _resolve_predictors,
    ptype_of,
)

LOGGER = logging.getLogger(__name__)

__all__ = ["Recipe", "RecipeBlueprint"]


def _feature_names(transformer: Any, input_names: Sequence[str], n_cols: int) -> list[str]:
    """get_feature_names_out が使えればそれを、無ければ x0, x1, ... を返す。"""
    get_names = getattr(transformer, "get_feature_names_out", None)
    if get_names is not None:
        try:
            names = [str(n) for n in get_names(list(input_names))]
        except (AttributeError, ValueError, TypeError) as exc:
            # 一部の transformer は名前の伝播に未対応
            LOGGER.debug("get_feature_names_out unavailable for %s: %s", type(transformer).__name__, exc)
        else:
            if len(names) == n_cols:
                return names
    return [f"x{i}" for i in range(n_cols)]


def _to_frame(values: Any, transformer: Any, input_names: Sequence[str], index: pd.Index) -> pd.DataFrame:
    if isinstance(values, pd.DataFrame):
        out = values.copy()
        out.index = index
        return out
    if hasattr(values, "toarray"):  # scipy.sparse
        values = values.toarray()
    arr = np.asarray(values)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    columns = _feature_names(transformer, input_names, arr.shape[1])
    return pd.DataFrame(arr, columns=columns, index=index)


@dataclass(frozen=True)
class RecipeBlueprint(Blueprint):
    """学習済み transformer を保持する blueprint。"""

    transformer: Any
    outcome_transformer: Any = None

    def _forge_predictors(self, new_data: pd.DataFrame) -> pd.DataFrame:
        X = new_data[self.predictor_names]
        return _to_frame(self.transformer.transform(X), self.transformer, self.predictor_names, X.index)

    def _forge_outcomes(self, new_data: pd.DataFrame) -> pd.DataFrame:
        y = new_data[self.outcome_names]
        if self.outcome_transformer is None:
            return y.copy()
        values = self.outcome_transformer.transform(y)
        out = _to_frame(values, self.outcome_transformer, self.outcome_names, y.index)
        if out.shape[1] == len(self.outcome_names):
            out.columns = self.outcome_names
        return out


@dataclass(frozen=True)
class Recipe:
    """
    Parameters
    ----------
    transformer : sklearn transformer
        未学習の transformer / Pipeline / ColumnTransformer。mold 時に clone される。
    outcomes : Sequence[str]
        目的変数の列名。
    predictors : Sequence[str] | None
        transformer に渡す列。None なら outcomes 以外の全列。
    outcome_transformer : sklearn transformer | None
        outcome 用の transformer（任意）。
    """

    transformer: Any
    outcomes: Tuple[str, ...]
    predictors: Optional[Tuple[str, ...]] = None
    outcome_transformer: Any = None

    kind = "recipe"

    def __init__(
        self,
        transformer: Any,
        outcomes: Sequence[str] | str,
        predictors: Optional[Sequence[str]] = None,
        outcome_transformer: Any = None,
    ) -> None:
        if not hasattr(transformer, "fit") or not hasattr(transformer, "transform"):
            raise TypeError("`transformer` must implement fit() and transform()")
        if isinstance(outcomes, str):
            outcomes = [outcomes]
        object.__setattr__(self, "transformer", transformer)
        object.__setattr__(self, "outcomes", tuple(outcomes))
        object.__setattr__(self, "predictors", tuple(predictors) if predictors is not None else None)
        object.__setattr__(self, "outcome_transformer", outcome_transformer)

    def mold(self, data: pd.DataFrame) -> MoldResult:
        _check_outcomes_present(data, self.outcomes)
        predictors = _resolve_predictors(data, self.outcomes, self.predictors)
        outcomes = list(self.outcomes)

        X = data[predictors]
        y = data[outcomes]

        target = y.iloc[:, 0] if len(outcomes) == 1 else (y if outcomes else None)
        fitted = clone(self.transformer).fit(X, target)
        fitted_outcome = clone(self.outcome_transformer).fit(y) if self.outcome_transformer is not None else None

        blueprint = RecipeBlueprint(
            predictor_ptype=ptype_of(data, predictors),
            outcome_ptype=ptype_of(data, outcomes),
            transformer=fitted,
            outcome_transformer=fitted_outcome,
        )
        LOGGER.debug("Recipe fitted: %s on %d columns", type(fitted).__name__, len(predictors))

        return MoldResult(
            predictors=blueprint._forge_predictors(data),
            outcomes=blueprint._forge_outcomes(data) if outcomes else None,
            blueprint=blueprint,
        )
