# wflow/preprocessing/blueprint.py
"""
wflow.preprocessing.blueprint
=============================

Blueprint（学習済み前処理）の共通部品。

- **ForgedData** … forge の結果。predictors と（要求時のみ）outcomes
- **MoldResult** … 学習時の前処理結果（predictors / outcomes / blueprint）
- **Blueprint**  … 各前処理が実装する抽象基底。列の存在と型（ptype）の検証を共通化
- **forge() / mold()** … モジュール関数版の入口

ptype は「(列名, 種別)」のタプル列で、種別は numeric / boolean / categorical / datetime。
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Tuple

import pandas as pd
from pandas.api import types as ptypes

from ..errors import ColumnTypeError, MissingColumnError

if TYPE_CHECKING:  # pragma: no cover
    from . import Preprocessor

LOGGER = logging.getLogger(__name__)

__all__ = [
    "ForgedData",
    "MoldResult",
    "Blueprint",
    "column_kind",
    "ptype_of",
    "forge",
    "mold",
]

# numeric と boolean は相互に受け入れる
_COMPATIBLE = {
    ("numeric", "boolean"),
    ("boolean", "numeric"),
}


@dataclass(frozen=True)
class ForgedData:
    predictors: pd.DataFrame
    outcomes: Optional[pd.DataFrame] = None


@dataclass(frozen=True)
class MoldResult:
    predictors: pd.DataFrame
    outcomes: Optional[pd.DataFrame]
    blueprint: "Blueprint"


def column_kind(s: pd.Series) -> str:
    """Series の dtype を ptype の種別へ丸める。"""
    if ptypes.is_bool_dtype(s):
        return "boolean"
    if ptypes.is_numeric_dtype(s):
        return "numeric"
    if ptypes.is_datetime64_any_dtype(s):
        return "datetime"
    return "categorical"


def ptype_of(df: pd.DataFrame, columns: Iterable[str]) -> Tuple[Tuple[str, str], ...]:
    return tuple((c, column_kind(df[c])) for c in columns)


@dataclass(frozen=True)
class Blueprint(ABC):
    """
    学習時に確定した前処理の記述。forge は読み取り専用で、自身を書き換えない。

    Attributes
    ----------
    predictor_ptype : tuple[(str, str)]
        説明変数の元列とその種別（学習データ上の順序）。
    outcome_ptype : tuple[(str, str)]
        目的変数の元列とその種別。outcome を持たない前処理では空。
    """

    predictor_ptype: Tuple[Tuple[str, str], ...]
    outcome_ptype: Tuple[Tuple[str, str], ...]

    @property
    def predictor_names(self) -> list[str]:
        return [c for c, _ in self.predictor_ptype]

    @property
    def outcome_names(self) -> list[str]:
        return [c for c, _ in self.outcome_ptype]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def forge(self, new_data: pd.DataFrame, outcomes: bool = False) -> ForgedData:
        """new_data を検証し、学習時と同じ変換を適用する。"""
        self._validate(new_data, self.predictor_ptype, role="predictor")
        predictors = self._forge_predictors(new_data)

        outcome_df: Optional[pd.DataFrame] = None
        if outcomes and self.outcome_ptype:
            self._validate(new_data, self.outcome_ptype, role="outcome")
            outcome_df = self._forge_outcomes(new_data)

        return ForgedData(predictors=predictors, outcomes=outcome_df)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------
    @abstractmethod
    def _forge_predictors(self, new_data: pd.DataFrame) -> pd.DataFrame:
        raise NotImplementedError

    def _forge_outcomes(self, new_data: pd.DataFrame) -> pd.DataFrame:
        return new_data[self.outcome_names].copy()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @staticmethod
    def _validate(
        new_data: pd.DataFrame,
        ptype: Tuple[Tuple[str, str], ...],
        role: str,
    ) -> None:
        missing = [c for c, _ in ptype if c not in new_data.columns]
        if missing:
            raise MissingColumnError(missing, role=role)

        bad: Dict[str, Tuple[str, str]] = {}
        for col, expected in ptype:
            actual = column_kind(new_data[col])
            if actual != expected and (expected, actual) not in _COMPATIBLE:
                bad[col] = (expected, actual)
        if bad:
            detail = ", ".join(f"{c} (expected {e}, got {a})" for c, (e, a) in bad.items())
            raise ColumnTypeError(f"Column types do not match the training data: {detail}")


def forge(new_data: pd.DataFrame, blueprint: "Blueprint", outcomes: bool = False) -> ForgedData:
    """
    blueprint を new_data に適用する。

    Parameters
    ----------
    new_data : pd.DataFrame
        学習時と同じ元列を持つ新データ。余分な列は無視される。
    blueprint : Blueprint
        学習時に確定した前処理（Forgeable を満たすもの）。
    outcomes : bool
        True なら outcome 列も処理して返す。
    """
    if not isinstance(new_data, pd.DataFrame):
        raise TypeError(f"`new_data` must be a pandas DataFrame, not {type(new_data).__name__}")
    LOGGER.debug("forge: rows=%d blueprint=%s outcomes=%s", len(new_data), type(blueprint).__name__, outcomes)
    return blueprint.forge(new_data, outcomes=outcomes)


def mold(preprocessor: "Preprocessor", data: pd.DataFrame) -> MoldResult:
    """学習データに前処理を fit し、MoldResult を返す。"""
    if not isinstance(data, pd.DataFrame):
        raise TypeError(f"`data` must be a pandas DataFrame, not {type(data).__name__}")
    return preprocessor.mold(data)


def _check_outcomes_present(data: pd.DataFrame, outcomes: Iterable[str]) -> None:
    missing = [c for c in outcomes if c not in data.columns]
    if missing:
        raise MissingColumnError(missing, role="outcome")


def _resolve_predictors(
    data: pd.DataFrame,
    outcomes: Iterable[str],
    predictors: Optional[Iterable[str]],
) -> list[str]:
    """predictors 未指定なら outcome 以外の全列。"""
    outcomes = list(outcomes)
    if predictors is None:
        return [c for c in data.columns if c not in outcomes]
    predictors = list(predictors)
    missing = [c for c in predictors if c not in data.columns]
    if missing:
        raise MissingColumnError(missing, role="predictor")
    return predictors

