# wflow/protocols.py
"""
wflow.protocols
===============

predict_workflow が依存する 2 つの能力インターフェース。

- **Forgeable**   … 学習済み前処理（blueprint）。新データへ同じ変換を再適用する
- **Predictable** … 学習済みモデル。変換後の説明変数から予測表を返す

具体クラス（FormulaBlueprint / RecipeBlueprint / ModelFit など）は
継承ではなく構造的部分型としてこれを満たせばよい。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Optional, Protocol, runtime_checkable

import pandas as pd

if TYPE_CHECKING:  # pragma: no cover
    from .preprocessing.blueprint import ForgedData

__all__ = ["Forgeable", "Predictable"]


@runtime_checkable
class Forgeable(Protocol):
    def forge(self, new_data: pd.DataFrame, outcomes: bool = False) -> "ForgedData":
        ...


@runtime_checkable
class Predictable(Protocol):
    def predict(
        self,
        new_data: pd.DataFrame,
        type: Optional[str] = None,
        opts: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> pd.DataFrame:
        ...
