# wflow/predict.py
"""
wflow.predict
=============

学習済みワークフローからの予測。

1. 学習済みか確認（未学習なら UntrainedWorkflowError）
2. 学習時の blueprint で new_data を forge（formula の展開・recipe の transform など）
3. 学習済みモデルの predict に type / opts / その他の引数をそのまま渡す
4. outcomes=True なら処理済み outcome 列を右側に結合

forge と predict で起きた例外は包まずにそのまま呼び出し元へ伝える。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional

import pandas as pd

from .errors import RowAlignmentError, UntrainedWorkflowError
from .preprocessing.blueprint import forge

if TYPE_CHECKING:  # pragma: no cover
    from .workflows import Workflow

LOGGER = logging.getLogger(__name__)

__all__ = ["predict_workflow"]


def predict_workflow(
    workflow: "Workflow",
    new_data: pd.DataFrame,
    type: Optional[str] = None,
    opts: Optional[Mapping[str, Any]] = None,
    outcomes: bool = False,
    **kwargs: Any,
) -> pd.DataFrame:
    """
    学習済みワークフローで new_data を予測する。

    Parameters
    ----------
    workflow : Workflow
        ``Workflow.fit()`` 済みのワークフロー。
    new_data : pd.DataFrame
        前処理前の新データ。学習時と同じ元列が必要。
    type : str | None
        予測タイプ（"numeric" / "class" / "prob" / "raw"）。None ならモデルのモード既定。
    opts : Mapping | None
        モデルの predict にそのまま渡すオプション。
    outcomes : bool
        True なら処理済み outcome 列も結合して返す。
    **kwargs
        モデルの predict へそのまま渡す追加引数。

    Returns
    -------
    pd.DataFrame
        new_data と同じ行数の予測表。
    """
    if not workflow.trained:
        raise UntrainedWorkflowError()

    blueprint = workflow.pre.mold.blueprint
    forged = forge(new_data, blueprint, outcomes=outcomes)
    new_data = forged.predictors

    fit = workflow.model.fit

    predict_df = fit.predict(new_data, type=type, opts=opts or {}, **kwargs)

    if outcomes:
        predict_df = _bind_outcomes(predict_df, forged.outcomes)

    return predict_df


def _bind_outcomes(predict_df: pd.DataFrame, outcomes: Optional[pd.DataFrame]) -> pd.DataFrame:
    """予測表の右側に outcome 列を結合する。行の並びが一致していることを確認する。"""
    if outcomes is None:
        return predict_df
    if len(predict_df) != len(outcomes):
        raise RowAlignmentError(
            f"Predictions have {len(predict_df)} rows but the processed outcomes have {len(outcomes)}"
        )
    if not predict_df.index.equals(outcomes.index):
        raise RowAlignmentError("Predictions and processed outcomes are not aligned on the same row index")
    LOGGER.debug("Binding outcome columns %s", list(outcomes.columns))
    return pd.concat([predict_df, outcomes], axis=1)
