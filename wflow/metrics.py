"""metrics.py
=================
予測表（``predict(..., outcomes=True)`` の戻り値）から評価指標を計算する小さなユーティリティです。
scikit-learn のバージョン差による API 違いを吸収します。
新しめの scikit-learn にある root_mean_squared_error が使えるならそれを使用。
ない環境では mean_squared_error を √ して RMSE にします。
multioutput="raw_values" などで配列が返るケースでも float へ正規化（平均に丸める）し、常に float を返します。
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, mean_absolute_error, mean_squared_error, r2_score

try:  # scikit-learn >= 1.4 で提供
    from sklearn.metrics import root_mean_squared_error as _rmse  # type: ignore
except ImportError:  # 依存が古い場合のみフォールバック
    _rmse = None  # type: ignore

__all__ = ["rmse", "mae", "r2", "accuracy", "evaluate"]


def _to_float(value: Any) -> float:
    """スカラーはそのまま float、配列（raw_values 等）は平均に丸めて float を返す。"""
    try:
        return float(value)
    except (TypeError, ValueError):
        arr = np.asarray(value, dtype=float)
        return float(arr.mean())


def rmse(y_true: Any, y_pred: Any, **kw: Any) -> float:
    """Root Mean Squared Error を返す。"""
    if _rmse is not None:  # pragma: no branch
        return _to_float(_rmse(y_true, y_pred, **kw))
    return _to_float(np.sqrt(mean_squared_error(y_true, y_pred, **kw)))


def mae(y_true: Any, y_pred: Any, **kw: Any) -> float:
    return _to_float(mean_absolute_error(y_true, y_pred, **kw))


def r2(y_true: Any, y_pred: Any, **kw: Any) -> float:
    return _to_float(r2_score(y_true, y_pred, **kw))


def accuracy(y_true: Any, y_pred: Any, **kw: Any) -> float:
    return _to_float(accuracy_score(np.asarray(y_true, dtype=object), np.asarray(y_pred, dtype=object), **kw))


def evaluate(predictions: pd.DataFrame, truth: str, estimate: Optional[str] = None) -> Dict[str, float]:
    """
    予測表の truth 列と estimate 列を比較する。

    estimate を省略すると ``.pred``（回帰）→ ``.pred_class``（分類）の順に探す。
    回帰は rmse / mae / r2、分類は accuracy を返す。
    """
    if truth not in predictions.columns:
        raise KeyError(f"Truth column {truth!r} not found. Did you call predict(..., outcomes=True)?")
    if estimate is None:
        estimate = next((c for c in (".pred", ".pred_class") if c in predictions.columns), None)
        if estimate is None:
            raise KeyError("No `.pred` or `.pred_class` column found in the predictions")

    y_true = predictions[truth]
    y_pred = predictions[estimate]

    if estimate == ".pred_class" or isinstance(y_pred.dtype, pd.CategoricalDtype):
        return {"accuracy": accuracy(y_true, y_pred)}
    return {
        "rmse": rmse(y_true, y_pred),
        "mae": mae(y_true, y_pred),
        "r2": r2(y_true, y_pred),
    }
