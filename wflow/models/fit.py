# wflow/models/fit.py
"""
wflow.models.fit
================

ModelFit
--------
- ``fit_xy(spec, x, y)`` で推定器を学習し、ModelFit を返す
- ``ModelFit.predict`` は予測タイプ（numeric / class / prob / raw）に応じて列名を整えた
  DataFrame を返す。行数・index は入力と同じ
- 分類では学習時のクラス水準を ``levels`` に固定し、推定器は整数コードで学習する
  （XGBClassifier が文字列ラベルを受け付けないため）

出力列
------
=========  ==========================================
numeric    ``.pred``（outcome が複数なら ``.pred_<outcome>``）
class      ``.pred_class``（levels をカテゴリに持つ Categorical）
prob       ``.pred_<level>``
raw        ``.pred_raw``（2 次元なら ``.pred_raw_<i>``）
=========  ==========================================
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from ..errors import PredictTypeError, WorkflowSpecError
from .engines import build_estimator
from .spec import ModelSpec

LOGGER = logging.getLogger(__name__)

__all__ = ["PREDICT_TYPES", "ModelFit", "fit_xy"]

# 予測タイプ → 利用できるモード
PREDICT_TYPES: Dict[str, Tuple[str, ...]] = {
    "numeric": ("regression",),
    "class": ("classification",),
    "prob": ("classification",),
    "raw": ("regression", "classification"),
}

_DEFAULT_TYPE = {"regression": "numeric", "classification": "class"}


@dataclass(frozen=True)
class ModelFit:
    """
    学習済みモデル（Predictable）。

    Attributes
    ----------
    spec : ModelSpec
        学習に使った仕様。
    estimator : Any
        学習済み推定器（sklearn 互換の predict / predict_proba を持つ）。
    outcome_names : tuple[str]
        学習時の outcome 列名。
    levels : tuple
        分類時のクラス水準（コード順）。回帰では空。
    elapsed : float
        学習に要した秒数。
    """

    spec: ModelSpec
    estimator: Any
    outcome_names: Tuple[str, ...]
    levels: Tuple[Any, ...] = ()
    elapsed: float = 0.0

    @property
    def mode(self) -> str:
        return self.spec.mode

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def predict(
        self,
        new_data: pd.DataFrame,
        type: Optional[str] = None,
        opts: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> pd.DataFrame:
        """
        予測表を返す。

        Parameters
        ----------
        new_data : pd.DataFrame
            前処理済みの説明変数。
        type : str | None
            "numeric" / "class" / "prob" / "raw"。None ならモードの既定。
        opts : Mapping | None
            type="raw" のとき推定器の predict にそのまま渡す引数。
        **kwargs
            すべての type で推定器の predict / predict_proba にそのまま渡す引数。
        """
        type = type or _DEFAULT_TYPE[self.mode]
        self._check_type(type)

        opts = dict(opts or {})
        if opts and type != "raw":
            LOGGER.warning("`opts` is only used with type = 'raw' and was ignored: %s", sorted(opts))

        # sklearn の推定器は 0 行を受け付けない
        if len(new_data) == 0:
            return self._empty_frame(type, new_data.index)

        if type == "numeric":
            columns = self._format_numeric(self.estimator.predict(new_data, **kwargs))
        elif type == "class":
            columns = self._format_class(self.estimator.predict(new_data, **kwargs))
        elif type == "prob":
            columns = self._format_prob(self.estimator.predict_proba(new_data, **kwargs))
        else:
            columns = self._format_raw(self.estimator.predict(new_data, **opts, **kwargs))

        return pd.DataFrame(columns, index=new_data.index)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _check_type(self, type: str) -> None:
        if type not in PREDICT_TYPES:
            raise PredictTypeError(f"`type` should be one of {list(PREDICT_TYPES)}, got {type!r}")
        allowed = PREDICT_TYPES[type]
        if self.mode not in allowed:
            raise PredictTypeError(
                f"For type = '{type}', the model mode must be {' or '.join(allowed)}; "
                f"this model is in {self.mode} mode."
            )
        if type == "prob" and not hasattr(self.estimator, "predict_proba"):
            raise PredictTypeError(f"{self.estimator.__class__.__name__} does not provide class probabilities")

    def _empty_frame(self, type: str, index: pd.Index) -> pd.DataFrame:
        """推定器を呼ばずに、type ごとの列だけを持つ 0 行の表を作る。"""
        if type == "numeric":
            names = [".pred"] if len(self.outcome_names) <= 1 else [f".pred_{n}" for n in self.outcome_names]
            columns: Dict[str, Any] = {n: np.empty(0, dtype=float) for n in names}
        elif type == "class":
            columns = {".pred_class": pd.Categorical([], categories=list(self.levels))}
        elif type == "prob":
            columns = {f".pred_{level}": np.empty(0, dtype=float) for level in self.levels}
        else:
            columns = {".pred_raw": np.empty(0, dtype=float)}
        return pd.DataFrame(columns, index=index)

    def _format_numeric(self, pred: Any) -> Dict[str, Any]:
        arr = np.asarray(pred, dtype=float)
        if len(self.outcome_names) <= 1:
            return {".pred": arr.reshape(-1)}
        arr = arr.reshape(len(arr), -1)
        return {f".pred_{name}": arr[:, i] for i, name in enumerate(self.outcome_names)}

    def _format_class(self, pred: Any) -> Dict[str, Any]:
        codes = np.asarray(pred).reshape(-1).astype(int)
        return {".pred_class": pd.Categorical.from_codes(codes, categories=list(self.levels))}

    def _format_prob(self, proba: Any) -> Dict[str, Any]:
        arr = np.asarray(proba, dtype=float)
        classes = getattr(self.estimator, "classes_", range(arr.shape[1]))
        return {f".pred_{self.levels[int(c)]}": arr[:, i] for i, c in enumerate(classes)}

    @staticmethod
    def _format_raw(raw: Any) -> Dict[str, Any]:
        arr = np.asarray(raw)
        if arr.ndim <= 1:
            return {".pred_raw": arr.reshape(-1)}
        arr = arr.reshape(len(arr), -1)
        return {f".pred_raw_{i}": arr[:, i] for i in range(arr.shape[1])}


def fit_xy(spec: ModelSpec, x: pd.DataFrame, y: pd.DataFrame | pd.Series) -> ModelFit:
    """
    説明変数 x と outcome y で spec の推定器を学習する。

    分類は outcome 1 列のみ。回帰は複数列も可（推定器が多出力に対応している場合）。
    """
    if spec.mode == "unknown":
        raise WorkflowSpecError(
            f"Please set the mode in the model specification ({spec.model_type}): "
            "use set_mode('regression') or set_mode('classification')."
        )
    if isinstance(y, pd.Series):
        y = y.to_frame()
    if y is None or y.shape[1] == 0:
        raise WorkflowSpecError("The preprocessor did not produce any outcome columns to fit the model on.")
    if len(x) != len(y):
        raise ValueError(f"x and y have different numbers of rows: {len(x)} != {len(y)}")

    outcome_names = tuple(str(c) for c in y.columns)
    estimator = build_estimator(spec)
    levels: Tuple[Any, ...] = ()

    if spec.mode == "classification":
        if y.shape[1] != 1:
            raise WorkflowSpecError(f"Classification models need exactly one outcome column, got {list(y.columns)}")
        cat = pd.Categorical(y.iloc[:, 0]).remove_unused_categories()
        if (cat.codes < 0).any():
            raise ValueError(f"The outcome column {outcome_names[0]!r} contains missing values")
        if len(cat.categories) < 2:
            raise ValueError(f"The outcome column {outcome_names[0]!r} must have at least two classes")
        levels = tuple(cat.categories)
        target: Any = np.asarray(cat.codes, dtype=int)
    else:
        target = y.iloc[:, 0].to_numpy(dtype=float) if y.shape[1] == 1 else y.to_numpy(dtype=float)

    LOGGER.info(
        "Fitting %s (engine=%s, mode=%s) on %d rows x %d columns ...",
        spec.model_type,
        spec.engine,
        spec.mode,
        len(x),
        x.shape[1],
    )
    t0 = time.perf_counter()
    estimator.fit(x, target)
    elapsed = time.perf_counter() - t0
    LOGGER.info("Fitted %s in %.3fs", type(estimator).__name__, elapsed)

    return ModelFit(
        spec=spec,
        estimator=estimator,
        outcome_names=outcome_names,
        levels=levels,
        elapsed=elapsed,
    )
