# wflow/models/__init__.py
"""wflow.models
=================

モデル層（仕様・エンジン・学習済みモデル）。

概要
----
* **ModelSpec**  … 未学習のモデル仕様（linear_reg / logistic_reg / boost_tree / rand_forest）
* **engines**    … (モデル種別, エンジン) → sklearn / xgboost 推定器のレジストリ
* **ModelFit**   … 学習済みモデル。予測タイプごとに整形した DataFrame を返す

使い方
------
    >>> from wflow.models import boost_tree, fit_xy
    >>> fit = fit_xy(boost_tree(mode="regression", trees=20), X, y)
    >>> fit.predict(X.head(), type="numeric")
"""

from __future__ import annotations

import logging

from .engines import Engine, build_estimator, get_engine, list_engines, register_engine
from .fit import PREDICT_TYPES, ModelFit, fit_xy
from .spec import MODES, ModelSpec, boost_tree, linear_reg, logistic_reg, rand_forest

logging.getLogger("wflow.models").addHandler(logging.NullHandler())

__all__ = [
    "MODES",
    "ModelSpec",
    "linear_reg",
    "logistic_reg",
    "boost_tree",
    "rand_forest",
    "Engine",
    "register_engine",
    "get_engine",
    "list_engines",
    "build_estimator",
    "PREDICT_TYPES",
    "ModelFit",
    "fit_xy",
]
