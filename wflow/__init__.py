"""
wflow
-----
前処理（formula / recipe / variables）とモデル仕様を 1 つのワークフローにまとめ、
学習時の前処理を予測時にそのまま再適用して予測するための小さなパッケージ。

トップレベルAPI（遅延 re-export）
--------------------------------
- workflow, Workflow        … wflow.workflows
- predict_workflow          … wflow.predict
- Formula, Recipe, Variables, forge, mold … wflow.preprocessing
- linear_reg, logistic_reg, boost_tree, rand_forest, fit_xy … wflow.models
- log_workflow, WorkflowPredictor … wflow.tracking（MLflow）
- UntrainedWorkflowError ほか例外 … wflow.errors
"""

from __future__ import annotations

import importlib
import logging
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING

# ----- バージョン -------------------------------------------------
try:
    __version__: str = version("wflow")  # インストール後はメタデータから取得
except PackageNotFoundError:  # 開発ツリーでの読み込み用
    __version__ = "0.0.0-dev"

# ----- パッケージ全体で使う基本ロガー ----------------------------
logging.getLogger("wflow").addHandler(logging.NullHandler())

# 公開名 → 提供モジュール
_EXPORTS = {
    "workflow": "wflow.workflows",
    "Workflow": "wflow.workflows",
    "predict_workflow": "wflow.predict",
    "Formula": "wflow.preprocessing",
    "Recipe": "wflow.preprocessing",
    "Variables": "wflow.preprocessing",
    "forge": "wflow.preprocessing",
    "mold": "wflow.preprocessing",
    "linear_reg": "wflow.models",
    "logistic_reg": "wflow.models",
    "boost_tree": "wflow.models",
    "rand_forest": "wflow.models",
    "fit_xy": "wflow.models",
    "log_workflow": "wflow.tracking",
    "WorkflowPredictor": "wflow.tracking",
    "WorkflowError": "wflow.errors",
    "UntrainedWorkflowError": "wflow.errors",
    "WorkflowSpecError": "wflow.errors",
}

__all__ = [*_EXPORTS, "__version__"]

# 型チェッカー/IDE向け（実行時は読み込まれない）
if TYPE_CHECKING:  # pragma: no cover
    from .errors import UntrainedWorkflowError, WorkflowError, WorkflowSpecError  # noqa: F401
    from .models import boost_tree, fit_xy, linear_reg, logistic_reg, rand_forest  # noqa: F401
    from .predict import predict_workflow  # noqa: F401
    from .preprocessing import Formula, Recipe, Variables, forge, mold  # noqa: F401
    from .tracking import WorkflowPredictor, log_workflow  # noqa: F401
    from .workflows import Workflow, workflow  # noqa: F401


def __getattr__(name: str):
    """
    遅延でサブモジュールから公開名を re-export する。
    import wflow だけで mlflow / xgboost を読み込まないため。
    """
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(name)
    try:
        mod = importlib.import_module(module_name)
    except ModuleNotFoundError as exc:  # 依存不足を親切に通知
        raise ImportError(f"{name} を利用するには依存関係が不足しています: {exc}") from exc
    val = getattr(mod, name)

    # キャッシュして次回以降の属性解決を高速化
    globals()[name] = val
    return val


def __dir__() -> list[str]:  # pragma: no cover
    return sorted(__all__)
