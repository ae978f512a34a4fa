# wflow/errors.py
"""
wflow.errors
============

パッケージ内で送出する例外の一覧。

* **WorkflowError**           … すべての基底
* **UntrainedWorkflowError**  … 未学習ワークフローへの predict / extract
* **WorkflowSpecError**       … モデル・前処理の組み立て不備
* **RowAlignmentError**       … 予測結果と outcome の行がそろわない
* **MissingColumnError**      … forge 時の必須列欠落（KeyError 互換）
* **ColumnTypeError**         … forge 時の列型不一致（TypeError 互換）
* **FormulaError**            … formula 文字列の構文エラー
* **PredictTypeError**        … 予測タイプとモード/推定器の不一致
* **EngineError**             … 未登録のモデル × エンジン
"""

from __future__ import annotations

from typing import Iterable

__all__ = [
    "WorkflowError",
    "UntrainedWorkflowError",
    "WorkflowSpecError",
    "RowAlignmentError",
    "MissingColumnError",
    "ColumnTypeError",
    "FormulaError",
    "PredictTypeError",
    "EngineError",
]


class WorkflowError(Exception):
    """wflow の例外の基底クラス。"""


class UntrainedWorkflowError(WorkflowError):
    """学習前のワークフローを学習済みとして扱おうとした。"""

    DEFAULT_MESSAGE = "Workflow has not yet been trained. Do you need to call `fit()`?"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.DEFAULT_MESSAGE)


class WorkflowSpecError(WorkflowError):
    pass


class RowAlignmentError(WorkflowError):
    pass


class MissingColumnError(WorkflowError, KeyError):
    """必須列が new_data に無い。"""

    def __init__(self, columns: Iterable[str], role: str = "predictor") -> None:
        self.columns = list(columns)
        self.role = role
        super().__init__(f"The following required {role} columns are missing: {self.columns}")

    def __str__(self) -> str:  # KeyError は repr で包むので素のメッセージに戻す
        return str(self.args[0])


class ColumnTypeError(WorkflowError, TypeError):
    pass


class FormulaError(WorkflowError, ValueError):
    pass


class PredictTypeError(WorkflowError, ValueError):
    pass


class EngineError(WorkflowError, ValueError):
    pass
