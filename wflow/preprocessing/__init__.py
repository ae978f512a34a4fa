# wflow/preprocessing/__init__.py
"""
wflow.preprocessing
===================

前処理層。学習時に ``mold`` で blueprint を確定し、予測時に ``forge`` で再適用する。

* **Formula**   … ``"y ~ x1 + log(x2)"`` 形式（指示変数展開・変換・交互作用）
* **Recipe**    … scikit-learn transformer をそのまま使う
* **Variables** … 列の選択のみ
"""

from __future__ import annotations

import logging
from typing import Union

from .blueprint import Blueprint, ForgedData, MoldResult, forge, mold
from .formula import Formula, FormulaBlueprint
from .recipe import Recipe, RecipeBlueprint
from .variables import Variables, VariablesBlueprint

logging.getLogger("wflow.preprocessing").addHandler(logging.NullHandler())

Preprocessor = Union[Formula, Recipe, Variables]

__all__ = [
    "Blueprint",
    "ForgedData",
    "MoldResult",
    "forge",
    "mold",
    "Formula",
    "FormulaBlueprint",
    "Recipe",
    "RecipeBlueprint",
    "Variables",
    "VariablesBlueprint",
    "Preprocessor",
]
