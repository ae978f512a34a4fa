# wflow/models/spec.py
"""
wflow.models.spec
=================

モデル仕様（未学習）。モデルの種類・モード・エンジン・主要ハイパーパラメータだけを持つ。
実際の推定器は engines のレジストリが組み立てる。

>>> spec = boost_tree(mode="regression", trees=50)
>>> spec.set_engine("sklearn").engine
'sklearn'
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

__all__ = [
    "MODES",
    "ModelSpec",
    "linear_reg",
    "logistic_reg",
    "boost_tree",
    "rand_forest",
]

MODES = ("regression", "classification", "unknown")


@dataclass(frozen=True)
class ModelSpec:
    """
    Attributes
    ----------
    model_type : str
        "linear_reg" / "logistic_reg" / "boost_tree" / "rand_forest" など。
    mode : str
        "regression" / "classification" / "unknown"。
    engine : str
        "sklearn" / "xgboost" など。engines.register_engine で追加可能。
    args : dict
        エンジン非依存の主要引数（None は「エンジン既定値」）。
    engine_args : dict
        推定器へそのまま渡す引数。
    """

    model_type: str
    mode: str = "unknown"
    engine: str = "sklearn"
    args: Dict[str, Any] = field(default_factory=dict)
    engine_args: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"mode must be one of {MODES}, got {self.mode!r}")

    def set_engine(self, engine: str, **engine_args: Any) -> "ModelSpec":
        return replace(self, engine=engine, engine_args=dict(engine_args))

    def set_mode(self, mode: str) -> "ModelSpec":
        return replace(self, mode=mode)

    def set_args(self, **args: Any) -> "ModelSpec":
        merged = dict(self.args)
        merged.update(args)
        return replace(self, args=merged)


def linear_reg(engine: str = "sklearn", penalty: Optional[float] = None, mixture: Optional[float] = None) -> ModelSpec:
    """線形回帰。penalty を与えると Ridge / ElasticNet になる（sklearn エンジン）。"""
    return ModelSpec("linear_reg", mode="regression", engine=engine, args={"penalty": penalty, "mixture": mixture})


def logistic_reg(engine: str = "sklearn", penalty: Optional[float] = None) -> ModelSpec:
    return ModelSpec("logistic_reg", mode="classification", engine=engine, args={"penalty": penalty})


def boost_tree(
    mode: str = "unknown",
    engine: str = "xgboost",
    trees: int = 100,
    tree_depth: int = 6,
    learn_rate: float = 0.3,
) -> ModelSpec:
    return ModelSpec(
        "boost_tree",
        mode=mode,
        engine=engine,
        args={"trees": trees, "tree_depth": tree_depth, "learn_rate": learn_rate},
    )


def rand_forest(mode: str = "unknown", engine: str = "sklearn", trees: int = 500, min_n: int = 2) -> ModelSpec:
    return ModelSpec("rand_forest", mode=mode, engine=engine, args={"trees": trees, "min_n": min_n})
