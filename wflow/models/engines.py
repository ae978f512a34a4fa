# wflow/models/engines.py
"""
wflow.models.engines
====================

(モデル種別, エンジン) → 推定器ビルダー のレジストリ。

組み込み:
    linear_reg   / sklearn  … LinearRegression / Ridge / Lasso / ElasticNet
    logistic_reg / sklearn  … LogisticRegression
    boost_tree   / xgboost  … XGBRegressor / XGBClassifier
    boost_tree   / sklearn  … GradientBoostingRegressor / GradientBoostingClassifier
    rand_forest  / sklearn  … RandomForestRegressor / RandomForestClassifier

独自エンジンは register_engine() で追加する。ビルダーは ``(mode, args) -> estimator`` で、
args には None 以外の引数だけが渡される。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Sequence, Tuple

import xgboost as xgb
from sklearn.ensemble import (
    GradientBoostingClassifier,
    GradientBoostingRegressor,
    RandomForestClassifier,
    RandomForestRegressor,
)
from sklearn.linear_model import ElasticNet, Lasso, LinearRegression, LogisticRegression, Ridge

from ..errors import EngineError
from .spec import ModelSpec

LOGGER = logging.getLogger(__name__)

__all__ = ["Engine", "register_engine", "get_engine", "list_engines", "build_estimator"]

Builder = Callable[[str, Dict[str, Any]], Any]

SEED = 42


@dataclass(frozen=True)
class Engine:
    model_type: str
    engine: str
    modes: Tuple[str, ...]
    build: Builder


_REGISTRY: Dict[Tuple[str, str], Engine] = {}


def register_engine(
    model_type: str,
    engine: str,
    modes: Sequence[str],
    build: Builder,
    overwrite: bool = False,
) -> Engine:
    """エンジンを登録する。既存キーは overwrite=True の場合のみ置き換える。"""
    key = (model_type, engine)
    if key in _REGISTRY and not overwrite:
        raise EngineError(f"Engine {engine!r} is already registered for {model_type!r}")
    entry = Engine(model_type=model_type, engine=engine, modes=tuple(modes), build=build)
    _REGISTRY[key] = entry
    LOGGER.debug("Registered engine %s/%s modes=%s", model_type, engine, entry.modes)
    return entry


def get_engine(model_type: str, engine: str, mode: str) -> Engine:
    entry = _REGISTRY.get((model_type, engine))
    if entry is None:
        available = sorted(e for (m, e) in _REGISTRY if m == model_type)
        raise EngineError(
            f"Engine {engine!r} is not available for {model_type!r}. Available engines: {available}"
        )
    if mode not in entry.modes:
        raise EngineError(
            f"{model_type!r} with engine {engine!r} does not support mode {mode!r}. "
            f"Supported modes: {list(entry.modes)}"
        )
    return entry


def list_engines() -> list[Tuple[str, str]]:
    return sorted(_REGISTRY)


def build_estimator(spec: ModelSpec) -> Any:
    """ModelSpec から未学習の推定器を作る。engine_args は set_params で上書きする。"""
    entry = get_engine(spec.model_type, spec.engine, spec.mode)
    args = {k: v for k, v in spec.args.items() if v is not None}
    estimator = entry.build(spec.mode, args)
    if spec.engine_args:
        estimator.set_params(**spec.engine_args)
    return estimator


# ---------------------------------------------------------------------------
# 組み込みビルダー
# ---------------------------------------------------------------------------
def _linear_reg_sklearn(mode: str, args: Dict[str, Any]) -> Any:
    penalty = args.get("penalty")
    mixture = args.get("mixture", 0.0)
    if penalty is None:
        return LinearRegression()
    if mixture == 0.0:
        return Ridge(alpha=penalty)
    if mixture == 1.0:
        return Lasso(alpha=penalty)
    return ElasticNet(alpha=penalty, l1_ratio=mixture)


def _logistic_reg_sklearn(mode: str, args: Dict[str, Any]) -> Any:
    penalty = args.get("penalty")
    if penalty is None:
        return LogisticRegression(max_iter=1000)
    # sklearn の C は正則化の強さの逆数
    return LogisticRegression(C=1.0 / penalty, max_iter=1000)


def _boost_tree_xgboost(mode: str, args: Dict[str, Any]) -> Any:
    params = {
        "n_estimators": args.get("trees", 100),
        "max_depth": args.get("tree_depth", 6),
        "learning_rate": args.get("learn_rate", 0.3),
        "tree_method": "hist",
        "random_state": SEED,
        "n_jobs": -1,
    }
    if mode == "classification":
        return xgb.XGBClassifier(**params)
    return xgb.XGBRegressor(objective="reg:squarederror", **params)


def _boost_tree_sklearn(mode: str, args: Dict[str, Any]) -> Any:
    params = {
        "n_estimators": args.get("trees", 100),
        "max_depth": args.get("tree_depth", 3),
        "learning_rate": args.get("learn_rate", 0.1),
        "random_state": SEED,
    }
    if mode == "classification":
        return GradientBoostingClassifier(**params)
    return GradientBoostingRegressor(**params)


def _rand_forest_sklearn(mode: str, args: Dict[str, Any]) -> Any:
    params = {
        "n_estimators": args.get("trees", 500),
        "min_samples_split": args.get("min_n", 2),
        "random_state": SEED,
        "n_jobs": -1,
    }
    if mode == "classification":
        return RandomForestClassifier(**params)
    return RandomForestRegressor(**params)


register_engine("linear_reg", "sklearn", ("regression",), _linear_reg_sklearn)
register_engine("logistic_reg", "sklearn", ("classification",), _logistic_reg_sklearn)
register_engine("boost_tree", "xgboost", ("regression", "classification"), _boost_tree_xgboost)
register_engine("boost_tree", "sklearn", ("regression", "classification"), _boost_tree_sklearn)
register_engine("rand_forest", "sklearn", ("regression", "classification"), _rand_forest_sklearn)
