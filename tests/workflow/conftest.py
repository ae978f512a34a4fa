# tests/workflow/conftest.py
import numpy as np
import pandas as pd
import pytest
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.compose import ColumnTransformer
from sklearn.preprocessing import FunctionTransformer

from wflow import Recipe, linear_reg, logistic_reg, workflow
from wflow.models import register_engine


class SpyRegressor(RegressorMixin, BaseEstimator):
    """predict に渡された追加引数を記録し、shift をそのまま予測値として返す"""

    def fit(self, X, y):
        self.calls_ = []
        self.n_features_in_ = X.shape[1]
        return self

    def predict(self, X, **kwargs):
        self.calls_.append(dict(kwargs))
        return np.full(len(X), float(kwargs.get("shift", 0.0)))


register_engine("linear_reg", "spy", ("regression",), lambda mode, args: SpyRegressor(), overwrite=True)


def log_disp_recipe() -> Recipe:
    ct = ColumnTransformer(
        [("log", FunctionTransformer(np.log, feature_names_out="one-to-one"), ["disp"])],
        remainder="passthrough",
    )
    return Recipe(ct, outcomes="mpg", predictors=["cyl", "disp"])


@pytest.fixture
def fitted_cars(cars_split):
    """学習 20 行で log(disp) レシピ + 線形回帰を学習したワークフロー"""
    training, _ = cars_split
    return workflow().add_model(linear_reg()).add_recipe(log_disp_recipe()).fit(training)


@pytest.fixture
def spy_cars(cars_split):
    training, _ = cars_split
    return workflow().add_model(linear_reg(engine="spy")).add_variables("mpg", ["cyl", "disp"]).fit(training)


@pytest.fixture
def fitted_flowers(flowers: pd.DataFrame):
    return workflow().add_model(logistic_reg()).add_formula("species ~ .").fit(flowers.iloc[:60])


@pytest.fixture
def log_disp() -> Recipe:
    return log_disp_recipe()
