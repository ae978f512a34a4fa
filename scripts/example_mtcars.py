"""
scripts/example_mtcars.py
ワンショットのデモ:
mtcars 風のデータ 32 行を 20 行（学習）/ 12 行（予測）に分け、
disp を log 変換するレシピ + 線形回帰のワークフローを学習して予測する。
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer
from sklearn.preprocessing import FunctionTransformer

from wflow import Recipe, linear_reg, workflow
from wflow.utils.logger import setup_logger


def make_cars(n: int = 32, seed: int = 42) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    cyl = rng.choice([4, 6, 8], size=n)
    disp = cyl * 40 + rng.normal(0, 20, n)
    mpg = 45 - 4.5 * np.log(disp) - 0.6 * cyl + rng.normal(0, 1.0, n)
    return pd.DataFrame({"mpg": mpg, "cyl": cyl, "disp": disp})


def main() -> None:
    setup_logger()
    logger = logging.getLogger(__name__)

    cars = make_cars()
    training, testing = cars.iloc[:20], cars.iloc[20:]

    log_disp = ColumnTransformer(
        [("log", FunctionTransformer(np.log, feature_names_out="one-to-one"), ["disp"])],
        remainder="passthrough",
    )
    wf = (
        workflow()
        .add_model(linear_reg())
        .add_recipe(Recipe(log_disp, outcomes="mpg", predictors=["cyl", "disp"]))
    )
    fitted = wf.fit(training)

    # testing に log 変換を自動で再適用してから予測する
    logger.info("Predictions:\n%s", fitted.predict(testing))
    logger.info("With outcomes:\n%s", fitted.predict(testing, outcomes=True))


if __name__ == "__main__":
    main()
