# tests/conftest.py
from tempfile import TemporaryDirectory

import mlflow
import numpy as np
import pandas as pd
import pytest


def make_cars(n: int = 32, seed: int = 42) -> pd.DataFrame:
    """mtcars 風の回帰用データ（mpg ~ cyl + disp）"""
    rng = np.random.default_rng(seed)
    cyl = rng.choice([4, 6, 8], size=n)
    disp = cyl * 40 + rng.normal(0, 20, n)
    mpg = 45 - 4.5 * np.log(disp) - 0.6 * cyl + rng.normal(0, 1.0, n)
    return pd.DataFrame({"mpg": mpg, "cyl": cyl, "disp": disp})


def make_flowers(n: int = 90, seed: int = 42) -> pd.DataFrame:
    """3 クラスがよく分離した分類用データ"""
    rng = np.random.default_rng(seed)
    species = np.repeat(["setosa", "versicolor", "virginica"], n // 3)
    centers = {"setosa": (1.5, 3.4), "versicolor": (4.5, 2.8), "virginica": (6.0, 3.0)}
    petal = np.array([centers[s][0] for s in species]) + rng.normal(0, 0.3, len(species))
    sepal = np.array([centers[s][1] for s in species]) + rng.normal(0, 0.2, len(species))
    df = pd.DataFrame({"petal": petal, "sepal": sepal, "species": species})
    # 行順をシャッフル（学習/予測の分割で全クラスが入るように）
    return df.sample(frac=1.0, random_state=seed).reset_index(drop=True)


@pytest.fixture
def cars() -> pd.DataFrame:
    return make_cars()


@pytest.fixture
def cars_split(cars: pd.DataFrame):
    """学習 20 行 / 予測 12 行"""
    return cars.iloc[:20].copy(), cars.iloc[20:].copy()


@pytest.fixture
def flowers() -> pd.DataFrame:
    return make_flowers()


@pytest.fixture(autouse=True)
def tmp_mlflow_env(monkeypatch: pytest.MonkeyPatch):
    """MLflow の tracking URI を一時ディレクトリの SQLite へ（成果物もその中）"""
    with TemporaryDirectory() as tmpdir:
        uri = f"sqlite:///{tmpdir}/mlflow.db"
        monkeypatch.setenv("MLFLOW_TRACKING_URI", uri)
        monkeypatch.delenv("WFLOW_EXPERIMENT", raising=False)
        monkeypatch.chdir(tmpdir)
        mlflow.set_tracking_uri(uri)
        yield tmpdir
