# wflow/_mlflow.py
"""
ゼロ設定（.env 不要）で MLflow の Tracking URI を初期化するヘルパー。

優先順位:
1) 関数引数 `tracking_uri` が指定されていればそれを採用
2) 環境変数 `MLFLOW_TRACKING_URI` があればそれを採用
3) どちらも無ければ、リポジトリ直下の `mlflow.db`（SQLite）を
   `sqlite:///.../mlflow.db` として設定
   （ファイルストア `file://.../mlruns` は新しい MLflow では保守モードのため使わない）

SQLite ストアで Experiment を新規作成するときは、成果物の置き場を DB と同じ
ディレクトリの `mlartifacts/` に固定する（既定の `./mlruns` はカレントディレクトリ依存）。

Experiment 名は引数 > 環境変数 `WFLOW_EXPERIMENT` > "wflow" の順で決める。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import mlflow
from mlflow.tracking import MlflowClient

__all__ = [
    "set_tracking_uri_zero_config",
    "set_experiment_zero_config",
    "default_experiment",
    "_default_tracking_db",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_EXPERIMENT = "wflow"
_SQLITE_PREFIX = "sqlite:///"


def _default_tracking_db() -> Path:
    """既定の MLflow DB ファイル（<repo>/mlflow.db）を返す。"""
    # <repo>/wflow/_mlflow.py → 親の親がリポジトリルート
    return Path(__file__).resolve().parents[1] / "mlflow.db"


def set_tracking_uri_zero_config(tracking_uri: str | None = None) -> str:
    """
    MLflow の Tracking URI を “ゼロ設定”方針で決定し、mlflow に反映する。設定した URI を返す。

    Parameters
    ----------
    tracking_uri : str | None
        明示的に Tracking URI を指定したい場合に与える。
        省略時は環境変数 MLFLOW_TRACKING_URI、どちらも無ければ <repo>/mlflow.db を使用。
    """
    uri = tracking_uri or os.getenv("MLFLOW_TRACKING_URI")

    if not uri:
        uri = f"{_SQLITE_PREFIX}{_default_tracking_db()}"

    mlflow.set_tracking_uri(uri)
    return uri


def set_experiment_zero_config(experiment: str, tracking_uri: str) -> None:
    """Experiment を有効化する。SQLite ストアで未作成なら成果物の置き場を指定して作る。"""
    if tracking_uri.startswith(_SQLITE_PREFIX):
        client = MlflowClient(tracking_uri=tracking_uri)
        if client.get_experiment_by_name(experiment) is None:
            db_path = Path(tracking_uri[len(_SQLITE_PREFIX):]).resolve()
            location = (db_path.parent / "mlartifacts").as_uri()
            client.create_experiment(experiment, artifact_location=location)
            LOGGER.info("Created experiment %s (artifacts: %s)", experiment, location)
    mlflow.set_experiment(experiment)


def default_experiment(experiment: str | None = None) -> str:
    return experiment or os.getenv("WFLOW_EXPERIMENT") or DEFAULT_EXPERIMENT
