# tests/tracking/test_mlflow_config.py
from pathlib import Path

import mlflow
import pytest
from mlflow.tracking import MlflowClient

from wflow import Formula, linear_reg, workflow
from wflow import _mlflow
from wflow.tracking import WorkflowPredictor, _code_paths, log_workflow


@pytest.fixture
def zero_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """環境変数なしのゼロ設定。既定 DB の場所だけ一時ディレクトリへ差し替える"""
    db = tmp_path / "mlflow.db"
    monkeypatch.delenv("MLFLOW_TRACKING_URI", raising=False)
    monkeypatch.setattr(_mlflow, "_default_tracking_db", lambda: db)
    return db


def test_default_tracking_uri_is_sqlite(zero_config):
    uri = _mlflow.set_tracking_uri_zero_config()
    assert uri == f"sqlite:///{zero_config}"
    assert mlflow.get_tracking_uri() == uri


def test_argument_wins_over_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("MLFLOW_TRACKING_URI", f"sqlite:///{tmp_path}/env.db")
    explicit = f"sqlite:///{tmp_path}/arg.db"
    assert _mlflow.set_tracking_uri_zero_config(explicit) == explicit


def test_default_experiment_name(monkeypatch):
    assert _mlflow.default_experiment() == "wflow"
    monkeypatch.setenv("WFLOW_EXPERIMENT", "from-env")
    assert _mlflow.default_experiment() == "from-env"
    assert _mlflow.default_experiment("explicit") == "explicit"


def test_sqlite_experiment_keeps_artifacts_next_to_db(tmp_mlflow_env):
    uri = f"sqlite:///{tmp_mlflow_env}/mlflow.db"
    _mlflow.set_experiment_zero_config("exp-artifacts", uri)

    exp = MlflowClient().get_experiment_by_name("exp-artifacts")
    assert exp is not None
    assert exp.artifact_location == (Path(tmp_mlflow_env).resolve() / "mlartifacts").as_uri()

    # 2 回目は既存の Experiment をそのまま使う
    _mlflow.set_experiment_zero_config("exp-artifacts", uri)
    assert MlflowClient().get_experiment_by_name("exp-artifacts").experiment_id == exp.experiment_id


def test_log_and_load_with_zero_config(zero_config, cars_split):
    training, testing = cars_split
    fitted = workflow(Formula("mpg ~ cyl + log(disp)"), linear_reg()).fit(training)

    run_id = log_workflow(fitted, data=training)
    assert zero_config.exists()
    assert (zero_config.parent / "mlartifacts").is_dir()

    predictor = WorkflowPredictor(run_id=run_id)
    assert len(predictor.predict(testing)) == len(testing)


def test_model_requirements_resolve_from_the_index(cars_split):
    training, _ = cars_split
    fitted = workflow(Formula("mpg ~ cyl"), linear_reg()).fit(training)
    run_id = log_workflow(fitted)

    reqs_path = mlflow.pyfunc.get_model_dependencies(f"runs:/{run_id}/model")
    names = [line.split("==")[0].strip() for line in Path(reqs_path).read_text().splitlines()]
    assert "wflow" not in names
    assert "scikit-learn" in names

    # wflow 自体はコードとして同梱される
    (code_dir,) = _code_paths()
    assert (Path(code_dir) / "predict.py").is_file()
