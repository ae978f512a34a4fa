# wflow/tracking.py
"""
wflow.tracking
==============

学習済み Workflow を MLflow に記録・ロードする。

- **WorkflowModel**     … Workflow を包む ``mlflow.pyfunc.PythonModel``（前処理込みで配布できる）
- **log_workflow()**    … Params / 学習データ上の Metrics / pyfunc モデルを 1 run に記録
- **WorkflowPredictor** … run_id（runs:/）または Model Registry（models:/）からロードして予測
  Registry が使えない/見つからない場合は Experiment の最新 run に自動フォールバック

Tracking URI はゼロ設定（引数 > MLFLOW_TRACKING_URI > sqlite:///<repo>/mlflow.db）。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import mlflow
import mlflow.pyfunc
import pandas as pd
from mlflow.exceptions import MlflowException
from mlflow.tracking import MlflowClient

from ._mlflow import default_experiment, set_experiment_zero_config, set_tracking_uri_zero_config
from .errors import UntrainedWorkflowError
from .metrics import evaluate
from .preprocessing import Formula
from .workflows import Workflow

LOGGER = logging.getLogger(__name__)

__all__ = ["WorkflowModel", "log_workflow", "WorkflowPredictor"]

ARTIFACT_PATH = "model"

# pyfunc モデルの実行環境。推論時の依存推定（サブプロセス起動）を避けるため明示する
# wflow 自体は PyPI に無いので code_paths でパッケージごと同梱する
_PIP_REQUIREMENTS = ["pandas", "numpy", "scikit-learn", "xgboost", "mlflow"]


def _code_paths() -> List[str]:
    """pyfunc に同梱する wflow パッケージのディレクトリ。"""
    return [str(Path(__file__).resolve().parent)]


class WorkflowModel(mlflow.pyfunc.PythonModel):
    """
    学習済み Workflow を pyfunc として包む。

    ``params`` で ``type`` / ``outcomes`` を上書きできる（既定はコンストラクタの値）。
    """

    def __init__(self, workflow: Workflow, type: Optional[str] = None, outcomes: bool = False) -> None:
        if not workflow.trained:
            raise UntrainedWorkflowError()
        self.workflow = workflow
        self.type = type
        self.outcomes = outcomes

    def predict(self, context, model_input, params=None):
        _ = context
        params = dict(params or {})
        X = model_input if isinstance(model_input, pd.DataFrame) else pd.DataFrame(model_input)
        return self.workflow.predict(
            X,
            type=params.get("type", self.type),
            outcomes=bool(params.get("outcomes", self.outcomes)),
        )


def _workflow_params(workflow: Workflow) -> Dict[str, Any]:
    spec = workflow.extract_spec()
    pre = workflow.extract_preprocessor()
    params: Dict[str, Any] = {
        "preprocessor": pre.kind,
        "model_type": spec.model_type,
        "engine": spec.engine,
        "mode": spec.mode,
        "n_predictors": workflow.extract_mold().predictors.shape[1],
    }
    if isinstance(pre, Formula):
        params["formula"] = pre.text
    for k, v in spec.args.items():
        if v is not None:
            params[f"arg_{k}"] = v
    for k, v in spec.engine_args.items():
        params[f"engine_{k}"] = v
    return params


def _training_metrics(workflow: Workflow, data: pd.DataFrame) -> Dict[str, float]:
    """学習データに対する指標。outcome が複数なら列ごとに接尾辞を付ける。"""
    preds = workflow.predict(data, outcomes=True)
    names = workflow.extract_fit().outcome_names
    if len(names) == 1:
        return {f"{k}_train": v for k, v in evaluate(preds, truth=names[0]).items()}

    metrics: Dict[str, float] = {}
    for name in names:
        for k, v in evaluate(preds, truth=name, estimate=f".pred_{name}").items():
            metrics[f"{k}_{name}_train"] = v
    return metrics


def log_workflow(
    workflow: Workflow,
    data: Optional[pd.DataFrame] = None,
    experiment: Optional[str] = None,
    run_name: Optional[str] = None,
    tags: Optional[Mapping[str, str]] = None,
    tracking_uri: Optional[str] = None,
    register_name: Optional[str] = None,
) -> str:
    """
    学習済み Workflow を MLflow に記録し、run_id を返す。

    Parameters
    ----------
    workflow : Workflow
        fit 済みのワークフロー。
    data : pd.DataFrame | None
        与えた場合、この上で predict(outcomes=True) を行い ``*_train`` 指標を記録する。
    experiment : str | None
        Experiment 名。None なら WFLOW_EXPERIMENT → "wflow"。
    register_name : str | None
        指定すると Model Registry に登録する（利用できない環境では警告のみ）。
    """
    if not workflow.trained:
        raise UntrainedWorkflowError()

    uri = set_tracking_uri_zero_config(tracking_uri)
    experiment = default_experiment(experiment)
    set_experiment_zero_config(experiment, uri)

    with mlflow.start_run(run_name=run_name, tags=dict(tags) if tags else None) as run:
        mlflow.log_params(_workflow_params(workflow))

        if data is not None:
            metrics = _training_metrics(workflow, data)
            for k, v in metrics.items():
                mlflow.log_metric(k, v)
            LOGGER.info("Training metrics: %s", metrics)

        mlflow.pyfunc.log_model(
            artifact_path=ARTIFACT_PATH,
            python_model=WorkflowModel(workflow),
            pip_requirements=_PIP_REQUIREMENTS,
            code_paths=_code_paths(),
        )
        run_id = run.info.run_id

    LOGGER.info("Logged workflow to experiment=%s run_id=%s", experiment, run_id)

    if register_name:
        try:
            mlflow.register_model(f"runs:/{run_id}/{ARTIFACT_PATH}", register_name)
        except MlflowException as exc:
            LOGGER.warning("Model Registry is not available; skipped registration: %s", exc)

    return run_id


class WorkflowPredictor:
    """
    Parameters
    ----------
    run_id : str | None
        直接 run_id を指定する場合。指定されていれば runs:/<run_id>/model のみを使用する。
    stage : str | None
        MLflow Model Registry のステージ名 (例: 'Production')。run_id が None の場合のみ有効。
    model_name : str
        Model Registry を使うときのモデル登録名。既定 'wflow'。
    tracking_uri : str | None
        MLflow Tracking URI。None ならゼロ設定（sqlite:///<repo>/mlflow.db）。
    experiment : str | None
        Registry が使えない/見つからない場合に、最新 run を探す Experiment 名。
    """

    def __init__(
        self,
        run_id: Optional[str] = None,
        stage: Optional[str] = "Production",
        model_name: str = "wflow",
        tracking_uri: Optional[str] = None,
        experiment: Optional[str] = None,
    ) -> None:
        set_tracking_uri_zero_config(tracking_uri)

        self._client = MlflowClient()
        self._experiment_name = default_experiment(experiment)

        uris: List[str]
        if run_id:
            uris = [f"runs:/{run_id}/{ARTIFACT_PATH}"]
        else:
            uris = [f"models:/{model_name}/{stage}"] if stage else []
            uris.append("latest")  # Registry が駄目なら最新 run

        last_err: Optional[Exception] = None
        self.workflow: Optional[Workflow] = None
        self.model_uri: Optional[str] = None

        for uri in uris:
            try:
                if uri == "latest":
                    uri = self._latest_run_uri(self._experiment_name)
                LOGGER.info("Loading workflow from MLflow URI: %s", uri)
                self.workflow = self._load(uri)
                self.model_uri = uri
                break
            except Exception as exc:  # 次の候補 URI を試す（最後のエラーは下で連鎖させる）
                LOGGER.warning("Failed to load %s: %s", uri, exc)
                last_err = exc

        if self.workflow is None:
            raise RuntimeError(f"No loadable workflow found (tried: {uris})") from last_err

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def predict(
        self,
        new_data: pd.DataFrame,
        type: Optional[str] = None,
        opts: Optional[Mapping[str, Any]] = None,
        outcomes: bool = False,
        **kwargs: Any,
    ) -> pd.DataFrame:
        X = new_data if isinstance(new_data, pd.DataFrame) else pd.DataFrame(new_data)
        return self.workflow.predict(X, type=type, opts=opts, outcomes=outcomes, **kwargs)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @staticmethod
    def _load(uri: str) -> Workflow:
        wrapped = mlflow.pyfunc.load_model(uri).unwrap_python_model()
        if not isinstance(wrapped, WorkflowModel):
            raise TypeError(f"{uri} is not a wflow workflow model ({type(wrapped).__name__})")
        return wrapped.workflow

    def _latest_run_uri(self, experiment_name: str) -> str:
        """Experiment の最新 run から runs:/.../model を返す。見つからなければ例外。"""
        exp = self._client.get_experiment_by_name(experiment_name)
        if not exp:
            raise RuntimeError(f"Experiment not found: {experiment_name}")

        runs = self._client.search_runs(
            [exp.experiment_id],
            order_by=["attributes.start_time DESC"],
            max_results=1,
        )
        if not runs:
            raise RuntimeError(f"No runs found in experiment: {experiment_name}")
        return f"runs:/{runs[0].info.run_id}/{ARTIFACT_PATH}"
