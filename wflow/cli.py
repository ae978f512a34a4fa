# wflow/cli.py
"""
wflow.cli
=========

Command-line interface for wflow.

Usage examples
--------------

# formula で線形回帰を学習し、MLflow に記録
wflow fit --data train.csv --formula "mpg ~ cyl + log(disp)" --model linear_reg

# 列指定（variables）で xgboost 分類
wflow fit --data train.csv --outcome species --model boost_tree --engine xgboost --mode classification

# 最新 run（または Registry の Production）で予測し CSV へ
wflow predict --data new.csv --output preds.csv --outcomes

# run_id を指定してクラス確率を標準出力へ
wflow predict --data new.csv --run-id 0123abcd --type prob
"""

from __future__ import annotations

import sys
from enum import Enum
from pathlib import Path
from typing import Annotated, List, Optional

import pandas as pd
import typer

from .models import spec as model_specs
from .tracking import WorkflowPredictor, log_workflow
from .utils.logger import setup_logger
from .workflows import workflow

app = typer.Typer(help="Fit and predict with preprocessing + model workflows")


class ModelType(str, Enum):
    linear_reg = "linear_reg"
    logistic_reg = "logistic_reg"
    boost_tree = "boost_tree"
    rand_forest = "rand_forest"


class Mode(str, Enum):
    regression = "regression"
    classification = "classification"


class PredType(str, Enum):
    numeric = "numeric"
    class_ = "class"
    prob = "prob"
    raw = "raw"


# ---------- Helper -------------------------------------------------
def _read_csv(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise typer.BadParameter(f"file not found: {path}")
    return pd.read_csv(path)


def _build_spec(model: ModelType, engine: Optional[str], mode: Optional[Mode]):
    spec = getattr(model_specs, model.value)()
    if engine:
        spec = spec.set_engine(engine)
    if mode is not None:
        spec = spec.set_mode(mode.value)
    return spec


@app.callback()
def main(
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="DEBUG / INFO / WARNING ...（既定は環境変数 LOG_LEVEL → INFO）"),
    ] = None,
):
    """ロガーを初期化する。"""
    setup_logger(log_level=log_level)


@app.command("fit")
def fit_workflow(
    data: Annotated[Path, typer.Option("--data", "-d", help="学習データ CSV")],
    formula: Annotated[Optional[str], typer.Option("--formula", "-f", help='例: "y ~ x1 + log(x2)"')] = None,
    outcome: Annotated[Optional[List[str]], typer.Option("--outcome", help="outcome 列（formula を使わない場合）")] = None,
    predictor: Annotated[Optional[List[str]], typer.Option("--predictor", help="説明変数列。省略時は outcome 以外の全列")] = None,
    model: Annotated[ModelType, typer.Option("--model", "-m", case_sensitive=False)] = ModelType.linear_reg,
    engine: Annotated[Optional[str], typer.Option("--engine", "-e", help="sklearn / xgboost")] = None,
    mode: Annotated[Optional[Mode], typer.Option("--mode", case_sensitive=False)] = None,
    experiment: Annotated[Optional[str], typer.Option("--experiment", help="MLflow Experiment 名")] = None,
    register_name: Annotated[Optional[str], typer.Option("--register", help="Model Registry 登録名")] = None,
):
    """ワークフローを学習し、MLflow に記録。run_id を出力。"""
    if bool(formula) == bool(outcome):
        raise typer.BadParameter("Specify exactly one of --formula or --outcome")

    df = _read_csv(data)
    wf = workflow().add_model(_build_spec(model, engine, mode))
    wf = wf.add_formula(formula) if formula else wf.add_variables(outcome, predictor or None)

    fitted = wf.fit(df)
    run_id = log_workflow(fitted, data=df, experiment=experiment, register_name=register_name)
    typer.echo(f"MLflow run_id: {run_id}")


@app.command("predict")
def predict_csv(
    data: Annotated[Path, typer.Option("--data", "-d", help="予測対象 CSV")],
    run_id: Annotated[Optional[str], typer.Option("--run-id", help="使用する run_id。未指定なら Production/最新run")] = None,
    stage: Annotated[str, typer.Option("--stage", help="Model Registry ステージ名")] = "Production",
    model_name: Annotated[str, typer.Option("--model-name", help="Model Registry 登録名")] = "wflow",
    experiment: Annotated[Optional[str], typer.Option("--experiment", help="最新 run を探す Experiment 名")] = None,
    type: Annotated[Optional[PredType], typer.Option("--type", "-t", case_sensitive=False)] = None,
    outcomes: Annotated[bool, typer.Option("--outcomes/--no-outcomes", help="処理済み outcome 列も出力")] = False,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="出力 CSV。省略時は標準出力")] = None,
):
    """学習済みワークフローで予測し、CSV を書き出す。"""
    df = _read_csv(data)
    predictor = WorkflowPredictor(run_id=run_id, stage=stage, model_name=model_name, experiment=experiment)
    preds = predictor.predict(df, type=type.value if type else None, outcomes=outcomes)

    if output is None:
        preds.to_csv(sys.stdout, index=False)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        preds.to_csv(output, index=False)
        typer.echo(f"wrote {len(preds)} rows → {output}")


if __name__ == "__main__":
    app()
