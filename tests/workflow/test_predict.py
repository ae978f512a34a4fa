# tests/workflow/test_predict.py
from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from wflow import Formula, linear_reg, predict_workflow, workflow
from wflow.errors import (
    ColumnTypeError,
    MissingColumnError,
    PredictTypeError,
    RowAlignmentError,
    UntrainedWorkflowError,
)
from wflow.workflows import ModelStage


class RecordingFit:
    """受け取った引数を記録するだけの Predictable"""

    def __init__(self, index=None):
        self.index = index
        self.calls = []

    def predict(self, new_data, type=None, opts=None, **kwargs):
        self.calls.append({"new_data": new_data, "type": type, "opts": opts, "kwargs": kwargs})
        index = new_data.index if self.index is None else self.index
        return pd.DataFrame({".pred": np.zeros(len(index))}, index=index)


def _with_fit(wf, fit):
    return replace(wf, model=ModelStage(spec=wf.model.spec, fit=fit))


# ---------------------------------------------------------------------------
# 学習済みチェック
# ---------------------------------------------------------------------------
@pytest.mark.parametrize("new_data", [pd.DataFrame(), None, pd.DataFrame({"cyl": [4]})])
def test_untrained_workflow_raises_regardless_of_data(new_data):
    wf = workflow().add_model(linear_reg()).add_formula("mpg ~ cyl")
    with pytest.raises(UntrainedWorkflowError, match="has not yet been trained"):
        predict_workflow(wf, new_data)


def test_untrained_workflow_method_raises():
    with pytest.raises(UntrainedWorkflowError):
        workflow().predict(pd.DataFrame({"x": [1.0]}))


# ---------------------------------------------------------------------------
# 代表シナリオ（20 行で学習 → 12 行を予測）
# ---------------------------------------------------------------------------
def test_scenario_numeric_predictions(fitted_cars, cars_split):
    _, testing = cars_split
    preds = predict_workflow(fitted_cars, testing)

    assert len(preds) == 12
    assert list(preds.columns) == [".pred"]
    assert preds[".pred"].dtype == float
    assert preds.index.equals(testing.index)
    assert np.isfinite(preds[".pred"]).all()


def test_scenario_with_outcomes(fitted_cars, cars_split):
    _, testing = cars_split
    plain = predict_workflow(fitted_cars, testing)
    with_y = predict_workflow(fitted_cars, testing, outcomes=True)

    assert list(with_y.columns) == [".pred", "mpg"]
    assert len(with_y) == 12
    np.testing.assert_allclose(with_y[".pred"], plain[".pred"])
    np.testing.assert_allclose(with_y["mpg"], testing["mpg"])


def test_predictions_are_reasonable(fitted_cars, cars_split):
    # 合成データは log(disp) に対して線形なので誤差は小さいはず
    _, testing = cars_split
    preds = fitted_cars.predict(testing, outcomes=True)
    resid = preds[".pred"] - preds["mpg"]
    assert float(np.sqrt(np.mean(resid**2))) < 3.0


def test_repeated_calls_are_identical(fitted_cars, cars_split):
    _, testing = cars_split
    first = predict_workflow(fitted_cars, testing, outcomes=True)
    second = predict_workflow(fitted_cars, testing, outcomes=True)
    pd.testing.assert_frame_equal(first, second)


def test_predict_does_not_modify_inputs(fitted_cars, cars_split):
    _, testing = cars_split
    before = testing.copy()
    blueprint = fitted_cars.extract_blueprint()
    estimator = fitted_cars.extract_estimator()
    coef = estimator.coef_.copy()

    predict_workflow(fitted_cars, testing, outcomes=True)

    pd.testing.assert_frame_equal(testing, before)
    assert fitted_cars.trained
    assert fitted_cars.extract_blueprint() is blueprint
    np.testing.assert_array_equal(estimator.coef_, coef)


def test_extra_columns_are_ignored(fitted_cars, cars_split):
    _, testing = cars_split
    noisy = testing.assign(unused=np.arange(len(testing)), note="x")
    pd.testing.assert_frame_equal(predict_workflow(fitted_cars, noisy), predict_workflow(fitted_cars, testing))


def test_outcome_column_not_needed_without_outcomes(fitted_cars, cars_split):
    _, testing = cars_split
    preds = predict_workflow(fitted_cars, testing.drop(columns=["mpg"]))
    assert len(preds) == len(testing)


def test_outcomes_false_matches_model_output_columns(fitted_cars, cars_split):
    _, testing = cars_split
    forged = fitted_cars.extract_blueprint().forge(testing)
    direct = fitted_cars.extract_fit().predict(forged.predictors)
    pd.testing.assert_frame_equal(predict_workflow(fitted_cars, testing), direct)


# ---------------------------------------------------------------------------
# 引数の受け渡し
# ---------------------------------------------------------------------------
def test_type_and_opts_forwarded_unchanged(fitted_cars, cars_split):
    _, testing = cars_split
    fake = RecordingFit()
    wf = _with_fit(fitted_cars, fake)
    opts = {"output_margin": True}

    predict_workflow(wf, testing, type="raw", opts=opts, ntree_limit=3)

    call = fake.calls[0]
    assert call["type"] == "raw"
    assert call["opts"] is opts
    assert call["kwargs"] == {"ntree_limit": 3}
    assert len(call["new_data"]) == len(testing)


def test_missing_opts_become_empty_mapping(fitted_cars, cars_split):
    _, testing = cars_split
    fake = RecordingFit()
    predict_workflow(_with_fit(fitted_cars, fake), testing)
    assert fake.calls[0]["type"] is None
    assert fake.calls[0]["opts"] == {}


def test_model_receives_forged_predictors(fitted_cars, cars_split):
    _, testing = cars_split
    fake = RecordingFit()
    predict_workflow(_with_fit(fitted_cars, fake), testing)

    received = fake.calls[0]["new_data"]
    assert list(received.columns) == ["log__disp", "remainder__cyl"]
    np.testing.assert_allclose(received["log__disp"], np.log(testing["disp"]))


def test_opts_reach_estimator_for_raw(spy_cars, cars_split):
    _, testing = cars_split
    preds = predict_workflow(spy_cars, testing, type="raw", opts={"shift": 2.0})

    assert list(preds.columns) == [".pred_raw"]
    assert (preds[".pred_raw"] == 2.0).all()
    assert spy_cars.extract_estimator().calls_[-1] == {"shift": 2.0}


def test_opts_ignored_for_numeric_with_warning(spy_cars, cars_split, caplog):
    _, testing = cars_split
    with caplog.at_level("WARNING", logger="wflow.models.fit"):
        preds = predict_workflow(spy_cars, testing, type="numeric", opts={"shift": 2.0})

    assert (preds[".pred"] == 0.0).all()
    assert spy_cars.extract_estimator().calls_[-1] == {}
    assert "only used with type = 'raw'" in caplog.text


def test_kwargs_reach_estimator(spy_cars, cars_split):
    _, testing = cars_split
    preds = predict_workflow(spy_cars, testing, shift=1.5)
    assert (preds[".pred"] == 1.5).all()
    assert spy_cars.extract_estimator().calls_[-1] == {"shift": 1.5}


# ---------------------------------------------------------------------------
# 分類: type を変えても行数は変わらない
# ---------------------------------------------------------------------------
@pytest.mark.parametrize("pred_type", ["class", "prob", "raw", None])
def test_type_never_changes_row_count(fitted_flowers, flowers, pred_type):
    new_data = flowers.iloc[60:]
    preds = predict_workflow(fitted_flowers, new_data, type=pred_type)
    assert len(preds) == len(new_data)
    assert preds.index.equals(new_data.index)


def test_classification_columns(fitted_flowers, flowers):
    new_data = flowers.iloc[60:]
    classes = predict_workflow(fitted_flowers, new_data, outcomes=True)
    probs = predict_workflow(fitted_flowers, new_data, type="prob")

    assert list(classes.columns) == [".pred_class", "species"]
    assert list(classes[".pred_class"].cat.categories) == ["setosa", "versicolor", "virginica"]
    assert (classes[".pred_class"].astype(str) == classes["species"]).mean() > 0.9

    assert list(probs.columns) == [".pred_setosa", ".pred_versicolor", ".pred_virginica"]
    np.testing.assert_allclose(probs.sum(axis=1), 1.0)


# ---------------------------------------------------------------------------
# エラーはそのまま伝わる
# ---------------------------------------------------------------------------
def test_missing_predictor_column_propagates(fitted_cars, cars_split):
    _, testing = cars_split
    with pytest.raises(MissingColumnError) as excinfo:
        predict_workflow(fitted_cars, testing.drop(columns=["disp"]))
    assert excinfo.value.columns == ["disp"]
    assert isinstance(excinfo.value, KeyError)


def test_missing_outcome_column_with_outcomes(fitted_cars, cars_split):
    _, testing = cars_split
    with pytest.raises(MissingColumnError, match="outcome"):
        predict_workflow(fitted_cars, testing.drop(columns=["mpg"]), outcomes=True)


def test_incompatible_column_type_propagates(fitted_cars, cars_split):
    _, testing = cars_split
    with pytest.raises(ColumnTypeError, match="disp"):
        predict_workflow(fitted_cars, testing.assign(disp=testing["disp"].astype(str)))


def test_unsupported_type_propagates(fitted_cars, cars_split):
    _, testing = cars_split
    with pytest.raises(PredictTypeError):
        predict_workflow(fitted_cars, testing, type="class")
    with pytest.raises(PredictTypeError):
        predict_workflow(fitted_cars, testing, type="bogus")


def test_new_data_must_be_dataframe(fitted_cars, cars_split):
    _, testing = cars_split
    with pytest.raises(TypeError, match="DataFrame"):
        predict_workflow(fitted_cars, testing.to_dict("list"))


# ---------------------------------------------------------------------------
# outcome の結合
# ---------------------------------------------------------------------------
def test_misaligned_predictions_raise(fitted_cars, cars_split):
    _, testing = cars_split
    reversed_fit = RecordingFit(index=testing.index[::-1])
    wf = _with_fit(fitted_cars, reversed_fit)

    # outcome を付けなければそのまま返る
    assert len(predict_workflow(wf, testing)) == len(testing)
    with pytest.raises(RowAlignmentError, match="aligned"):
        predict_workflow(wf, testing, outcomes=True)


def test_short_predictions_raise(fitted_cars, cars_split):
    _, testing = cars_split
    wf = _with_fit(fitted_cars, RecordingFit(index=testing.index[:5]))
    with pytest.raises(RowAlignmentError, match="rows"):
        predict_workflow(wf, testing, outcomes=True)


def test_formula_outcomes_are_processed(cars_split):
    training, testing = cars_split
    fitted = workflow(Formula("log(mpg) ~ cyl + log(disp)"), linear_reg()).fit(training)
    preds = predict_workflow(fitted, testing, outcomes=True)

    assert list(preds.columns) == [".pred", "log(mpg)"]
    np.testing.assert_allclose(preds["log(mpg)"], np.log(testing["mpg"]))


# ---------------------------------------------------------------------------
# 0 行の入力
# ---------------------------------------------------------------------------
def test_zero_rows_give_empty_table(fitted_cars, cars_split):
    _, testing = cars_split
    empty = testing.iloc[:0]

    preds = predict_workflow(fitted_cars, empty)
    assert len(preds) == 0
    assert list(preds.columns) == [".pred"]
    assert preds[".pred"].dtype == float

    with_y = predict_workflow(fitted_cars, empty, outcomes=True)
    assert len(with_y) == 0
    assert list(with_y.columns) == [".pred", "mpg"]


def test_zero_rows_with_formula_outcomes(cars_split):
    training, testing = cars_split
    fitted = workflow(Formula("log(mpg) ~ cyl + log(disp)"), linear_reg()).fit(training)
    preds = predict_workflow(fitted, testing.iloc[:0], outcomes=True)
    assert len(preds) == 0
    assert list(preds.columns) == [".pred", "log(mpg)"]


@pytest.mark.parametrize(
    "pred_type, columns",
    [
        ("class", [".pred_class"]),
        ("prob", [".pred_setosa", ".pred_versicolor", ".pred_virginica"]),
        ("raw", [".pred_raw"]),
    ],
)
def test_zero_rows_classification(fitted_flowers, flowers, pred_type, columns):
    preds = predict_workflow(fitted_flowers, flowers.iloc[:0], type=pred_type)
    assert len(preds) == 0
    assert list(preds.columns) == columns
    if pred_type == "class":
        assert list(preds[".pred_class"].cat.categories) == ["setosa", "versicolor", "virginica"]
