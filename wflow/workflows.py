# wflow/workflows.py
"""
wflow.workflows
===============

Workflow … 前処理とモデル仕様を 1 つにまとめた不変コンテナ。

- ``add_*`` / ``remove_*`` / ``update_*`` は常に新しい（未学習の）Workflow を返す
- ``fit(data)`` は前処理を mold → モデルを学習し、学習済み Workflow を返す
- ``predict(new_data, ...)`` は predict_workflow に委譲する

Example
-------
>>> import numpy as np
>>> from sklearn.compose import ColumnTransformer
>>> from sklearn.preprocessing import FunctionTransformer
>>> from wflow import Recipe, linear_reg, workflow
>>> log_disp = ColumnTransformer(
...     [("log", FunctionTransformer(np.log, feature_names_out="one-to-one"), ["disp"])],
...     remainder="passthrough",
... )
>>> wf = (
...     workflow()
...     .add_model(linear_reg())
...     .add_recipe(Recipe(log_disp, outcomes="mpg", predictors=["cyl", "disp"]))
... )
>>> fitted = wf.fit(training)
>>> fitted.predict(testing)            # doctest: +SKIP
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Sequence

import pandas as pd

from .errors import UntrainedWorkflowError, WorkflowSpecError
from .models.fit import ModelFit, fit_xy
from .models.spec import ModelSpec
from .predict import predict_workflow
from .preprocessing import Formula, Preprocessor, Recipe, Variables
from .preprocessing.blueprint import Blueprint, MoldResult, mold

LOGGER = logging.getLogger(__name__)

__all__ = ["PreStage", "ModelStage", "Workflow", "workflow"]


@dataclass(frozen=True)
class PreStage:
    preprocessor: Optional[Preprocessor] = None
    mold: Optional[MoldResult] = None


@dataclass(frozen=True)
class ModelStage:
    spec: Optional[ModelSpec] = None
    fit: Optional[ModelFit] = None


@dataclass(frozen=True)
class Workflow:
    """
    Attributes
    ----------
    pre : PreStage
        前処理（未学習の preprocessor と、学習後の mold 結果）。
    model : ModelStage
        モデル（仕様と、学習後の ModelFit）。
    trained : bool
        fit 済みかどうか。
    """

    pre: PreStage = field(default_factory=PreStage)
    model: ModelStage = field(default_factory=ModelStage)
    trained: bool = False

    # ------------------------------------------------------------------
    # モデル
    # ------------------------------------------------------------------
    def add_model(self, spec: ModelSpec) -> "Workflow":
        if self.model.spec is not None:
            raise WorkflowSpecError("A model has already been added to this workflow. Use update_model().")
        return self._untrained(model=ModelStage(spec=spec))

    def remove_model(self) -> "Workflow":
        if self.model.spec is None:
            LOGGER.warning("The workflow has no model to remove.")
        return self._untrained(model=ModelStage())

    def update_model(self, spec: ModelSpec) -> "Workflow":
        return self.remove_model().add_model(spec)

    # ------------------------------------------------------------------
    # 前処理
    # ------------------------------------------------------------------
    def add_formula(self, text: str, intercept: bool = False, indicators: str = "traditional") -> "Workflow":
        return self._add_preprocessor(Formula(text, intercept=intercept, indicators=indicators))

    def add_recipe(self, recipe: Recipe) -> "Workflow":
        if not isinstance(recipe, Recipe):
            raise TypeError(f"`recipe` must be a Recipe, not {type(recipe).__name__}")
        return self._add_preprocessor(recipe)

    def add_variables(self, outcomes: Sequence[str] | str, predictors: Optional[Sequence[str]] = None) -> "Workflow":
        return self._add_preprocessor(Variables(outcomes, predictors))

    def remove_preprocessor(self) -> "Workflow":
        if self.pre.preprocessor is None:
            LOGGER.warning("The workflow has no preprocessor to remove.")
        return self._untrained(pre=PreStage())

    def update_preprocessor(self, preprocessor: Preprocessor) -> "Workflow":
        return self.remove_preprocessor()._add_preprocessor(preprocessor)

    def _add_preprocessor(self, preprocessor: Preprocessor) -> "Workflow":
        current = self.pre.preprocessor
        if current is not None:
            raise WorkflowSpecError(
                f"A `{current.kind}` preprocessor has already been added to this workflow; "
                f"cannot add a `{preprocessor.kind}` preprocessor."
            )
        return self._untrained(pre=PreStage(preprocessor=preprocessor))

    # ------------------------------------------------------------------
    # 学習・予測
    # ------------------------------------------------------------------
    def fit(self, data: pd.DataFrame) -> "Workflow":
        """前処理を data で mold し、その結果でモデルを学習した Workflow を返す。"""
        if self.model.spec is None:
            raise WorkflowSpecError("The workflow must have a model. Provide one with add_model().")
        if self.pre.preprocessor is None:
            raise WorkflowSpecError(
                "The workflow must have a formula, recipe, or variables preprocessor. "
                "Provide one with add_formula(), add_recipe(), or add_variables()."
            )

        LOGGER.info(
            "Fitting workflow: preprocessor=%s model=%s/%s rows=%d",
            self.pre.preprocessor.kind,
            self.model.spec.model_type,
            self.model.spec.engine,
            len(data),
        )
        molded = mold(self.pre.preprocessor, data)
        if molded.outcomes is None:
            raise WorkflowSpecError("The preprocessor must specify at least one outcome to fit a model.")

        model_fit = fit_xy(self.model.spec, molded.predictors, molded.outcomes)

        return replace(
            self,
            pre=replace(self.pre, mold=molded),
            model=replace(self.model, fit=model_fit),
            trained=True,
        )

    def predict(
        self,
        new_data: pd.DataFrame,
        type: Optional[str] = None,
        opts: Optional[Mapping[str, Any]] = None,
        outcomes: bool = False,
        **kwargs: Any,
    ) -> pd.DataFrame:
        """predict_workflow(self, ...) と同じ。"""
        return predict_workflow(self, new_data, type=type, opts=opts, outcomes=outcomes, **kwargs)

    # ------------------------------------------------------------------
    # 取り出し
    # ------------------------------------------------------------------
    def extract_spec(self) -> ModelSpec:
        if self.model.spec is None:
            raise WorkflowSpecError("The workflow does not have a model spec.")
        return self.model.spec

    def extract_preprocessor(self) -> Preprocessor:
        if self.pre.preprocessor is None:
            raise WorkflowSpecError("The workflow does not have a preprocessor.")
        return self.pre.preprocessor

    def extract_mold(self) -> MoldResult:
        self._require_trained()
        return self.pre.mold

    def extract_blueprint(self) -> Blueprint:
        return self.extract_mold().blueprint

    def extract_fit(self) -> ModelFit:
        self._require_trained()
        return self.model.fit

    def extract_estimator(self) -> Any:
        return self.extract_fit().estimator

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _require_trained(self) -> None:
        if not self.trained:
            raise UntrainedWorkflowError()

    def _untrained(self, **changes: Any) -> "Workflow":
        """変更を適用し、学習結果を捨てた Workflow を返す。"""
        pre = changes.get("pre", PreStage(preprocessor=self.pre.preprocessor))
        model = changes.get("model", ModelStage(spec=self.model.spec))
        return Workflow(pre=pre, model=model, trained=False)


def workflow(preprocessor: Optional[Preprocessor] = None, spec: Optional[ModelSpec] = None) -> Workflow:
    """空の Workflow（任意で前処理・モデル仕様つき）を作る。"""
    wf = Workflow()
    if preprocessor is not None:
        wf = wf._add_preprocessor(preprocessor)
    if spec is not None:
        wf = wf.add_model(spec)
    return wf
