# wflow/preprocessing/formula.py
"""
wflow.preprocessing.formula
===========================

``"y ~ x1 + log(x2) + g"`` 形式の formula による前処理。

対応する記法
------------
- 左辺: 空、または ``+`` 区切りの outcome 列（``log(y)`` などの変換も可）
- 右辺:
    * 列名（空白などを含む場合はバッククォート ```my col```）
    * ``.`` … outcome 以外の全列
    * ``- term`` … 項の除外
    * ``0`` / ``-1`` … 切片なし、``+1`` / ``-0`` … 切片あり
    * 符号の連続（``x + -1``）は 1 つにまとめる
    * 変換 ``log(x)``, ``log1p(x)``, ``sqrt(x)``, ``exp(x)``, ``abs(x)``
    * 交互作用 ``a:b``

カテゴリ列（object / category / string）は学習時の水準で固定した指示変数へ展開する。
indicators:
    - ``traditional`` … 先頭水準を基準として落とす（既定）
    - ``one_hot``     … 全水準を残す
    - ``none``        … 展開せずそのまま渡す
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..errors import ColumnTypeError, FormulaError, MissingColumnError
from .blueprint import Blueprint, MoldResult, ptype_of

LOGGER = logging.getLogger(__name__)

__all__ = ["Formula", "FormulaBlueprint", "Factor", "parse_formula"]

INTERCEPT_NAME = "(Intercept)"
INDICATORS = ("traditional", "one_hot", "none")

_TRANSFORMS = {
    "log": np.log,
    "log1p": np.log1p,
    "sqrt": np.sqrt,
    "exp": np.exp,
    "abs": np.abs,
}

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")
_CALL_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\((.*)\)$")


# ---------------------------------------------------------------------------
# 構文
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Factor:
    column: str
    transform: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.transform}({self.column})" if self.transform else self.column


Term = Tuple[Factor, ...]


@dataclass(frozen=True)
class ParsedFormula:
    outcomes: Tuple[Factor, ...]
    terms: Tuple[Tuple[str, object], ...]  # (sign, Term | "." | "0" | "1")


def _split_top(expr: str, seps: str) -> List[Tuple[str, str]]:
    """括弧とバッククォートの外側にある区切り文字で分割し、(区切り, 断片) を返す。"""
    parts: List[Tuple[str, str]] = []
    depth = 0
    quoted = False
    sign = "+"
    buf: List[str] = []
    for ch in expr:
        if ch == "`":
            quoted = not quoted
        elif not quoted and ch == "(":
            depth += 1
        elif not quoted and ch == ")":
            depth -= 1
            if depth < 0:
                raise FormulaError(f"Unbalanced parentheses in formula: {expr!r}")
        if not quoted and depth == 0 and ch in seps:
            parts.append((sign, "".join(buf).strip()))
            sign = ch
            buf = []
            continue
        buf.append(ch)
    if quoted or depth != 0:
        raise FormulaError(f"Unbalanced quotes or parentheses in formula: {expr!r}")
    parts.append((sign, "".join(buf).strip()))
    return parts


def _parse_name(token: str) -> str:
    if len(token) >= 2 and token.startswith("`") and token.endswith("`"):
        return token[1:-1]
    if not _NAME_RE.match(token):
        raise FormulaError(f"Invalid column name in formula: {token!r}")
    return token


def _parse_factor(token: str) -> Factor:
    m = _CALL_RE.match(token)
    if m:
        func, inner = m.group(1), m.group(2).strip()
        if func not in _TRANSFORMS:
            raise FormulaError(f"Unsupported transform {func!r}. Supported: {sorted(_TRANSFORMS)}")
        return Factor(column=_parse_name(inner), transform=func)
    return Factor(column=_parse_name(token))


def _parse_term(token: str) -> Term:
    pieces = [p for _, p in _split_top(token, ":")]
    if any(not p for p in pieces):
        raise FormulaError(f"Empty factor in interaction term: {token!r}")
    return tuple(_parse_factor(p) for p in pieces)


def parse_formula(text: str) -> ParsedFormula:
    """formula 文字列を outcome と右辺の項に分解する。"""
    if not isinstance(text, str) or text.count("~") != 1:
        raise FormulaError(f"A formula must contain exactly one '~': {text!r}")
    lhs, rhs = (s.strip() for s in text.split("~"))

    outcomes: List[Factor] = []
    if lhs:
        for sign, token in _split_top(lhs, "+"):
            if not token:
                raise FormulaError(f"Empty outcome term in formula: {text!r}")
            outcomes.append(_parse_factor(token))

    if not rhs:
        raise FormulaError(f"The right-hand side of the formula is empty: {text!r}")

    terms: List[Tuple[str, object]] = []
    parts = _split_top(rhs, "+-")
    pending: Optional[str] = None
    for i, (sign, token) in enumerate(parts):
        if pending is not None:
            sign = "-" if (pending == "-") != (sign == "-") else "+"
            pending = None
        if not token:
            # 符号が続く場合（先頭の "-1"、"x + -1" など）は次の項の符号にまとめる
            if i < len(parts) - 1:
                pending = sign
                continue
            raise FormulaError(f"Empty term in formula: {text!r}")
        if token in {".", "0", "1"}:
            terms.append((sign, token))
        else:
            terms.append((sign, _parse_term(token)))
    return ParsedFormula(outcomes=tuple(outcomes), terms=tuple(terms))


def _term_label(term: Term) -> str:
    return ":".join(f.label for f in term)


# ---------------------------------------------------------------------------
# Blueprint
# ---------------------------------------------------------------------------
def _levels_of(s: pd.Series) -> tuple:
    if isinstance(s.dtype, pd.CategoricalDtype):
        return tuple(s.cat.categories)
    return tuple(sorted(s.dropna().unique(), key=str))


def _apply_transform(values: np.ndarray, transform: Optional[str]) -> np.ndarray:
    if transform is None:
        return values
    with np.errstate(divide="ignore", invalid="ignore"):
        return _TRANSFORMS[transform](values)


@dataclass(frozen=True)
class FormulaBlueprint(Blueprint):
    """formula から確定した項・水準・切片の設定を保持する。"""

    formula: str
    terms: Tuple[Term, ...]
    outcome_factors: Tuple[Factor, ...]
    levels: Tuple[Tuple[str, tuple], ...]
    intercept: bool = False
    indicators: str = "traditional"

    # ------------------------------------------------------------------
    def _forge_predictors(self, new_data: pd.DataFrame) -> pd.DataFrame:
        kinds = dict(self.predictor_ptype)
        levels = dict(self.levels)
        for col, lv in levels.items():
            self._warn_novel_levels(new_data[col], lv)

        columns: Dict[str, object] = {}
        if self.intercept:
            columns[INTERCEPT_NAME] = np.ones(len(new_data), dtype=float)

        for term in self.terms:
            blocks = [self._factor_columns(new_data, f, kinds, levels) for f in term]
            for name, values in self._interact(blocks):
                columns[name] = values

        return pd.DataFrame(columns, index=new_data.index)

    def _forge_outcomes(self, new_data: pd.DataFrame) -> pd.DataFrame:
        out: Dict[str, object] = {}
        for f in self.outcome_factors:
            s = new_data[f.column]
            if f.transform is None:
                out[f.label] = s
            else:
                out[f.label] = _apply_transform(s.to_numpy(dtype=float), f.transform)
        return pd.DataFrame(out, index=new_data.index)

    # ------------------------------------------------------------------
    def _factor_columns(
        self,
        data: pd.DataFrame,
        factor: Factor,
        kinds: Dict[str, str],
        levels: Dict[str, tuple],
    ) -> List[Tuple[str, np.ndarray]]:
        s = data[factor.column]
        if kinds[factor.column] != "categorical":
            values = s.to_numpy(dtype=float)
            return [(factor.label, _apply_transform(values, factor.transform))]

        if self.indicators == "none":
            return [(factor.column, s.to_numpy())]

        lv = levels[factor.column]
        if self.indicators == "traditional":
            lv = lv[1:]
        return [(f"{factor.column}_{level}", s.isin([level]).to_numpy(dtype=float)) for level in lv]

    @staticmethod
    def _interact(blocks: List[List[Tuple[str, np.ndarray]]]) -> List[Tuple[str, np.ndarray]]:
        result = blocks[0]
        for block in blocks[1:]:
            result = [(f"{na}:{nb}", va * vb) for na, va in result for nb, vb in block]
        return result

    @staticmethod
    def _warn_novel_levels(s: pd.Series, levels: tuple) -> None:
        known = set(levels)
        novel = sorted({v for v in s.dropna().unique() if v not in known}, key=str)
        if novel:
            LOGGER.warning(
                "Novel levels found in column %r: %s. They are encoded as all-zero indicators.",
                s.name,
                novel,
            )


# ---------------------------------------------------------------------------
# Preprocessor
# ---------------------------------------------------------------------------
class Formula:
    """
    Parameters
    ----------
    text : str
        ``"y ~ x1 + x2"`` 形式の formula。
    intercept : bool
        切片列 ``(Intercept)`` を付けるか。formula 内の ``+1`` / ``-1`` / ``0`` が優先。
    indicators : str
        カテゴリ列の展開方法。"traditional" / "one_hot" / "none"。
    """

    kind = "formula"

    def __init__(self, text: str, intercept: bool = False, indicators: str = "traditional") -> None:
        if indicators not in INDICATORS:
            raise ValueError(f"`indicators` must be one of {INDICATORS}, got {indicators!r}")
        self.text = text
        self.intercept = bool(intercept)
        self.indicators = indicators
        self.parsed = parse_formula(text)  # 構文エラーは add_formula の時点で出す

    def __repr__(self) -> str:
        return f"Formula({self.text!r}, intercept={self.intercept}, indicators={self.indicators!r})"

    # ------------------------------------------------------------------
    def mold(self, data: pd.DataFrame) -> MoldResult:
        outcome_factors = self.parsed.outcomes
        outcome_cols = list(dict.fromkeys(f.column for f in outcome_factors))
        missing = [c for c in outcome_cols if c not in data.columns]
        if missing:
            raise MissingColumnError(missing, role="outcome")

        intercept, terms = self._resolve_terms(data, outcome_cols)

        predictor_cols = list(dict.fromkeys(f.column for t in terms for f in t))
        missing = [c for c in predictor_cols if c not in data.columns]
        if missing:
            raise MissingColumnError(missing, role="predictor")

        predictor_ptype = ptype_of(data, predictor_cols)
        outcome_ptype = ptype_of(data, outcome_cols)
        self._check_kinds(terms, dict(predictor_ptype), dict(outcome_ptype), outcome_factors)

        kinds = dict(predictor_ptype)
        levels = tuple(
            (c, _levels_of(data[c])) for c in predictor_cols if kinds[c] == "categorical"
        )

        blueprint = FormulaBlueprint(
            predictor_ptype=predictor_ptype,
            outcome_ptype=outcome_ptype,
            formula=self.text,
            terms=tuple(terms),
            outcome_factors=outcome_factors,
            levels=levels,
            intercept=intercept,
            indicators=self.indicators,
        )
        LOGGER.debug("Formula molded: %s -> %d terms", self.text, len(terms))

        return MoldResult(
            predictors=blueprint._forge_predictors(data),
            outcomes=blueprint._forge_outcomes(data) if outcome_factors else None,
            blueprint=blueprint,
        )

    # ------------------------------------------------------------------
    def _resolve_terms(self, data: pd.DataFrame, outcome_cols: Sequence[str]) -> Tuple[bool, List[Term]]:
        """'.' の展開・除外・切片指定を解決し、重複の無い項リストを返す。"""
        intercept = self.intercept
        added: List[Term] = []
        removed: set[str] = set()

        for sign, item in self.parsed.terms:
            if item == "0":
                intercept = sign == "-"
                continue
            if item == "1":
                intercept = sign == "+"
                continue
            if item == ".":
                expanded = [(Factor(c),) for c in data.columns if c not in outcome_cols]
                if sign == "+":
                    added.extend(expanded)
                else:
                    removed.update(_term_label(t) for t in expanded)
                continue
            if sign == "+":
                added.append(item)  # type: ignore[arg-type]
            else:
                removed.add(_term_label(item))  # type: ignore[arg-type]

        seen: set[str] = set()
        terms: List[Term] = []
        for t in added:
            label = _term_label(t)
            if label in removed or label in seen:
                continue
            seen.add(label)
            terms.append(t)

        if not terms:
            raise FormulaError(f"The formula has no predictor terms: {self.text!r}")
        return intercept, terms

    def _check_kinds(
        self,
        terms: Sequence[Term],
        predictor_kinds: Dict[str, str],
        outcome_kinds: Dict[str, str],
        outcome_factors: Sequence[Factor],
    ) -> None:
        for term in terms:
            for f in term:
                kind = predictor_kinds[f.column]
                if kind == "datetime":
                    raise ColumnTypeError(f"Datetime column {f.column!r} cannot be used in a formula")
                if kind == "categorical" and f.transform:
                    raise ColumnTypeError(f"Cannot apply {f.transform}() to categorical column {f.column!r}")
                if kind == "categorical" and len(term) > 1 and self.indicators == "none":
                    raise ColumnTypeError(
                        f"Interaction {_term_label(term)!r} needs indicator columns; "
                        "use indicators='traditional' or 'one_hot'"
                    )
        for f in outcome_factors:
            if f.transform and outcome_kinds[f.column] == "categorical":
                raise ColumnTypeError(f"Cannot apply {f.transform}() to categorical outcome {f.column!r}")
