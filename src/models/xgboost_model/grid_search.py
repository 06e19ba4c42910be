# src/models/xgboost_model/grid_search.py
"""
Cross-validated grid search over one XGBoost hyperparameter at a time.

Every candidate is scored with ``xgboost.cv`` (k folds, early stopping on the
held-out RMSE). The score of a candidate is the lowest mean validation RMSE
over its boosting iterations; candidates are ranked ascending with a stable
sort, so ties keep the order in which the candidates were given.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import xgboost as xgb

from src.utils.seeds import DEFAULT_SEED
from .config import MODEL_CONFIG, TRAINING_CONFIG

ROUNDS_AXIS = "n_estimators"
INTEGER_AXES = {"n_estimators", "max_depth"}
SEARCHABLE_AXES = {
    "n_estimators",
    "learning_rate",
    "max_depth",
    "colsample_bytree",
    "subsample",
    "min_child_weight",
    "gamma",
    "reg_alpha",
    "reg_lambda",
}

TRAIN_MEAN = "train-rmse-mean"
TRAIN_STD = "train-rmse-std"
TEST_MEAN = "test-rmse-mean"
TEST_STD = "test-rmse-std"


@dataclass(frozen=True)
class SearchStage:
    """One axis of the staged search and the values to try on it."""

    name: str
    axis: str
    candidates: Tuple[Any, ...]

    def __post_init__(self):
        if self.axis not in SEARCHABLE_AXES:
            raise ValueError(
                f"Unsupported search axis '{self.axis}'. Use one of: {sorted(SEARCHABLE_AXES)}"
            )
        if not self.candidates:
            raise ValueError(f"Stage '{self.name}' has an empty candidate grid.")

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "SearchStage":
        axis = values["axis"]
        return cls(
            name=values.get("name", axis),
            axis=axis,
            candidates=tuple(values.get("candidates") or ()),
        )


@dataclass
class SearchResult:
    """Ranked candidates of one axis plus the per-iteration CV history."""

    axis: str
    ranking: pd.DataFrame
    history: pd.DataFrame
    name: Optional[str] = None

    @property
    def best(self) -> pd.Series:
        return self.ranking.iloc[0]

    @property
    def best_value(self):
        return _coerce_value(self.axis, self.best["value"])

    @property
    def best_iteration(self) -> int:
        return int(self.best["best_iteration"])

    @property
    def n_rounds(self) -> int:
        return self.best_iteration + 1

    @property
    def best_test_rmse_mean(self) -> float:
        return float(self.best["test_rmse_mean"])

    @property
    def best_test_rmse_std(self) -> float:
        return float(self.best["test_rmse_std"])

    def summary(self) -> Dict[str, Any]:
        return {
            "stage": self.name or self.axis,
            "axis": self.axis,
            "best_value": self.best_value,
            "best_iteration": self.best_iteration,
            "n_rounds": self.n_rounds,
            "test_rmse_mean": self.best_test_rmse_mean,
            "test_rmse_std": self.best_test_rmse_std,
        }


def _coerce_value(axis: str, value):
    if isinstance(value, np.generic):
        value = value.item()
    if axis in INTEGER_AXES and isinstance(value, float) and value.is_integer():
        value = int(value)
    return value


def split_booster_params(params: Dict[str, Any], seed: int) -> Tuple[int, Dict[str, Any]]:
    """Separate the round budget from the parameters handed to the booster."""
    booster_params = {**MODEL_CONFIG, **params}
    num_boost_round = int(booster_params.pop(ROUNDS_AXIS))
    booster_params["seed"] = seed
    return num_boost_round, booster_params


def cross_validate_params(
    params: Dict[str, Any],
    dtrain: xgb.DMatrix,
    *,
    nfold: int = TRAINING_CONFIG["cv_folds"],
    early_stopping_rounds: Optional[int] = TRAINING_CONFIG["early_stopping_rounds"],
    seed: int = DEFAULT_SEED,
) -> pd.DataFrame:
    """Run ``xgboost.cv`` for one parameter set and return its per-iteration log."""
    num_boost_round, booster_params = split_booster_params(params, seed)
    log = xgb.cv(
        booster_params,
        dtrain,
        num_boost_round=num_boost_round,
        nfold=nfold,
        early_stopping_rounds=early_stopping_rounds,
        seed=seed,
        as_pandas=True,
        verbose_eval=False,
    )
    log = log[[TRAIN_MEAN, TRAIN_STD, TEST_MEAN, TEST_STD]].reset_index(drop=True)
    log.index.name = "iteration"
    return log


def best_iteration(log: pd.DataFrame) -> int:
    """Index of the lowest mean validation RMSE (first one on ties)."""
    return int(np.argmin(log[TEST_MEAN].to_numpy()))


def rank_candidates(rows: Sequence[Dict[str, Any]]) -> pd.DataFrame:
    ranking = pd.DataFrame(list(rows))
    return ranking.sort_values("test_rmse_mean", kind="mergesort").reset_index(drop=True)


def search_axis(
    axis: str,
    candidates: Iterable[Any],
    X,
    y,
    fixed_params: Optional[Dict[str, Any]] = None,
    *,
    nfold: int = TRAINING_CONFIG["cv_folds"],
    early_stopping_rounds: Optional[int] = TRAINING_CONFIG["early_stopping_rounds"],
    seed: int = DEFAULT_SEED,
    name: Optional[str] = None,
) -> SearchResult:
    """
    Score every candidate value of ``axis`` with the other parameters held fixed.

    Parameters
    ----------
    axis : str
        Hyperparameter under test. ``n_estimators`` is the boosting-round budget.
    candidates : iterable
        Values to try, in order. Their order breaks ties.
    X, y
        Numeric feature matrix and label vector.
    fixed_params : dict, optional
        Values of every other hyperparameter. Missing keys fall back to
        ``MODEL_CONFIG``.
    nfold, early_stopping_rounds, seed
        Cross-validation settings passed to ``xgboost.cv``.

    Returns
    -------
    SearchResult
        Ranked candidate table and the long-format CV history.
    """
    candidates = list(candidates)
    if not candidates:
        raise ValueError(f"Empty candidate grid for axis '{axis}'.")

    label = name or axis
    print(f"[INFO] Searching '{label}' over {candidates} ({nfold}-fold CV, patience={early_stopping_rounds})")

    dtrain = xgb.DMatrix(X, label=y)
    base = {**MODEL_CONFIG, **(fixed_params or {})}

    rows: List[Dict[str, Any]] = []
    histories: List[pd.DataFrame] = []
    for order, value in enumerate(candidates):
        params = {**base, axis: value}
        log = cross_validate_params(
            params,
            dtrain,
            nfold=nfold,
            early_stopping_rounds=early_stopping_rounds,
            seed=seed,
        )
        idx = best_iteration(log)
        best_row = log.iloc[idx]

        rows.append(
            {
                "value": value,
                "candidate": order,
                "best_iteration": idx,
                "n_rounds": idx + 1,
                "iterations_run": len(log),
                "train_rmse_mean": float(best_row[TRAIN_MEAN]),
                "train_rmse_std": float(best_row[TRAIN_STD]),
                "test_rmse_mean": float(best_row[TEST_MEAN]),
                "test_rmse_std": float(best_row[TEST_STD]),
            }
        )
        histories.append(
            log.reset_index().assign(value=value, candidate=order)
        )
        print(
            f"[INFO]   {axis}={value}: best iteration {idx} "
            f"| test RMSE {best_row[TEST_MEAN]:.4f} ± {best_row[TEST_STD]:.4f}"
        )

    result = SearchResult(
        axis=axis,
        ranking=rank_candidates(rows),
        history=pd.concat(histories, ignore_index=True),
        name=name,
    )
    print(
        f"[INFO] Best {axis}: {result.best_value} "
        f"(iteration {result.best_iteration}, test RMSE {result.best_test_rmse_mean:.4f})"
    )
    return result


def run_staged_search(
    stages: Sequence[SearchStage],
    X,
    y,
    base_params: Optional[Dict[str, Any]] = None,
    *,
    nfold: int = TRAINING_CONFIG["cv_folds"],
    early_stopping_rounds: Optional[int] = TRAINING_CONFIG["early_stopping_rounds"],
    seed: int = DEFAULT_SEED,
) -> Tuple[List[SearchResult], Dict[str, Any]]:
    """
    Run the stages in order, fixing each winner for every later stage.

    The returned parameters carry the last stage's winning round count as
    ``n_estimators``.
    """
    params = {**MODEL_CONFIG, **(base_params or {})}
    results: List[SearchResult] = []

    for position, stage in enumerate(stages, 1):
        print("=" * 70)
        print(f"[INFO] STAGE {position}/{len(stages)}: {stage.name}")
        print("=" * 70)
        result = search_axis(
            stage.axis,
            stage.candidates,
            X,
            y,
            params,
            nfold=nfold,
            early_stopping_rounds=early_stopping_rounds,
            seed=seed,
            name=stage.name,
        )
        params[stage.axis] = result.best_value
        results.append(result)

    if results:
        params[ROUNDS_AXIS] = results[-1].n_rounds
    return results, params
