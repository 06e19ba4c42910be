import json

import numpy as np
import pandas as pd
import pytest
import yaml

from src import main as main_mod


@pytest.fixture
def project(tmp_path, monkeypatch):
    rng = np.random.default_rng(3)
    n = 120
    df = pd.DataFrame(
        {
            "id": np.arange(n),
            "batch_id": rng.integers(0, 5, size=n),
            "date": pd.date_range("2023-01-01", periods=n, freq="3D").strftime("%Y-%m-%d"),
            "category": rng.choice(["a", "b", "c"], size=n),
            "x1": rng.normal(size=n),
            "x2": rng.uniform(0, 10, size=n),
        }
    )
    df["outcome"] = 2 * df["x1"] + 0.3 * df["x2"] + (df["category"] == "b") + rng.normal(scale=0.2, size=n)
    df.loc[::11, "x2"] = np.nan

    (tmp_path / "data" / "raw").mkdir(parents=True)
    (tmp_path / "src").mkdir()
    df.to_csv(tmp_path / "data" / "raw" / "dataset.csv", index=False)

    params = {
        "data": {"raw_path": "data/raw/dataset.csv"},
        "features": {"target": "outcome", "date_column": "date", "id_columns": ["id", "batch_id"]},
        "split": {"test_size": 0.25},
        "cv": {"nfold": 3, "early_stopping_rounds": 5},
        "model": {"n_estimators": 20, "learning_rate": 0.3, "max_depth": 3},
        "stages": [
            {"name": "trees", "axis": "n_estimators", "candidates": [10, 30]},
            {"name": "max_depth", "axis": "max_depth", "candidates": [2, 3]},
        ],
        "report": {"output_dir": "reports"},
    }
    (tmp_path / "params.yaml").write_text(yaml.safe_dump(params))

    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SEED", "42")
    return tmp_path


def test_build_stages_falls_back_to_defaults():
    stages = main_mod.build_stages({})
    assert [s.axis for s in stages] == [
        "n_estimators",
        "learning_rate",
        "max_depth",
        "colsample_bytree",
        "learning_rate",
    ]
    assert stages[0].candidates == (100, 325, 550, 775, 1000)


def test_main_runs_search_final_fit_and_report(project):
    metrics = main_mod.main(["--params", "params.yaml", "--no-mlflow"])

    assert np.isfinite(metrics["RMSE"])
    summary = json.loads((project / "reports" / "search_results.json").read_text())
    assert [s["stage"] for s in summary["stages"]] == ["trees", "max_depth"]
    assert summary["stages"][0]["best_value"] in (10, 30)
    assert summary["final_params"]["n_estimators"] == summary["stages"][-1]["n_rounds"]
    assert summary["final_metrics"]["RMSE"] == pytest.approx(metrics["RMSE"])
    assert (project / "reports" / "search_report.md").exists()
    assert (project / "reports" / "figures" / "cv_01_trees.png").exists()


def test_main_search_stage_skips_final_fit(project):
    assert main_mod.main(["--params", "params.yaml", "--stage", "search", "--no-mlflow"]) is None
    summary = json.loads((project / "reports" / "search_results.json").read_text())
    assert summary["final_metrics"] == {}
    assert not (project / "reports" / "metrics_xgb.json").exists()


def test_main_is_deterministic_for_fixed_seed(project):
    first = main_mod.main(["--params", "params.yaml", "--no-mlflow"])
    second = main_mod.main(["--params", "params.yaml", "--no-mlflow"])
    assert first["RMSE"] == pytest.approx(second["RMSE"])
