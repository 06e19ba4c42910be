import numpy as np
import pandas as pd
import pytest

from src.data.feature_engineer import FeatureEngineer
from src.pipelines import data_setup as ds
from src.pipelines import experiment_pipelines as ep


@pytest.fixture
def sample_df():
    rng = np.random.default_rng(0)
    n = 40
    return pd.DataFrame(
        {
            "id": np.arange(n),
            "date": pd.date_range("2024-01-01", periods=n, freq="D"),
            "region": rng.choice(["north", "south", "east"], size=n),
            "segment": ["retail"] * n,
            "size": rng.lognormal(mean=2.0, sigma=0.5, size=n),
            "age": np.where(np.arange(n) % 7 == 0, np.nan, rng.uniform(1, 50, size=n)),
            "constant": 3.0,
            "outcome": rng.normal(size=n),
        }
    )


@pytest.fixture
def config():
    return ds.FeatureConfig(target="outcome", id_columns=["id"], date_column="date")


def test_feature_config_column_roles(sample_df, config):
    assert config.excluded_columns == ["outcome", "id"]
    assert config.required_columns == ["outcome", "id", "date"]
    engineer = FeatureEngineer(target=config.target, id_columns=config.id_columns, drop_columns=config.drop_columns)
    assert engineer.excluded_columns == config.excluded_columns
    predictors = engineer.predictor_columns(sample_df)
    assert "id" not in predictors and "outcome" not in predictors
    assert "date" in predictors


def test_feature_config_from_dict_round_trip():
    cfg = ds.FeatureConfig.from_dict(
        {"target": "y", "id_columns": ["a", "b"], "date_column": "ts", "drop_columns": ["z"]}
    )
    assert cfg.to_dict() == {"target": "y", "id_columns": ["a", "b"], "date_column": "ts", "drop_columns": ["z"]}
    assert ds.FeatureConfig.from_dict(None).id_columns == []


def test_infer_and_resolve_data_path(tmp_path):
    (tmp_path / "data" / "raw").mkdir(parents=True)
    (tmp_path / "src").mkdir()
    csv_path = tmp_path / ds.DEFAULT_DATA_REL_PATH
    csv_path.write_text("id,date,outcome\n1,2024-01-01,1\n")

    root = ds.infer_project_root(start=tmp_path / "src")
    assert root == tmp_path
    assert ds.resolve_data_path(project_root=root) == csv_path
    assert ds.resolve_data_path(str(csv_path)) == csv_path

    with pytest.raises(FileNotFoundError):
        ds.resolve_data_path("data/raw/other.csv", project_root=root)


def test_load_dataframe_uses_dataloader(monkeypatch, tmp_path):
    fake_df = pd.DataFrame({"id": [1], "date": ["2024-01-01"], "outcome": [1.0]})
    seen = {}

    class DummyLoader:
        def __init__(self, path, required_columns=None, date_column=None):
            seen["required"] = required_columns
            seen["date_column"] = date_column

        def run(self):
            return fake_df.copy()

    monkeypatch.setattr(ds, "DataLoader", DummyLoader)
    df = ds.load_dataframe(tmp_path / "any.csv", ds.FeatureConfig(target="outcome", id_columns=["id"]))
    assert seen["required"] == ["outcome", "id", "date"]
    assert seen["date_column"] == "date"
    assert df.shape == (1, 3)


def test_recipe_outputs_numeric_matrix_without_missing_values(sample_df, config):
    X = sample_df.drop(columns=config.excluded_columns)
    recipe = ep.build_recipe(config).fit(X)

    out = recipe.transform(X)

    assert isinstance(out, pd.DataFrame)
    assert (out.dtypes == np.float64).all()
    assert not out.isna().any().any()
    assert "date" not in out.columns
    assert {"date_month", "date_dayofyear"}.issubset(out.columns)
    # zero-variance removal happens before encoding
    assert "constant" not in out.columns
    assert not any(c.startswith("segment") for c in out.columns)
    assert {"region_north", "region_south", "region_east"}.issubset(out.columns)


def test_recipe_schema_is_stable_on_disjoint_subset(sample_df, config):
    X = sample_df.drop(columns=config.excluded_columns)
    fit_part, other_part = X.iloc[:30], X.iloc[30:].copy()
    other_part.loc[other_part.index[0], "region"] = "west"  # unseen level
    other_part.loc[other_part.index[1], "region"] = np.nan

    recipe = ep.build_recipe(config).fit(fit_part)
    on_fit = recipe.transform(fit_part)
    on_other = recipe.transform(other_part)

    assert list(on_fit.columns) == list(on_other.columns)
    assert on_fit.dtypes.tolist() == on_other.dtypes.tolist()
    assert len(on_other) == len(other_part)


def test_recipe_encodes_novel_and_missing_levels_as_own_columns():
    config = ds.FeatureConfig(target="outcome", id_columns=[], date_column=None)
    fit_part = pd.DataFrame({"region": ["a", "b", "c", "a", "b", "c"], "size": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]})
    other_part = pd.DataFrame({"region": ["zzz", np.nan], "size": [2.5, 3.5]})

    recipe = ep.build_recipe(config).fit(fit_part)
    on_fit = recipe.transform(fit_part)
    on_other = recipe.transform(other_part)

    assert {"region_new", "region_unknown"}.issubset(on_fit.columns)
    assert list(on_fit.columns) == list(on_other.columns)
    assert on_fit["region_new"].sum() == 0 and on_fit["region_unknown"].sum() == 0
    assert on_other["region_new"].tolist() == [1.0, 0.0]
    assert on_other["region_unknown"].tolist() == [0.0, 1.0]
    assert (on_other[["region_a", "region_b", "region_c"]] == 0).all().all()


def test_recipe_fitted_statistics_do_not_change_on_transform(sample_df, config):
    X = sample_df.drop(columns=config.excluded_columns)
    recipe = ep.build_recipe(config).fit(X.iloc[:30])
    first = recipe.transform(X.iloc[30:])
    recipe.transform(X.iloc[:5])
    second = recipe.transform(X.iloc[30:])
    pd.testing.assert_frame_equal(first, second)


def test_prepare_matrices_fits_on_train_only(sample_df, config):
    X = sample_df.drop(columns=config.excluded_columns)
    X_train, X_test = X.iloc[:30], X.iloc[30:]

    recipe, train_matrix, test_matrix = ep.prepare_matrices(X_train, X_test, config)

    assert list(train_matrix.columns) == list(test_matrix.columns)
    assert train_matrix.shape[0] == 30 and test_matrix.shape[0] == 10
    scaler = recipe.named_steps["preprocessor"].named_transformers_["numeric"].named_steps["scaler"]
    assert np.isclose(scaler.mean_[list(scaler.feature_names_in_).index("size")], X_train["size"].mean())


def test_sanitize_feature_names_replaces_forbidden_characters():
    df = pd.DataFrame({"bin_[0, 10)": [1.0], "x<y": [2.0], "ok": [3.0]})
    assert list(ep.sanitize_feature_names(df).columns) == ["bin__0, 10)", "x_y", "ok"]
