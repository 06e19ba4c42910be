"""Helper functions to build the preprocessing recipe shared by every split."""

from __future__ import annotations

import re
from typing import Tuple

import numpy as np
import pandas as pd
from sklearn.compose import ColumnTransformer, make_column_selector
from sklearn.impute import SimpleImputer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import PowerTransformer, StandardScaler

from src.data.feature_engineer import (
    DateFeatureTransformer,
    NovelCategoryMarker,
    NovelLevelOneHotEncoder,
    ZeroVarianceFilter,
)
from src.pipelines.data_setup import FeatureConfig, DEFAULT_FEATURE_CONFIG


def build_preprocessor() -> ColumnTransformer:
    """Numeric: normalize → Yeo-Johnson → median impute. Categorical: one-hot."""
    numeric_pipeline = Pipeline(
        steps=[
            ("scaler", StandardScaler()),
            ("power", PowerTransformer(method="yeo-johnson", standardize=False)),
            ("imputer", SimpleImputer(strategy="median")),
        ]
    )

    categorical_pipeline = Pipeline(
        steps=[
            ("encoder", NovelLevelOneHotEncoder()),
        ]
    )

    preprocessor = ColumnTransformer(
        transformers=[
            (
                "numeric",
                numeric_pipeline,
                make_column_selector(dtype_include=np.number),
            ),
            (
                "categorical",
                categorical_pipeline,
                make_column_selector(dtype_exclude=np.number),
            ),
        ],
        remainder="drop",
        verbose_feature_names_out=False,
    )
    return preprocessor.set_output(transform="pandas")


def build_recipe(config: FeatureConfig = DEFAULT_FEATURE_CONFIG) -> Pipeline:
    steps = []

    if config.date_column:
        steps.append(
            (
                "date_features",
                DateFeatureTransformer(datetime_col=config.date_column, drop_original=True),
            )
        )

    steps.append(("novel_categories", NovelCategoryMarker()))
    steps.append(("zero_variance", ZeroVarianceFilter()))
    steps.append(("preprocessor", build_preprocessor()))

    return Pipeline(steps=steps)


def sanitize_feature_names(df: pd.DataFrame) -> pd.DataFrame:
    """XGBoost rejects feature names containing '[', ']' or '<'."""
    return df.rename(columns=lambda name: re.sub(r"[\[\]<]", "_", str(name)))


def prepare_matrices(
    X_train: pd.DataFrame,
    X_test: pd.DataFrame,
    config: FeatureConfig = DEFAULT_FEATURE_CONFIG,
) -> Tuple[Pipeline, pd.DataFrame, pd.DataFrame]:
    """Fit the recipe once on the training split and apply it unchanged to both splits."""
    print("[INFO] Fitting preprocessing recipe on training split...")
    recipe = build_recipe(config)
    recipe.fit(X_train)

    train_matrix = sanitize_feature_names(recipe.transform(X_train).astype(np.float64))
    test_matrix = sanitize_feature_names(recipe.transform(X_test).astype(np.float64))

    print(f"[INFO] Train matrix: {train_matrix.shape}, Test matrix: {test_matrix.shape}")
    return recipe, train_matrix, test_matrix
