from inspect import signature
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.model_selection import train_test_split
from sklearn.preprocessing import OneHotEncoder

NEW_LEVEL = "new"
UNKNOWN_LEVEL = "unknown"


class DateFeatureTransformer(BaseEstimator, TransformerMixin):
    """Expands a datetime column into numeric calendar features."""

    def __init__(self, datetime_col: str = "date", drop_original: bool = True):
        self.datetime_col = datetime_col
        self.drop_original = drop_original
        self.feature_names_: Optional[Sequence[str]] = None

    def fit(self, X: pd.DataFrame, y=None):
        self._validate_column(X)
        self.input_columns_ = list(X.columns)
        self.feature_names_ = self._date_feature_names()
        return self

    def transform(self, X: pd.DataFrame):
        self._validate_column(X)
        df = X.copy()
        dt = pd.to_datetime(df[self.datetime_col], errors="coerce")

        # NaT stays NaN here; the numeric branch of the recipe imputes it.
        features = pd.DataFrame(
            {
                f"{self.datetime_col}_year": dt.dt.year.astype(np.float64),
                f"{self.datetime_col}_month": dt.dt.month.astype(np.float64),
                f"{self.datetime_col}_dayofweek": dt.dt.dayofweek.astype(np.float64),
                f"{self.datetime_col}_dayofyear": dt.dt.dayofyear.astype(np.float64),
            },
            index=df.index,
        )

        if self.drop_original:
            df = df.drop(columns=[self.datetime_col])

        return pd.concat([df, features], axis=1)

    def get_feature_names_out(self, input_features=None):
        columns = list(input_features if input_features is not None else self.input_columns_)
        if self.drop_original:
            columns = [c for c in columns if c != self.datetime_col]
        return np.asarray(columns + list(self.feature_names_ or []))

    def _date_feature_names(self) -> list[str]:
        parts = ["year", "month", "dayofweek", "dayofyear"]
        return [f"{self.datetime_col}_{part}" for part in parts]

    def _validate_column(self, X: pd.DataFrame):
        if self.datetime_col not in X.columns:
            raise KeyError(f"[ERROR] Column '{self.datetime_col}' not found in DataFrame.")


class NovelCategoryMarker(BaseEstimator, TransformerMixin):
    """
    Maps missing categorical values to an explicit ``"unknown"`` level and
    values never seen during ``fit`` to a ``"new"`` level.
    """

    def __init__(self, columns: Optional[Iterable[str]] = None, new_level: str = NEW_LEVEL, unknown_level: str = UNKNOWN_LEVEL):
        self.columns = tuple(columns) if columns is not None else None
        self.new_level = new_level
        self.unknown_level = unknown_level

    def fit(self, X: pd.DataFrame, y=None):
        self.input_columns_ = list(X.columns)
        self.categorical_columns_ = self._infer_categorical_columns(X)
        self.levels_ = {
            column: set(X[column].dropna().astype(str).unique())
            for column in self.categorical_columns_
        }
        return self

    def transform(self, X: pd.DataFrame):
        df = X.copy()
        for column, levels in self.levels_.items():
            if column not in df.columns:
                raise KeyError(f"[ERROR] Column '{column}' seen during fit is missing.")
            values = df[column].astype(object)
            missing = values.isna()
            as_str = values.where(missing, values.astype(str))
            novel = ~missing & ~as_str.isin(levels)
            as_str = as_str.mask(novel, self.new_level).mask(missing, self.unknown_level)
            df[column] = as_str.astype(object)
        return df

    def get_feature_names_out(self, input_features=None):
        return np.asarray(list(input_features if input_features is not None else self.input_columns_))

    def _infer_categorical_columns(self, X: pd.DataFrame) -> Sequence[str]:
        if self.columns is not None:
            missing = sorted(set(self.columns) - set(X.columns))
            if missing:
                raise KeyError(f"[ERROR] Missing columns in NovelCategoryMarker: {missing}")
            return list(self.columns)

        return list(X.select_dtypes(include=["object", "category", "bool", "string"]).columns)


class NovelLevelOneHotEncoder(BaseEstimator, TransformerMixin):
    """
    One-hot encoder whose categories always include the ``"new"`` and
    ``"unknown"`` levels, so rows marked by ``NovelCategoryMarker`` get
    their own indicator column instead of an all-zero row.
    """

    def __init__(self, extra_levels: Sequence[str] = (NEW_LEVEL, UNKNOWN_LEVEL)):
        self.extra_levels = extra_levels

    def fit(self, X: pd.DataFrame, y=None):
        X = pd.DataFrame(X).astype(str)
        categories = [
            sorted(set(X[column].unique()) | set(self.extra_levels))
            for column in X.columns
        ]

        encoder_kwargs = {"handle_unknown": "ignore"}
        if "sparse_output" in signature(OneHotEncoder).parameters:
            encoder_kwargs["sparse_output"] = False
        else:
            encoder_kwargs["sparse"] = False

        self.encoder_ = OneHotEncoder(categories=categories, dtype=np.float64, **encoder_kwargs)
        self.encoder_.fit(X)
        return self

    def transform(self, X: pd.DataFrame):
        return self.encoder_.transform(pd.DataFrame(X).astype(str))

    def get_feature_names_out(self, input_features=None):
        return self.encoder_.get_feature_names_out(input_features)


class ZeroVarianceFilter(BaseEstimator, TransformerMixin):
    """Drops columns holding at most one distinct non-missing value at fit time."""

    def fit(self, X: pd.DataFrame, y=None):
        self.dropped_columns_ = [c for c in X.columns if X[c].nunique(dropna=True) <= 1]
        self.kept_columns_ = [c for c in X.columns if c not in self.dropped_columns_]
        if self.dropped_columns_:
            print(f"[INFO] Removing zero-variance columns: {self.dropped_columns_}")
        return self

    def transform(self, X: pd.DataFrame):
        missing = sorted(set(self.kept_columns_) - set(X.columns))
        if missing:
            raise KeyError(f"[ERROR] Columns seen during fit are missing: {missing}")
        return X[self.kept_columns_].copy()

    def get_feature_names_out(self, input_features=None):
        return np.asarray(self.kept_columns_)


class FeatureEngineer:
    """
    Separates predictors from the outcome and splits data
    for model training.
    """

    def __init__(
        self,
        target: str,
        id_columns: Optional[Iterable[str]] = None,
        drop_columns: Optional[Iterable[str]] = None,
        test_size: float = 0.2,
        random_state: int = 42,
    ):
        self.target = target
        self.id_columns = list(id_columns or [])
        self.drop_columns = list(drop_columns or [])
        self.test_size = test_size
        self.random_state = random_state

    @property
    def excluded_columns(self) -> list[str]:
        return [self.target] + self.id_columns + self.drop_columns

    def predictor_columns(self, df: pd.DataFrame) -> list[str]:
        excluded = set(self.excluded_columns)
        return [c for c in df.columns if c not in excluded]

    def select_features(self, df: pd.DataFrame):
        """
        Keep every column except the outcome, the identifiers and explicit drops.
        """
        print("[INFO] Selecting features and target...")

        if self.target in self.id_columns + self.drop_columns:
            raise ValueError(f"[ERROR] Target '{self.target}' cannot be excluded from the dataset.")

        missing_cols = [c for c in self.excluded_columns if c not in df.columns]
        if missing_cols:
            raise ValueError(f"[ERROR] Missing columns in dataset: {missing_cols}")

        n_missing_target = int(df[self.target].isna().sum())
        if n_missing_target:
            print(f"[WARN] Dropping {n_missing_target} rows with missing '{self.target}'.")
            df = df.dropna(subset=[self.target])

        X = df[self.predictor_columns(df)]
        y = df[self.target].astype(float)

        print(f"[INFO] Feature matrix shape: {X.shape}")
        print(f"[INFO] Target vector shape : {y.shape}")
        return X, y

    def split_data(self, X: pd.DataFrame, y: pd.Series):
        """
        Split data into train and test sets.
        """
        if not 0 < self.test_size < 1:
            raise ValueError(f"[ERROR] test_size must be in (0, 1), got {self.test_size}")

        print("[INFO] Splitting data into train/test sets...")
        X_train, X_test, y_train, y_test = train_test_split(
            X, y, test_size=self.test_size, random_state=self.random_state
        )

        print(f"[INFO] X_train: {X_train.shape}, X_test: {X_test.shape}")
        print(f"[INFO] y_train: {y_train.shape}, y_test: {y_test.shape}")

        return X_train, X_test, y_train, y_test

    def run(self, df: pd.DataFrame, split: bool = True):
        """
        Select predictors, then optionally split them.
        """
        X, y = self.select_features(df)

        if split:
            return self.split_data(X, y)
        else:
            return X, y
