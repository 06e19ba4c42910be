import os
from typing import Iterable, Optional

import pandas as pd


class DataLoader:
    """
    Handles loading and validation of the raw tabular dataset.
    """

    def __init__(
        self,
        input_path: str,
        required_columns: Optional[Iterable[str]] = None,
        date_column: Optional[str] = None,
    ):
        """
        Initialize DataLoader with the CSV path and the columns it must contain.
        """
        self.input_path = input_path
        self.required_columns = list(required_columns or [])
        self.date_column = date_column

    def load_data(self) -> pd.DataFrame:
        """
        Load dataset from CSV and perform basic validation.
        """
        if not os.path.exists(self.input_path):
            raise FileNotFoundError(f"File not found: {self.input_path}")

        df = pd.read_csv(self.input_path)
        print(f"[INFO] Loaded dataset. Rows: {df.shape[0]}, Columns: {df.shape[1]}")

        missing_cols = [c for c in self.required_columns if c not in df.columns]
        if missing_cols:
            raise ValueError(f"Missing expected columns: {missing_cols}")

        print("[INFO] Column validation passed.")
        return df

    def parse_dates(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Convert the date column to datetime; unparseable values become NaT.
        """
        if self.date_column is None:
            return df

        df = df.copy()
        df[self.date_column] = pd.to_datetime(df[self.date_column], errors="coerce")
        n_invalid = int(df[self.date_column].isna().sum())
        if n_invalid:
            print(f"[WARN] {n_invalid} rows with unparseable '{self.date_column}' values.")
        return df

    def run(self) -> pd.DataFrame:
        """
        Execute load → date parsing.
        """
        df = self.load_data()
        return self.parse_dates(df)
