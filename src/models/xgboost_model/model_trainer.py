# src/models/xgboost_model/model_trainer.py
import datetime
import json
import os

import joblib
import numpy as np
import xgboost as xgb
from sklearn.metrics import mean_squared_error, mean_absolute_error, r2_score

from src.utils.seeds import DEFAULT_SEED
from .config import MODEL_CONFIG, TRAINING_CONFIG
from .grid_search import INTEGER_AXES

os.environ.setdefault("MLFLOW_ENABLE_LOGGED_MODELS", "false")

# MLflow opcional
try:
    import mlflow
    _MLFLOW_AVAILABLE = True
except ImportError:
    _MLFLOW_AVAILABLE = False


def _to_float(v):
    try:
        return float(v)
    except (TypeError, ValueError):
        return v


def rmse(y_true, y_pred) -> float:
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


class ModelTrainer:
    """
    Fits the final XGBoost regressor with tuned hyperparameters and
    evaluates it on the held-out split.
    """

    def __init__(self, model_params=None, training_params=None,
                 seed: int = DEFAULT_SEED,
                 output_dir: str = "reports",
                 use_mlflow: bool = True,
                 mlflow_experiment: str | None = None,
                 mlflow_tracking_uri: str | None = None,
                 tags: dict | None = None):
        self.model_params = {**MODEL_CONFIG, **(model_params or {})}
        for key in INTEGER_AXES:
            if key in self.model_params:
                self.model_params[key] = int(self.model_params[key])
        self.training_params = training_params or TRAINING_CONFIG
        self.seed = seed
        self.output_dir = output_dir
        self.model = xgb.XGBRegressor(**{**self.model_params, "random_state": seed})
        # ---- MLflow options ----
        self.use_mlflow = bool(use_mlflow and _MLFLOW_AVAILABLE)
        self.mlflow_experiment = (
            mlflow_experiment
            or os.getenv("EXPERIMENT_NAME")
            or os.getenv("MLFLOW_EXPERIMENT_NAME", "xgb-staged-tuning")
        )
        self.mlflow_tracking_uri = mlflow_tracking_uri or os.getenv("MLFLOW_TRACKING_URI")
        self.tags = tags or {"model_type": "xgboost"}

        if self.use_mlflow and self.mlflow_tracking_uri:
            mlflow.set_tracking_uri(self.mlflow_tracking_uri)

    def _mlflow_start(self, run_name: str | None = None):
        if not self.use_mlflow:
            return None
        if mlflow.active_run() is not None:
            return mlflow.active_run()
        mlflow.set_experiment(self.mlflow_experiment)
        return mlflow.start_run(run_name=run_name)

    def _mlflow_log_params(self):
        if not self.use_mlflow:
            return
        mlflow.log_params({f"model__{k}": v for k, v in self.model_params.items()})
        mlflow.log_params({"seed": self.seed})
        mlflow.set_tags(self.tags)
        if self.training_params:
            mlflow.log_params({f"train__{k}": v for k, v in self.training_params.items()})

    def _mlflow_log_metrics(self, metrics: dict, prefix: str = ""):
        if not self.use_mlflow:
            return
        safe = {f"{prefix}{k}": _to_float(v) for k, v in metrics.items()}
        mlflow.log_metrics(safe)

    def log_search_results(self, results):
        """
        Log each stage's winner (value and CV RMSE) to the active MLflow run.
        """
        if not self.use_mlflow:
            return
        for result in results:
            stage = result.name or result.axis
            mlflow.log_params({f"search__{stage}": result.best_value})
            mlflow.log_metrics(
                {
                    f"cv_{stage}_rmse_mean": _to_float(result.best_test_rmse_mean),
                    f"cv_{stage}_rmse_std": _to_float(result.best_test_rmse_std),
                    f"cv_{stage}_best_iteration": _to_float(result.best_iteration),
                }
            )

    def _plot_residuals(self, y_true, y_pred, out_path: str):
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
        resid = np.asarray(y_true) - np.asarray(y_pred)
        plt.figure()
        plt.scatter(y_pred, resid, s=8)
        plt.axhline(0, linestyle="--")
        plt.xlabel("Prediction")
        plt.ylabel("Residual")
        plt.title("XGBoost - Residuals (held-out)")
        plt.savefig(out_path, dpi=150, bbox_inches="tight")
        plt.close()

    def train(self, X_train, y_train):
        """
        Train the XGBoost model on the full training matrix.
        """
        print(f"[INFO] Training XGBoost model with {self.model_params}...")
        self.model.fit(X_train, y_train)
        print("[INFO] Training complete.")
        return self.model

    def evaluate(self, X_train, X_test, y_train, y_test):
        """
        Evaluate model performance on training and test sets.
        """
        print("[INFO] Evaluating model performance...")
        y_pred = self.model.predict(X_test)
        y_train_pred = self.model.predict(X_train)

        metrics = {
            "RMSE": rmse(y_test, y_pred),
            "RMSE_train": rmse(y_train, y_train_pred),
            "MAE": mean_absolute_error(y_test, y_pred),
            "R2_test": r2_score(y_test, y_pred),
            "R2_train": r2_score(y_train, y_train_pred),
        }

        print("[INFO] Model Evaluation:")
        for k, v in metrics.items():
            print(f"   {k}: {v:.4f}")
        return metrics

    def save_model(self, model_type="xgboost", timestamp=None):
        """
        Save model artifact under a unique versioned filename.
        """
        if timestamp is None:
            timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")

        versioned_dir = os.path.join("models", model_type, "artifacts")
        os.makedirs(versioned_dir, exist_ok=True)

        versioned_model_path = os.path.join(versioned_dir, f"model_{timestamp}.pkl")
        joblib.dump(self.model, versioned_model_path)

        print(f"[INFO] Saved versioned model to: {versioned_model_path}")
        return versioned_model_path

    def run(self, X_train, X_test, y_train, y_test, model_type="xgboost", timestamp=None,
            search_results=None):
        """
        Final fit + held-out evaluation. Saves the model with a timestamped
        filename and writes the metrics JSON.
        """
        print("[INFO] Starting final XGBoost fit...")

        run_ctx = self._mlflow_start(run_name=f"{model_type}_final")
        try:
            self._mlflow_log_params()
            if search_results:
                self.log_search_results(search_results)

            self.train(X_train, y_train)

            metrics = self.evaluate(X_train, X_test, y_train, y_test)
            self._mlflow_log_metrics(metrics)

            figures_dir = os.path.join(self.output_dir, "figures")
            try:
                os.makedirs(figures_dir, exist_ok=True)
                y_pred = self.model.predict(X_test)
                resid_fig = os.path.join(figures_dir, "residuals_xgb.png")
                self._plot_residuals(y_test, y_pred, resid_fig)
                if self.use_mlflow:
                    mlflow.log_artifact(resid_fig)
            except Exception as e:
                print(f"[WARN] Could not create/log residual plot: {e}")

            saved_path = self.save_model(model_type=model_type, timestamp=timestamp)
            if self.use_mlflow:
                try:
                    mlflow.log_artifact(saved_path)
                except Exception as e:
                    print(f"[WARN] Could not log model artifact: {e}")

            metrics_path = os.path.join(self.output_dir, "metrics_xgb.json")
            os.makedirs(self.output_dir, exist_ok=True)
            with open(metrics_path, "w") as f:
                json.dump({k: float(v) for k, v in metrics.items()}, f, indent=2)
            if self.use_mlflow:
                mlflow.log_artifact(metrics_path)
            print(f"[INFO] Final model saved at: {saved_path}")
            print("[INFO] Final fit complete.\n")
            return metrics

        finally:
            if self.use_mlflow and run_ctx and mlflow.active_run() and \
            mlflow.active_run().info.run_id == run_ctx.info.run_id:
                mlflow.end_run()
