# src/main.py
import argparse

import yaml

from src.data.feature_engineer import FeatureEngineer
from src.models.xgboost_model.config import MODEL_CONFIG, SEARCH_CONFIG, TRAINING_CONFIG
from src.models.xgboost_model.grid_search import SearchStage, run_staged_search
from src.models.xgboost_model.model_trainer import ModelTrainer
from src.pipelines.data_setup import FeatureConfig, load_dataframe, resolve_data_path
from src.pipelines.experiment_pipelines import prepare_matrices
from src.reporting import render_report
from src.utils.env import load_env
from src.utils.seeds import resolve_seed, set_global_seed


def load_cfg(path="params.yaml"):
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def build_stages(cfg):
    return [SearchStage.from_dict(s) for s in cfg.get("stages") or SEARCH_CONFIG]


def run_data_setup(cfg, seed):
    print("=" * 70); print("[INFO] STEP 1: Loading data"); print("=" * 70)
    feature_config = FeatureConfig.from_dict(cfg.get("features"))
    data_path = resolve_data_path(cfg.get("data", {}).get("raw_path"))
    df = load_dataframe(data_path, feature_config)

    print("=" * 70); print("[INFO] STEP 2: Splitting and preprocessing"); print("=" * 70)
    test_size = cfg.get("split", {}).get("test_size", TRAINING_CONFIG["test_size"])
    engineer = FeatureEngineer(
        target=feature_config.target,
        id_columns=feature_config.id_columns,
        drop_columns=feature_config.drop_columns,
        test_size=test_size,
        random_state=seed,
    )
    X_train, X_test, y_train, y_test = engineer.run(df)
    _, train_matrix, test_matrix = prepare_matrices(X_train, X_test, feature_config)
    return train_matrix, test_matrix, y_train, y_test


def run_search(cfg, train_matrix, y_train, seed):
    print("=" * 70); print("[INFO] STEP 3: Staged hyperparameter search"); print("=" * 70)
    cv_cfg = cfg.get("cv", {})
    base_params = {**MODEL_CONFIG, **(cfg.get("model") or {})}
    return run_staged_search(
        build_stages(cfg),
        train_matrix,
        y_train,
        base_params,
        nfold=cv_cfg.get("nfold", TRAINING_CONFIG["cv_folds"]),
        early_stopping_rounds=cv_cfg.get("early_stopping_rounds", TRAINING_CONFIG["early_stopping_rounds"]),
        seed=seed,
    )


def run_final_fit(cfg, final_params, results, train_matrix, test_matrix, y_train, y_test, seed, use_mlflow):
    print("=" * 70); print("[INFO] STEP 4: Final fit and held-out evaluation"); print("=" * 70)
    trainer = ModelTrainer(
        model_params=final_params,
        training_params=cfg.get("cv"),
        seed=seed,
        output_dir=cfg.get("report", {}).get("output_dir", "reports"),
        use_mlflow=use_mlflow,
    )
    return trainer.run(train_matrix, test_matrix, y_train, y_test, search_results=results)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Staged XGBoost hyperparameter search report.")
    parser.add_argument("--params", type=str, default=None, help="Path to params.yaml")
    parser.add_argument("--stage", type=str, default="all", choices=["all", "search"])
    parser.add_argument("--no-mlflow", action="store_true", help="Disable MLflow tracking")
    args = parser.parse_args(argv)

    env = load_env()
    cfg = load_cfg(args.params or env["PARAMS_PATH"])
    seed = set_global_seed(resolve_seed(env["SEED"]))
    print(f"[INFO] Using seed {seed}")

    train_matrix, test_matrix, y_train, y_test = run_data_setup(cfg, seed)
    results, final_params = run_search(cfg, train_matrix, y_train, seed)

    final_metrics = None
    if args.stage == "all":
        final_metrics = run_final_fit(
            cfg, final_params, results, train_matrix, test_matrix, y_train, y_test,
            seed, use_mlflow=not args.no_mlflow,
        )

    print("=" * 70); print("[INFO] STEP 5: Report"); print("=" * 70)
    report_path = render_report(
        results,
        cfg.get("report", {}).get("output_dir", "reports"),
        final_params=final_params,
        final_metrics=final_metrics,
    )
    if final_metrics:
        print(f"[INFO] Held-out RMSE: {final_metrics['RMSE']:.4f}")
    print(f"\n[INFO] Pipeline finished. Report: {report_path}")
    return final_metrics


if __name__ == "__main__":
    main()
