# src/models/xgboost_model/config.py

MODEL_CONFIG = {
    "objective": "reg:squarederror",
    "eval_metric": "rmse",
    "n_estimators": 100,
    "learning_rate": 0.1,
    "max_depth": 6,
    "colsample_bytree": 1.0,
}

TRAINING_CONFIG = {
    "cv_folds": 10,
    "early_stopping_rounds": 20,
    "test_size": 0.2,
}

# Ordered stages: each winner is fixed for every later stage.
SEARCH_CONFIG = [
    {"name": "trees", "axis": "n_estimators", "candidates": [100, 325, 550, 775, 1000]},
    {"name": "learning_rate_1", "axis": "learning_rate", "candidates": [0.01, 0.05, 0.1, 0.2, 0.3]},
    {"name": "max_depth", "axis": "max_depth", "candidates": [2, 4, 6, 8, 10]},
    {"name": "colsample_bytree", "axis": "colsample_bytree", "candidates": [0.4, 0.6, 0.8, 1.0]},
    {"name": "learning_rate_2", "axis": "learning_rate", "candidates": [0.01, 0.025, 0.05, 0.075, 0.1]},
]
