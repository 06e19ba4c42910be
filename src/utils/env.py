# src/utils/env.py
from dotenv import load_dotenv
from pathlib import Path
import os

def load_env():
    """
    Load variables from a local .env file (if present) and return the
    settings the tuning run reads from the environment.
    """
    dotenv_path = Path(".") / ".env"
    if dotenv_path.exists():
        load_dotenv(dotenv_path)
        print("[INFO] Loaded .env file.")
    else:
        print("[WARN] No .env found, using system environment variables.")

    return {
        "SEED": os.getenv("SEED"),
        "EXPERIMENT_NAME": os.getenv("EXPERIMENT_NAME", "xgb-staged-tuning"),
        "MLFLOW_TRACKING_URI": os.getenv("MLFLOW_TRACKING_URI"),
        "PARAMS_PATH": os.getenv("PARAMS_PATH", "params.yaml"),
    }
