# src/utils/seeds.py

"""
Seed handling for reproducible tuning runs.

The seed is read once and then passed explicitly to the train/test split,
every ``xgboost.cv`` call and the final model.
"""

import os
import random
from typing import Optional

import numpy as np


def _env_seed(default: int) -> int:
    # A blank SEED (e.g. ``SEED=`` in .env) counts as unset.
    value = (os.getenv("SEED") or "").strip()
    return int(value) if value else default


DEFAULT_SEED = _env_seed(42)


def resolve_seed(seed: Optional[int] = None) -> int:
    """Return ``seed`` if given, else ``SEED`` from the environment, else 42."""
    if isinstance(seed, str):
        seed = seed.strip() or None
    if seed is not None:
        return int(seed)
    return _env_seed(DEFAULT_SEED)


def set_global_seed(seed: int = DEFAULT_SEED) -> int:
    """
    Seed Python's and NumPy's global generators.

    Parameters
    ----------
    seed : int
        Seed value.

    Returns
    -------
    int
        The seed used, so callers can log it.
    """
    random.seed(seed)
    np.random.seed(seed)
    return seed
