from .grid_search import SearchResult, SearchStage, run_staged_search, search_axis
from .model_trainer import ModelTrainer

__all__ = ["ModelTrainer", "SearchResult", "SearchStage", "run_staged_search", "search_axis"]
