from .report_builder import format_ranking, history_to_wide, plot_cv_curves, render_report

__all__ = ["format_ranking", "history_to_wide", "plot_cv_curves", "render_report"]
