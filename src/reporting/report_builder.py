# src/reporting/report_builder.py
"""Plots and Markdown report for a staged XGBoost search."""

from __future__ import annotations

import datetime
import json
import os
from typing import Dict, List, Optional, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

from src.models.xgboost_model.grid_search import TEST_MEAN, SearchResult

RANKING_COLUMNS = [
    "best_iteration",
    "n_rounds",
    "iterations_run",
    "train_rmse_mean",
    "test_rmse_mean",
    "test_rmse_std",
]


def history_to_wide(result: SearchResult, metric: str = TEST_MEAN) -> pd.DataFrame:
    """One row per iteration, one column per candidate value."""
    wide = result.history.pivot(index="iteration", columns="candidate", values=metric)
    values = result.history.drop_duplicates("candidate").set_index("candidate")["value"]
    wide.columns = [f"{result.axis}={values[c]}" for c in wide.columns]
    return wide


def plot_cv_curves(result: SearchResult, out_path: str, metric: str = TEST_MEAN) -> str:
    wide = history_to_wide(result, metric)

    fig, ax = plt.subplots(figsize=(8, 5))
    for column in wide.columns:
        ax.plot(wide.index, wide[column], label=column)
    ax.scatter(
        [result.best_iteration],
        [result.best_test_rmse_mean],
        color="black",
        zorder=3,
        label="best",
    )
    ax.set_xlabel("Iteration")
    ax.set_ylabel("Mean CV RMSE")
    ax.set_title(f"{result.name or result.axis}: mean validation RMSE by iteration")
    ax.legend(fontsize="small")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return out_path


def format_ranking(result: SearchResult) -> pd.DataFrame:
    table = result.ranking[["value"] + RANKING_COLUMNS].rename(columns={"value": result.axis})
    table.index = pd.RangeIndex(1, len(table) + 1, name="rank")
    return table


def render_report(
    results: Sequence[SearchResult],
    output_dir: str = "reports",
    *,
    final_params: Optional[Dict] = None,
    final_metrics: Optional[Dict[str, float]] = None,
    title: str = "XGBoost staged hyperparameter search",
) -> str:
    """
    Write ``search_report.md`` (tables + figure links) and
    ``search_results.json`` (one winner per stage) under ``output_dir``.
    """
    figures_dir = os.path.join(output_dir, "figures")
    os.makedirs(figures_dir, exist_ok=True)

    lines: List[str] = [
        f"# {title}",
        "",
        f"_Generated {datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}_",
        "",
    ]

    for position, result in enumerate(results, 1):
        stage = result.name or result.axis
        fig_name = f"cv_{position:02d}_{stage}.png"
        plot_cv_curves(result, os.path.join(figures_dir, fig_name))

        lines += [
            f"## Stage {position}: {stage}",
            "",
            f"Best `{result.axis}` = **{result.best_value}** at iteration {result.best_iteration} "
            f"(mean CV RMSE {result.best_test_rmse_mean:.4f} ± {result.best_test_rmse_std:.4f})",
            "",
            f"![{stage}](figures/{fig_name})",
            "",
            "```",
            format_ranking(result).to_string(float_format=lambda v: f"{v:.4f}"),
            "```",
            "",
        ]

    if final_params:
        lines += ["## Final parameters", "", "```"]
        lines += [f"{k}: {v}" for k, v in final_params.items()]
        lines += ["```", ""]

    if final_metrics:
        lines += ["## Held-out evaluation", ""]
        if "RMSE" in final_metrics:
            lines += [f"Held-out RMSE: **{final_metrics['RMSE']:.4f}**", ""]
        lines += [f"- {k}: {v:.4f}" for k, v in final_metrics.items()]
        lines.append("")

    report_path = os.path.join(output_dir, "search_report.md")
    with open(report_path, "w") as f:
        f.write("\n".join(lines))

    summary = {
        "stages": [r.summary() for r in results],
        "final_params": final_params or {},
        "final_metrics": {k: float(v) for k, v in (final_metrics or {}).items()},
    }
    with open(os.path.join(output_dir, "search_results.json"), "w") as f:
        json.dump(summary, f, indent=2, default=str)

    print(f"[INFO] Report written to: {report_path}")
    return report_path
