from __future__ import annotations

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from .report import ExperimentReport

LOGGER = logging.getLogger("reconbench.harness.charts")

sns.set_style("whitegrid")
plt.rcParams["figure.dpi"] = 100
plt.rcParams["savefig.dpi"] = 300
plt.rcParams["font.size"] = 10
plt.rcParams["axes.labelsize"] = 11
plt.rcParams["axes.titlesize"] = 13

SOURCE_COLORS = {
    "leader": "#2E86AB",  # Blue
    "observer": "#F18F01",  # Orange
}


def render_latency_timeline(
    report: ExperimentReport, samples: pd.DataFrame, chart_path: Path
) -> Path:
    """Scatter request latency against time relative to the reconfiguration."""
    fig, ax = plt.subplots(figsize=(12, 6))

    if samples.empty:
        LOGGER.warning("No samples available for latency timeline")
    else:
        for source, group in samples.groupby("source"):
            ax.scatter(
                group["offset_ms"] / 1_000.0,
                group["latency_us"] / 1_000.0,
                s=6,
                alpha=0.6,
                color=SOURCE_COLORS.get(str(source), "#808080"),
                label=f"{source} ({len(group)})",
            )

    ax.axvline(0.0, color="#C73E1D", linewidth=1.5, linestyle="--", label="issue")
    for observe in report.observes:
        ax.axvline(
            (observe.observed_at - report.issue) / 1e6,
            color="#6A994E",
            linewidth=1.0,
            linestyle=":",
            label=f"cluster #{observe.cluster_index} leader",
        )
    if report.leader is not None:
        ax.axvspan(
            (report.leader.add_enter - report.issue) / 1e6,
            (report.leader.add_leave - report.issue) / 1e6,
            color="#A23B72",
            alpha=0.15,
            label="leader-side reconfiguration",
        )

    ax.set_xlabel("Time since issue (seconds)", fontweight="semibold")
    ax.set_ylabel("Latency (ms)", fontweight="semibold")
    ax.set_title("Write Latency Around Membership Reconfiguration", fontweight="bold", pad=15)
    ax.legend(loc="upper right", frameon=True, fancybox=True, fontsize=9)
    ax.grid(True, alpha=0.3, linestyle="--")
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)

    plt.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path
