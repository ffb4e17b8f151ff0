"""Bar chart PNG of a run's action breakdown."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from skills.seller_quality.types import Action

ACTION_COLORS = {
    Action.NO_ACTION.value: "#9CA3AF",
    Action.FIRST_WARNING.value: "#F59E0B",
    Action.LAST_WARNING.value: "#DC2626",
    Action.SUSPENSION.value: "#7F1D1D",
}


def _setup_matplotlib() -> None:
    tmp_cache = Path(tempfile.gettempdir()) / "mplcache"
    tmp_cache.mkdir(parents=True, exist_ok=True)
    os.environ.setdefault("MPLCONFIGDIR", str(tmp_cache / "matplotlib"))
    os.environ.setdefault("XDG_CACHE_HOME", str(tmp_cache))


def render_action_chart(stats_by_action: dict[str, int], title: str, out_path: str) -> str:
    _setup_matplotlib()
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    plt.rcParams["font.sans-serif"] = ["Inter", "Arial", "Noto Sans CJK JP", "DejaVu Sans"]

    # Fixed severity order so week-over-week charts line up.
    labels = [a.value for a in sorted(Action, key=lambda a: a.severity)]
    counts = [int(stats_by_action.get(label, 0)) for label in labels]
    colors = [ACTION_COLORS[label] for label in labels]

    fig, ax = plt.subplots(figsize=(10, 5.5), dpi=100)
    fig.patch.set_facecolor("#FFFFFF")
    bars = ax.bar(labels, counts, color=colors, edgecolor="none")
    for bar, count in zip(bars, counts):
        ax.text(
            bar.get_x() + bar.get_width() / 2,
            bar.get_height(),
            str(count),
            ha="center",
            va="bottom",
            fontsize=12,
            fontweight="bold",
        )
    ax.set_title(title, fontsize=16, fontweight="bold")
    ax.set_ylabel("Sellers")
    ax.set_ylim(0, max(counts + [1]) * 1.2)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)

    output = Path(out_path).expanduser().resolve()
    output.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output, dpi=160, bbox_inches="tight", facecolor=fig.get_facecolor())
    plt.close(fig)
    return str(output)
