"""
Visualization utilities for Monte Carlo Power Analysis.

This module provides plotting functions for power curves of path
parameters and defined effects.
"""

from typing import Dict, List, Optional

import numpy as np

__all__ = []


def _create_power_plot(
    sample_sizes: List[int],
    powers_by_test: Dict[str, List[float]],
    first_achieved: Dict[str, int],
    target_tests: List[str],
    target_power: float,
    title: str,
    defined_effects: Optional[List[str]] = None,
    selected_size: Optional[int] = None,
    save_path: Optional[str] = None,
):
    """Create a sample-size vs. power line plot with achievement markers.

    Draws one line per target, a horizontal dashed line at the target
    power, and annotates the first sample size that reaches the target.
    Defined effects are drawn dashed so they stand apart from single paths.

    Args:
        sample_sizes: X-axis values.
        powers_by_test: Mapping of target name to list of power percentages.
        first_achieved: Mapping of target name to the first sample size
            that achieved target power (``-1`` if not achieved).
        target_tests: Ordered list of target names to plot.
        target_power: Target power percentage (drawn as reference line).
        title: Plot title.
        defined_effects: Targets drawn dashed (defined effects).
        selected_size: Optional sample size marked with a vertical line.
        save_path: Write the figure here instead of showing it.

    Raises:
        ImportError: If ``matplotlib`` is not installed.
    """
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        raise ImportError("matplotlib required for plotting: pip install matplotlib") from None

    fig, ax = plt.subplots(figsize=(12, 8))
    colors = plt.get_cmap("Set1")(np.linspace(0, 1, max(len(target_tests), 1)))

    for i, test in enumerate(target_tests):
        powers = powers_by_test[test]
        style = "o--" if defined_effects and test in defined_effects else "o-"
        ax.plot(
            sample_sizes,
            powers,
            style,
            color=colors[i],
            label=test,
            linewidth=2,
            markersize=4,
        )

        achieved = first_achieved.get(test, -1)
        if achieved > 0 and achieved in sample_sizes:
            achieved_power = powers[sample_sizes.index(achieved)]
            ax.plot(
                achieved,
                achieved_power,
                "s",
                color=colors[i],
                markersize=10,
                markerfacecolor="white",
                markeredgewidth=2,
                markeredgecolor=colors[i],
            )
            ax.annotate(
                f"N={achieved}",
                xy=(achieved, achieved_power),
                xytext=(10, 10),
                textcoords="offset points",
                bbox={"boxstyle": "round,pad=0.3", "facecolor": colors[i], "alpha": 0.3},
                arrowprops={"arrowstyle": "->", "color": colors[i]},
            )

    ax.axhline(
        y=target_power,
        color="red",
        linestyle="--",
        linewidth=2,
        label=f"Target Power ({target_power}%)",
    )

    if selected_size is not None:
        ax.axvline(x=selected_size, color="#444444", linestyle=":", linewidth=1.5, label=f"Selected N ({selected_size})")

    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.set_xlabel("Sample Size", fontsize=12)
    ax.set_ylabel("Power (%)", fontsize=12)
    ax.grid(True, alpha=0.3)
    ax.legend(bbox_to_anchor=(1.05, 1), loc="upper left")
    ax.set_ylim(0, 105)

    tick_interval = max(10, (max(sample_sizes) - min(sample_sizes)) // 10)
    ax.set_xticks(range(min(sample_sizes), max(sample_sizes) + 1, tick_interval))

    fig.text(
        0.5,
        0.01,
        "made in MedPower: Monte Carlo power analysis for moderated mediation",
        ha="center",
        fontsize=9,
        color="#888888",
    )
    plt.tight_layout(rect=(0, 0.03, 1, 1))

    if save_path is not None:
        fig.savefig(save_path, dpi=150)
        plt.close(fig)
    else:
        plt.show()
