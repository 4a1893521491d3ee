"""
Multiple-comparison corrections on p-values.

Corrections are encoded as integers throughout the simulation code:
0=none, 1=Bonferroni, 2=Benjamini-Hochberg, 3=Holm.
"""

from typing import Optional

import numpy as np


def encode_correction(correction: Optional[str]) -> int:
    """Map a user-facing correction name to its integer code."""
    if not correction:
        return 0
    method = correction.lower().replace("-", "_").replace(" ", "_")
    if method == "bonferroni":
        return 1
    if method in ["benjamini_hochberg", "bh", "fdr"]:
        return 2
    if method == "holm":
        return 3
    raise ValueError(f"Unknown correction '{correction}'. Use 'bonferroni', 'benjamini-hochberg' or 'holm'")


def compute_correction_thresholds(alpha: float, n_targets: int, correction_method: int) -> np.ndarray:
    """Per-rank p-value thresholds for the chosen correction.

    Called once before the simulation loop. Rank ``k`` (0-based) is the
    k-th smallest p-value.

    Returns:
        Array of length *n_targets*.
    """
    m = n_targets
    if m == 0:
        return np.empty(0)

    if correction_method == 1:  # Bonferroni
        return np.full(m, alpha / m)
    if correction_method == 2:  # FDR (Benjamini-Hochberg)
        return np.array([(k + 1) / m * alpha for k in range(m)])
    if correction_method == 3:  # Holm
        return np.array([alpha / (m - k) for k in range(m)])
    return np.full(m, alpha)


def apply_correction(p_values: np.ndarray, thresholds: np.ndarray, correction_method: int) -> np.ndarray:
    """Boolean rejection vector after correction.

    Args:
        p_values: One p-value per target.
        thresholds: Output of ``compute_correction_thresholds``.
        correction_method: Encoded correction.
    """
    m = len(p_values)
    rejected = np.zeros(m, dtype=bool)
    if m == 0:
        return rejected

    if correction_method in (0, 1):
        return p_values < thresholds

    order = np.argsort(p_values, kind="stable")
    if correction_method == 2:
        # Step-up: reject everything up to the largest passing rank
        last_sig = -1
        for k in range(m):
            if p_values[order[k]] < thresholds[k]:
                last_sig = k
        rejected[order[: last_sig + 1]] = True
    elif correction_method == 3:
        # Step-down: stop at the first failure
        for k in range(m):
            if p_values[order[k]] < thresholds[k]:
                rejected[order[k]] = True
            else:
                break
    return rejected
