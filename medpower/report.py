"""
Study runner and Markdown report for MedPower.

A study is the full planning workflow: sweep a range of sample sizes,
select the sample size at which every target reaches the target power,
then confirm power at that size with a fresh, independent set of
replications.
"""

import os
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from .core.results import results_to_dataframe
from .utils.validators import _validate_sample_size_range

# Replication k of a run uses seeds seed+4k (data) and seed+4k+1 (draws);
# an offset of 2 keeps the confirmation run's seeds disjoint from the sweep
CONFIRMATION_SEED_OFFSET = 2


def select_sample_size(sweep: Dict[str, Any], corrected: bool = False) -> Dict[str, Any]:
    """Pick the sample size at which every target reaches the target power.

    The selected size is the largest first-achieved size across targets.
    If any target never reaches the target power, the end of the swept
    range is selected and ``achieved`` is ``False``.

    Args:
        sweep: Result of ``find_sample_size(..., return_results=True)``.
        corrected: Use corrected power (requires a correction).

    Returns:
        Dict with ``"sample_size"``, ``"achieved"`` and ``"not_achieved"``
        (targets that never reached the target power).
    """
    results = sweep["results"]
    first_achieved = results["first_achieved_corrected"] if corrected else results["first_achieved"]
    if first_achieved is None:
        raise ValueError("Corrected selection requires a sweep run with a correction")

    not_achieved = [t for t, n in first_achieved.items() if n == -1]
    if not_achieved:
        selected = max(results["sample_sizes_tested"])
    else:
        selected = max(first_achieved.values())

    return {"sample_size": selected, "achieved": not not_achieved, "not_achieved": not_achieved}


def run_study(
    model,
    target_test: Union[str, List[str]] = "all",
    from_size: int = 50,
    to_size: int = 500,
    by: int = 25,
    correction: Optional[str] = None,
    print_results: bool = False,
    progress_callback=None,
    cancel_check=None,
) -> Dict[str, Any]:
    """Sweep sample sizes, select one, and confirm power there.

    Args:
        model: Configured ``MedPower`` instance.
        target_test: Targets to test (see ``MedPower.find_power``).
        from_size: Smallest sample size in the sweep.
        to_size: Largest sample size in the sweep.
        by: Sweep step.
        correction: Optional multiple-comparison correction; when given,
            selection uses corrected power.
        print_results: Print the sweep and confirmation tables.
        progress_callback: Progress hook counting the sweep and the
            confirmation run as one total.
        cancel_check: Passed to both runs.

    Returns:
        Dict with ``"sweep"`` (sample-size result), ``"selection"`` (see
        ``select_sample_size``) and ``"confirmation"`` (power result at
        the selected size from independent replications).
    """
    from .progress import ProgressReporter, compute_total_simulations

    _validate_sample_size_range(from_size, to_size, by).raise_if_invalid()

    reporter = None
    if progress_callback:
        n_sizes = len(range(from_size, to_size + 1, by))
        total = compute_total_simulations(model.n_simulations, n_sizes, confirmation=True)
        reporter = ProgressReporter(total, progress_callback)
        reporter.start()

    sweep = model.find_sample_size(
        target_test=target_test,
        from_size=from_size,
        to_size=to_size,
        by=by,
        correction=correction,
        print_results=print_results,
        return_results=True,
        progress_callback=reporter if reporter is not None else False,
        cancel_check=cancel_check,
    )
    selection = select_sample_size(sweep, corrected=bool(correction))

    if print_results:
        status = "reached" if selection["achieved"] else f"not reached for {', '.join(selection['not_achieved'])}"
        print(f"\nSelected sample size: N={selection['sample_size']} (target power {status})")

    confirmation = model._run_find_power(
        selection["sample_size"],
        sweep["model"]["target_tests"],
        correction,
        seed_offset=CONFIRMATION_SEED_OFFSET,
        progress=reporter,
        cancel_check=cancel_check,
        phase="confirmation",
    )
    if reporter is not None:
        reporter.finish()

    if print_results:
        from .utils.formatters import _format_results

        print(_format_results("power", confirmation, "long"))

    return {"sweep": sweep, "selection": selection, "confirmation": confirmation}


def _to_markdown(df: pd.DataFrame) -> str:
    # Cells are pre-formatted strings; keep them as written
    return df.to_markdown(index=False, disable_numparse=True)


def _fmt(value: float, digits: int = 3) -> str:
    return f"{value:.{digits}f}"


def render_report(study: Dict[str, Any], title: str = "Power analysis for moderated mediation", plot_file: Optional[str] = None) -> str:
    """Render a study as a Markdown document.

    Sections: model, settings, power by sample size, selected sample size
    and the confirmation run with estimate summaries.

    Args:
        study: Output of ``run_study``.
        title: Document title.
        plot_file: Optional image path embedded under the sweep table.
    """
    sweep = study["sweep"]
    selection = study["selection"]
    confirmation = study["confirmation"]
    model_info = sweep["model"]
    target_tests = model_info["target_tests"]
    correction = model_info.get("correction")
    size_range = model_info["sample_size_range"]

    parts = [f"# {title}", "", "## Model", "", "```", model_info["model_syntax"], "```", ""]

    settings = pd.DataFrame(
        [
            ["Target power", f"{model_info['target_power']:.0f}%"],
            ["Alpha", str(model_info["alpha"])],
            ["Replications per N", str(model_info["n_simulations"])],
            ["Interval for defined effects", model_info["ci_method"]],
            ["Correction", correction or "none"],
            ["Sample sizes", f"{size_range['from_size']} to {size_range['to_size']} by {size_range['by']}"],
        ],
        columns=["Setting", "Value"],
    )
    parts += ["## Settings", "", _to_markdown(settings), ""]

    column = "power_corrected" if correction else "power"
    wide = results_to_dataframe(sweep).pivot(index="sample_size", columns="target", values=column)[target_tests]
    power_table = wide.map(lambda v: _fmt(v, 1)).reset_index()
    power_table.columns = ["N"] + target_tests
    power_table["N"] = power_table["N"].astype(int).astype(str)
    parts += [f"## Power by sample size ({'corrected' if correction else 'uncorrected'}, %)", "", _to_markdown(power_table), ""]
    if plot_file:
        parts += [f"![Power curves]({plot_file})", ""]

    first = sweep["results"]["first_achieved_corrected"] if correction else sweep["results"]["first_achieved"]
    first_table = pd.DataFrame(
        {
            "Target": target_tests,
            "First N reaching target power": [str(first[t]) if first[t] > 0 else f">{size_range['to_size']}" for t in target_tests],
        }
    )
    parts += ["## Selected sample size", "", _to_markdown(first_table), ""]
    if selection["achieved"]:
        parts.append(f"All targets reach {model_info['target_power']:.0f}% power at **N = {selection['sample_size']}**.")
    else:
        parts.append(
            f"Target power was not reached within the swept range for: {', '.join(selection['not_achieved'])}. "
            f"The confirmation run uses the largest swept size, **N = {selection['sample_size']}**."
        )
    parts.append("")

    conf = results_to_dataframe(confirmation)
    conf_table = pd.DataFrame({"Target": conf["target"]})
    for source, header, digits in [
        ("power", "Power %", 1),
        ("power_corrected", "Corrected %", 1),
        ("population", "True", 3),
        ("mean_estimate", "Mean est.", 3),
        ("bias", "Bias", 3),
        ("sd_estimate", "SD", 3),
        ("mean_se", "Mean SE", 3),
        ("coverage", "Coverage %", 1),
    ]:
        conf_table[header] = conf[source].map(lambda v, d=digits: _fmt(v, d))
    n_used = confirmation["results"]["n_simulations_used"]
    parts += [
        f"## Confirmation run (N = {confirmation['model']['sample_size']}, {n_used} independent replications)",
        "",
        _to_markdown(conf_table),
        "",
    ]
    failed = confirmation["results"].get("n_simulations_failed", 0)
    if failed:
        parts += [f"{failed} replications failed and were excluded.", ""]

    return "\n".join(parts)


def write_report(study: Dict[str, Any], path: str, model=None, title: str = "Power analysis for moderated mediation") -> str:
    """Write the Markdown report to *path*, with power curves when *model* is given.

    With a correction, the corrected curves are embedded to match the
    corrected power table.

    Returns:
        The path of the written report.
    """
    plot_file = None
    if model is not None:
        base, _ = os.path.splitext(path)
        plot_path = base + "_power.png"
        model._create_sample_size_plots(study["sweep"], save_path=plot_path, selected_size=study["selection"]["sample_size"])
        if study["sweep"]["model"].get("correction"):
            plot_path = base + "_power_corrected.png"
        plot_file = os.path.basename(plot_path)

    with open(path, "w", encoding="utf-8") as fh:
        fh.write(render_report(study, title=title, plot_file=plot_file))
    return path
