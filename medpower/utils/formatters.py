"""
Result formatting for Monte Carlo Power Analysis.

Turns the nested result dictionaries built by ``core.results`` into plain
text tables for the console.
"""

from typing import Any, Dict, List, Optional

__all__ = []


class _TableFormatter:
    """Fixed-width plain-text tables."""

    def _create_table(self, headers: List[str], rows: List[List[Any]], col_widths: Optional[List[int]] = None) -> str:
        """Render *headers* and *rows* as a left-aligned table with a dashed rule."""
        if col_widths is None:
            col_widths = [max([len(str(h))] + [len(str(r[i])) for r in rows]) + 2 for i, h in enumerate(headers)]

        def _line(cells):
            return " ".join(f"{str(cell):<{col_widths[i]}}" for i, cell in enumerate(cells))

        lines = [_line(headers), "-" * (sum(col_widths) + len(col_widths) - 1)]
        lines.extend(_line(row) for row in rows)
        return "\n".join(lines)

    def _format_value(self, value: Any, format_spec: Optional[str] = None) -> str:
        if isinstance(value, float):
            if format_spec:
                return f"{value:{format_spec}}"
            if value != 0 and abs(value) < 0.001:
                return f"{value:.6f}"
            return f"{value:.4f}"
        return str(value)


class _ResultFormatter(_TableFormatter):
    """Formats power and sample-size results in ``"short"`` or ``"long"`` form."""

    def format(self, result_type: str, data: Dict[str, Any], summary: str = "short") -> str:
        if result_type == "power":
            return self._format_long_power(data) if summary == "long" else self._format_short_power(data)
        if result_type == "sample_size":
            return self._format_long_sample_size(data) if summary == "long" else self._format_short_sample_size(data)
        raise ValueError(f"Unknown result type: {result_type}")

    # ------------------------------------------------------------------
    # Power
    # ------------------------------------------------------------------

    def _format_short_power(self, data: Dict[str, Any]) -> str:
        model = data["model"]
        results = data["results"]
        target_power = model["target_power"]
        correction = model.get("correction")
        powers = results["individual_powers"]
        powers_corr = results.get("individual_powers_corrected") if correction else None

        lines = [f"\nPower Analysis Results (N={model['sample_size']}):"]
        if correction:
            lines.append(f"Correction: {correction}")

        headers = ["Target", "Power", "Target", "Status"]
        if powers_corr:
            headers.insert(2, "Corrected")

        rows = []
        for test in model["target_tests"]:
            power = powers[test]
            shown = powers_corr[test] if powers_corr else power
            row = [test, f"{power:.1f}", f"{target_power:.0f}", "✓" if shown >= target_power else "✗"]
            if powers_corr:
                row.insert(2, f"{powers_corr[test]:.1f}")
            rows.append(row)
        lines.append(self._create_table(headers, rows))

        achieved = sum(1 for t in model["target_tests"] if (powers_corr or powers)[t] >= target_power)
        lines.append(f"\nResult: {achieved}/{len(model['target_tests'])} tests achieved target power")

        failed = results.get("n_simulations_failed", 0)
        if failed:
            lines.append(f"Failed simulations: {failed}")
        return "\n".join(lines)

    def _format_long_power(self, data: Dict[str, Any]) -> str:
        model = data["model"]
        results = data["results"]
        correction = model.get("correction")
        target_tests = model["target_tests"]

        lines = [self._format_short_power(data), "\nIndividual Test Powers:"]
        headers = ["Target", "Power (%)"]
        if correction:
            headers.append("Corrected (%)")
        rows = []
        for test in target_tests:
            row = [test, f"{results['individual_powers'][test]:.1f}"]
            if correction:
                row.append(f"{results['individual_powers_corrected'][test]:.1f}")
            rows.append(row)
        lines.append(self._create_table(headers, rows))

        summaries = results.get("estimate_summaries")
        if summaries:
            lines.append("\nEstimates Across Replications:")
            rows = []
            for test in target_tests:
                s = summaries[test]
                rows.append(
                    [
                        test,
                        self._format_value(s["population"]),
                        self._format_value(s["mean_estimate"]),
                        self._format_value(s["bias"]),
                        self._format_value(s["sd_estimate"]),
                        self._format_value(s["mean_se"]),
                        f"{s['coverage']:.1f}",
                    ]
                )
            lines.append(self._create_table(["Target", "True", "Mean", "Bias", "SD", "Mean SE", "Coverage"], rows))

        lines.append("\nCumulative Probabilities:")
        cumulative = results.get("cumulative_probabilities", {})
        rows = [[name.replace("_", " "), f"{value:.1f}"] for name, value in cumulative.items()]
        lines.append(self._create_table(["Outcome", "Probability (%)"], rows))

        if correction and results.get("cumulative_probabilities_corrected"):
            lines.append("\nCumulative Probabilities (Corrected):")
            rows = [[name.replace("_", " "), f"{value:.1f}"] for name, value in results["cumulative_probabilities_corrected"].items()]
            lines.append(self._create_table(["Outcome", "Probability (%)"], rows))

        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Sample size
    # ------------------------------------------------------------------

    def _required_n(self, achieved: int, to_size: int) -> str:
        return str(achieved) if achieved > 0 else f">{to_size}"

    def _format_short_sample_size(self, data: Dict[str, Any]) -> str:
        model = data["model"]
        results = data["results"]
        to_size = model["sample_size_range"]["to_size"]
        first_achieved = results["first_achieved"]
        first_achieved_corr = results.get("first_achieved_corrected") if model.get("correction") else None

        lines = ["\nSample Size Requirements:"]
        if first_achieved_corr:
            headers = ["Target", "Uncorrected N", "Corrected N"]
            rows = [
                [t, self._required_n(first_achieved[t], to_size), self._required_n(first_achieved_corr[t], to_size)]
                for t in model["target_tests"]
            ]
        else:
            headers = ["Target", "Required N"]
            rows = [[t, self._required_n(first_achieved[t], to_size)] for t in model["target_tests"]]
        lines.append(self._create_table(headers, rows))
        return "\n".join(lines)

    def _format_long_sample_size(self, data: Dict[str, Any]) -> str:
        model = data["model"]
        results = data["results"]
        target_tests = model["target_tests"]
        sample_sizes = results["sample_sizes_tested"]

        lines = [self._format_short_sample_size(data), "\nPower by Sample Size (%):"]
        rows = []
        for i, n in enumerate(sample_sizes):
            rows.append([n] + [f"{results['powers_by_test'][t][i]:.1f}" for t in target_tests])
        lines.append(self._create_table(["N"] + list(target_tests), rows))

        # Share of targets at or above the target power at each N
        target_power = model.get("target_power", 80.0)
        lines.append("\nCumulative Significance Probability (targets at target power):")
        rows = []
        for i, n in enumerate(sample_sizes):
            n_ok = sum(1 for t in target_tests if results["powers_by_test"][t][i] >= target_power)
            rows.append([n, f"{n_ok}/{len(target_tests)}"])
        lines.append(self._create_table(["N", "Achieved"], rows))
        return "\n".join(lines)


def _format_results(result_type: str, data: Dict[str, Any], summary: str = "short") -> str:
    """Format a result dictionary for printing."""
    return _ResultFormatter().format(result_type, data, summary)
