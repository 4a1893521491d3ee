"""
Parsing utilities for MedPower.

This module provides parsing functions for path-model syntax and for the
comma-separated assignment strings used by the ``set_*`` methods.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

__all__ = []

# Unicode-aware identifier pattern: letter or underscore, then word characters
_IDENT = r"[^\W\d]\w*"
_IDENT_RE = re.compile(rf"^{_IDENT}$")
_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


class _AssignmentParser:
    """Parses comma-separated ``name=value`` assignment strings.

    Each parse type (``"variable_type"``, ``"correlation"``, ``"effect"``,
    ``"residual"``) has its own value handler.
    Correlation assignments use the syntax ``corr(var1, var2)=value``.

    A module-level singleton ``_parser`` is used throughout the codebase.
    """

    def __init__(self):
        self.handlers = {
            "variable_type": self._parse_variable_type_value,
            "correlation": self._parse_correlation_value,
            "effect": self._parse_effect_value,
            "residual": self._parse_residual_value,
        }

    def _parse(self, input_string: str, parse_type: str, available_items: List[str]) -> Tuple[Dict, List[str]]:
        """Parse a comma-separated assignment string.

        Args:
            input_string: Raw user input (e.g. ``"x=binary, w=(binary,0.3)"``).
            parse_type: One of ``"variable_type"``, ``"correlation"``,
                ``"effect"`` or ``"residual"``.
            available_items: Valid names that may appear on the left-hand
                side of assignments.

        Returns:
            Tuple of ``(parsed_dict, error_list)``. For correlations the
            dict is keyed by sorted variable-name tuples; otherwise by
            name.
        """
        if parse_type not in self.handlers:
            return {}, [f"Unknown parse type: {parse_type}"]

        assignments = self._split_assignments(input_string)
        parsed_items = {}
        errors = []

        for assignment in assignments:
            try:
                name, value = self._parse_assignment(assignment, parse_type)

                if parse_type == "correlation":
                    valid, error = self._validate_correlation_pair(name, available_items)
                    if not valid:
                        if error is not None:
                            errors.append(error)
                        continue
                else:
                    if name not in available_items:
                        errors.append(f"'{name}' not found. Available: {', '.join(available_items)}")
                        continue

                parsed_value, error = self.handlers[parse_type](value)
                if error:
                    errors.append(f"{name}: {error}")
                    continue

                if parse_type == "correlation":
                    var1, var2 = name
                    key = tuple(sorted([var1, var2]))
                    parsed_items[key] = parsed_value
                else:
                    parsed_items[name] = parsed_value

            except ValueError as e:
                errors.append(str(e))

        return parsed_items, errors

    def _split_assignments(self, input_string: str) -> List[str]:
        """Split assignments respecting parentheses."""
        assignments = []
        current: List[str] = []
        paren_count = 0

        for char in input_string:
            if char == "," and paren_count == 0:
                if current:
                    assignments.append("".join(current).strip())
                    current = []
            else:
                if char == "(":
                    paren_count += 1
                elif char == ")":
                    paren_count -= 1
                current.append(char)

        if current:
            assignments.append("".join(current).strip())

        return [a for a in assignments if a]

    def _parse_assignment(self, assignment: str, parse_type: str) -> Tuple[Any, str]:
        """Parse single assignment into name and value parts."""
        if "=" not in assignment:
            raise ValueError(f"Invalid format: '{assignment}'. Expected 'name=value'")

        if parse_type == "correlation":
            return self._parse_correlation_assignment(assignment)

        name, value = assignment.split("=", 1)
        return name.strip(), value.strip()

    def _parse_correlation_assignment(self, assignment: str) -> Tuple[Tuple[str, str], str]:
        """Parse correlation assignment like 'corr(x,w)=0.5'."""
        left, right = assignment.split("=", 1)

        pattern = r"(?:corr?)?(?:\s*\(\s*([^,]+?)\s*,\s*([^,]+?)\s*\))"
        match = re.match(pattern, left.strip())

        if not match:
            raise ValueError(f"Invalid correlation format: '{left}'. Expected 'corr(var1, var2)' or '(var1, var2)'")

        var1, var2 = match.groups()
        return (var1.strip(), var2.strip()), right.strip()

    def _validate_correlation_pair(self, pair: Tuple[str, str], available_vars: List[str]) -> Tuple[bool, Optional[str]]:
        """Validate correlation variable pair."""
        var1, var2 = pair

        if var1 not in available_vars:
            return False, f"Variable '{var1}' not found"
        if var2 not in available_vars:
            return False, f"Variable '{var2}' not found"
        if var1 == var2:
            return False, f"Cannot correlate variable with itself: '{var1}'"

        return True, None

    def _parse_variable_type_value(self, value: str) -> Tuple[Dict[str, Any], Optional[str]]:
        """Parse a distribution type, optionally with a binary proportion."""
        supported_types = [
            "normal",
            "binary",
            "right_skewed",
            "left_skewed",
            "high_kurtosis",
            "uniform",
        ]

        if value.startswith("(") and value.endswith(")"):
            # Tuple format: (binary, proportion)
            parts = [p.strip() for p in value[1:-1].split(",")]
            if len(parts) != 2:
                return {}, "Invalid tuple format. Expected '(binary,proportion)'"

            var_type = parts[0]
            if var_type not in supported_types:
                return {}, f"Unsupported type '{var_type}'"
            if var_type != "binary":
                return {}, "Tuple format only supported for binary variables"

            try:
                proportion = float(parts[1])
            except ValueError:
                return {}, f"Invalid proportion value '{parts[1]}'"
            if not 0 < proportion < 1:
                return {}, "Proportion must be between 0 and 1 (exclusive)"
            return {"type": var_type, "proportion": proportion}, None

        if value not in supported_types:
            return {}, f"Unsupported type '{value}'. Valid: {', '.join(supported_types)}"

        result: Dict[str, Any] = {"type": value}
        if value == "binary":
            result["proportion"] = 0.5
        return result, None

    def _parse_correlation_value(self, value: str) -> Tuple[float, Optional[str]]:
        """Parse correlation value."""
        try:
            corr = float(value)
            if not -1 <= corr <= 1:
                return 0.0, "Correlation must be between -1 and 1"
            return corr, None
        except ValueError:
            return 0.0, f"Invalid correlation value '{value}'"

    def _parse_effect_value(self, value: str) -> Tuple[float, Optional[str]]:
        """Parse effect size value."""
        try:
            return float(value), None
        except ValueError:
            return 0.0, f"Invalid effect size '{value}'. Must be a number"

    def _parse_residual_value(self, value: str) -> Tuple[float, Optional[str]]:
        """Parse a residual variance (strictly positive)."""
        try:
            variance = float(value)
        except ValueError:
            return 0.0, f"Invalid residual variance '{value}'. Must be a number"
        if variance <= 0:
            return 0.0, "Residual variance must be positive"
        return variance, None


_parser = _AssignmentParser()


def _split_statements(syntax: str) -> List[str]:
    """Split model syntax into statements, dropping comments and blank lines."""
    statements = []
    for raw_line in syntax.splitlines():
        line = raw_line.split("#", 1)[0]
        for part in line.split(";"):
            part = part.strip()
            if part:
                statements.append(part)
    return statements


def _parse_term(term: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Parse one right-hand-side term such as ``a1*x``, ``0.2*x`` or ``x:w``.

    Returns:
        Tuple of ``(term_dict, error)``. ``term_dict`` has keys
        ``"predictor"``, ``"components"``, ``"label"`` and ``"fixed"``.
    """
    term = term.replace(" ", "")
    if not term:
        return None, "Empty term"

    label = None
    fixed = None
    if "*" in term:
        modifier, predictor = term.split("*", 1)
        if "*" in predictor:
            return None, f"Term '{term}' has more than one modifier"
        if _NUMBER_RE.match(modifier):
            fixed = float(modifier)
        elif _IDENT_RE.match(modifier):
            label = modifier
        else:
            return None, f"Invalid modifier '{modifier}' in term '{term}'"
    else:
        predictor = term

    components = predictor.split(":")
    for comp in components:
        if not _IDENT_RE.match(comp):
            return None, f"Invalid variable name '{comp}' in term '{term}'"
    if len(set(components)) != len(components):
        return None, f"Variable repeated within product term '{predictor}'"

    return {"predictor": predictor, "components": components, "label": label, "fixed": fixed}, None


def _parse_model_syntax(syntax: str) -> Dict[str, Any]:
    """Parse lavaan-style path model syntax.

    Supported statements (newline- or ``;``-separated, ``#`` comments):

    - ``outcome ~ term + term``: regression. A term is ``var``,
      ``var1:var2`` (product), ``label*var`` (free, labelled) or
      ``0.2*var`` (fixed at 0.2).
    - ``name := expression``: defined effect over labels.

    Several regression lines for the same outcome are merged.

    Args:
        syntax: Model syntax string.

    Returns:
        Dict with ``"regressions"`` (ordered mapping outcome -> list of term
        dicts) and ``"definitions"`` (ordered mapping name -> expression).

    Raises:
        ValueError: Listing every problem found.
    """
    if not isinstance(syntax, str) or not syntax.strip():
        raise ValueError("Model syntax cannot be empty. Expected e.g. 'm ~ a*x\\ny ~ b*m + x'")

    regressions: Dict[str, List[Dict[str, Any]]] = {}
    definitions: Dict[str, str] = {}
    errors: List[str] = []

    for statement in _split_statements(syntax):
        if ":=" in statement:
            name, expression = statement.split(":=", 1)
            name, expression = name.strip(), expression.strip()
            if not _IDENT_RE.match(name):
                errors.append(f"Invalid defined effect name '{name}'")
                continue
            if name in definitions:
                errors.append(f"Defined effect '{name}' declared twice")
                continue
            if not expression:
                errors.append(f"Defined effect '{name}' has no expression")
                continue
            definitions[name] = expression

        elif "~~" in statement or "=~" in statement:
            errors.append(f"Unsupported statement '{statement}'. Only '~' regressions and ':=' definitions are allowed")

        elif "~" in statement:
            lhs, rhs = statement.split("~", 1)
            outcome = lhs.strip()
            if not _IDENT_RE.match(outcome):
                errors.append(f"Invalid outcome name '{outcome}'")
                continue
            if not rhs.strip():
                errors.append(f"Regression for '{outcome}' has no predictors")
                continue

            terms = regressions.setdefault(outcome, [])
            for raw_term in rhs.split("+"):
                term, error = _parse_term(raw_term)
                if term is None:
                    errors.append(f"{outcome}: {error}")
                    continue
                if outcome in term["components"]:
                    errors.append(f"{outcome}: variable cannot predict itself")
                    continue
                # x:w and w:x are the same product
                if any(sorted(t["components"]) == sorted(term["components"]) for t in terms):
                    errors.append(f"{outcome}: predictor '{term['predictor']}' listed twice")
                    continue
                terms.append(term)

        else:
            errors.append(f"Cannot parse statement '{statement}'")

    if not regressions and not errors:
        errors.append("Model has no regressions")

    if errors:
        raise ValueError("Invalid model syntax:\n" + "\n".join(f"- {e}" for e in errors))

    return {"regressions": regressions, "definitions": definitions}
