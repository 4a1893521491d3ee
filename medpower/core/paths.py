"""
Path and parameter registry for MedPower.

This module provides unified management of observed variables, regression
paths, parameter labels and defined effects. It is the single source of
truth for everything the simulation needs to know about the model.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass
class ObservedVar:
    """A single observed variable in the path model.

    Attributes:
        name: Variable name as it appears in the model syntax.
        role: ``"exogenous"`` (never an outcome) or ``"endogenous"``.
        var_type: Distribution used to generate an exogenous variable
            (``"normal"``, ``"binary"``, ``"right_skewed"``,
            ``"left_skewed"``, ``"high_kurtosis"``, ``"uniform"``).
        proportion: Probability of success for binary variables.
        residual_variance: Disturbance variance (endogenous only).
        column_index: Position in the simulated data matrix.
    """

    name: str
    role: str = "exogenous"
    var_type: str = "normal"
    proportion: float = 0.5
    residual_variance: float = 1.0
    column_index: Optional[int] = None


@dataclass
class Path:
    """A single regression path ``outcome ~ predictor``.

    Attributes:
        outcome: Endogenous variable receiving the path.
        predictor: Predictor as written (``"x"`` or ``"x:w"``).
        components: Variables multiplied to form the predictor.
        label: Free-parameter label (``None`` for fixed paths).
        fixed: Fixed value, or ``None`` when the path is estimated.
        population_value: True value used to simulate data.
    """

    outcome: str
    predictor: str
    components: List[str] = field(default_factory=list)
    label: Optional[str] = None
    fixed: Optional[float] = None
    population_value: float = 0.0

    @property
    def name(self) -> str:
        """Path name in ``outcome~predictor`` form."""
        return f"{self.outcome}~{self.predictor}"

    @property
    def is_free(self) -> bool:
        """Whether the path is estimated."""
        return self.fixed is None


@dataclass
class DefinedEffect:
    """A named function of parameter labels (``ind := a*b``).

    Attributes:
        name: Effect name.
        expression: Arithmetic expression over labels and earlier effects.
        names: Names referenced by the expression.
    """

    name: str
    expression: str
    names: List[str] = field(default_factory=list)


class PathRegistry:
    """Single source of truth for the path model.

    Parses lavaan-style syntax and maintains:

    - Observed variables, split into exogenous and endogenous.
    - Endogenous variables in a generation order where every variable comes
      after the endogenous variables it depends on.
    - Regression paths with labels, fixed values and population values.
    - Defined effects (conditional indirect effects, index of moderated
      mediation, ...).
    - The correlation matrix among exogenous variables.

    Column ordering in the simulated data matrix is:
    exogenous variables (syntax order) | endogenous variables (generation
    order).
    """

    def __init__(self, model_syntax: str):
        """Parse model syntax and initialise the registry.

        Args:
            model_syntax: Path model, e.g.
                ``"m ~ a1*x + a2*w + a3*x:w\\ny ~ cp*x + b1*m\\nimm := a3*b1"``.

        Raises:
            ValueError: If the syntax is invalid, the model is not
                recursive, or a defined effect references an unknown name.
        """
        from ..utils.expressions import expression_names
        from ..utils.parsers import _parse_model_syntax

        self.model_syntax = model_syntax.strip() if isinstance(model_syntax, str) else model_syntax
        parsed = _parse_model_syntax(model_syntax)
        regressions = parsed["regressions"]

        self._variables: Dict[str, ObservedVar] = {}
        self._paths: Dict[str, Path] = {}
        self._defined: Dict[str, DefinedEffect] = {}
        self._correlation_matrix: Optional[np.ndarray] = None
        self._standardized = False

        # Variables in syntax order; outcomes are endogenous
        seen: List[str] = []
        for outcome, terms in regressions.items():
            if outcome not in seen:
                seen.append(outcome)
            for term in terms:
                for comp in term["components"]:
                    if comp not in seen:
                        seen.append(comp)

        exogenous = [v for v in seen if v not in regressions]
        if not exogenous:
            raise ValueError("Model has no exogenous variables")

        endogenous = self._generation_order(regressions)

        for name in exogenous:
            self._variables[name] = ObservedVar(name=name, role="exogenous")
        for name in endogenous:
            self._variables[name] = ObservedVar(name=name, role="endogenous", var_type="normal")
        for idx, name in enumerate(exogenous + endogenous):
            self._variables[name].column_index = idx

        # Paths, in generation order of their outcomes
        for outcome in endogenous:
            for term in regressions[outcome]:
                path = Path(
                    outcome=outcome,
                    predictor=term["predictor"],
                    components=list(term["components"]),
                    label=term["label"],
                    fixed=term["fixed"],
                )
                if path.fixed is not None:
                    path.population_value = path.fixed
                elif path.label is None:
                    path.label = path.name
                self._paths[path.name] = path

        # Defined effects may only reference labels and earlier effects
        labels = self.parameter_names
        errors = []
        for name, expression in parsed["definitions"].items():
            if name in labels:
                errors.append(f"Defined effect '{name}' clashes with a parameter label")
                continue
            try:
                names = expression_names(expression)
            except ValueError as e:
                errors.append(str(e))
                continue
            unknown = [n for n in names if n not in labels and n not in self._defined]
            if unknown:
                errors.append(f"'{name}' references unknown label(s): {', '.join(unknown)}")
                continue
            self._defined[name] = DefinedEffect(name=name, expression=expression, names=names)

        if errors:
            raise ValueError("Invalid defined effects:\n" + "\n".join(f"- {e}" for e in errors))

    @staticmethod
    def _generation_order(regressions: Dict[str, List[Dict[str, Any]]]) -> List[str]:
        """Order outcomes so each comes after the outcomes it depends on."""
        depends = {
            outcome: {comp for term in terms for comp in term["components"] if comp in regressions}
            for outcome, terms in regressions.items()
        }
        order: List[str] = []
        remaining = list(regressions)
        while remaining:
            ready = [o for o in remaining if depends[o].issubset(order)]
            if not ready:
                raise ValueError(f"Model is not recursive: feedback loop among {', '.join(remaining)}")
            for outcome in ready:
                order.append(outcome)
                remaining.remove(outcome)
        return order

    # =========================================================================
    # Names
    # =========================================================================

    @property
    def variable_names(self) -> List[str]:
        """All observed variables in column order."""
        return list(self._variables)

    @property
    def exogenous_names(self) -> List[str]:
        """Exogenous variables in column order."""
        return [v.name for v in self._variables.values() if v.role == "exogenous"]

    @property
    def endogenous_names(self) -> List[str]:
        """Endogenous variables in generation order."""
        return [v.name for v in self._variables.values() if v.role == "endogenous"]

    @property
    def path_names(self) -> List[str]:
        """All paths in ``outcome~predictor`` form."""
        return list(self._paths)

    @property
    def parameter_names(self) -> List[str]:
        """Unique free-parameter labels in first-seen order."""
        labels: List[str] = []
        for path in self._paths.values():
            if path.is_free and path.label not in labels:
                labels.append(path.label)  # type: ignore[arg-type]
        return labels

    @property
    def free_labels(self) -> Dict[str, List[str]]:
        """Each free label with the paths that carry it."""
        return {label: [p.name for p in self.paths_with_label(label)] for label in self.parameter_names}

    @property
    def defined_names(self) -> List[str]:
        """Defined effects in declaration order."""
        return list(self._defined)

    @property
    def target_names(self) -> List[str]:
        """Everything that can be tested: labels, then defined effects."""
        return self.parameter_names + self.defined_names

    @property
    def settable_names(self) -> List[str]:
        """Names accepted by ``set_effect_size``: labels and free path names."""
        names = self.parameter_names
        names += [p.name for p in self._paths.values() if p.is_free and p.name not in names]
        return names

    @property
    def definitions(self) -> Dict[str, str]:
        """Ordered mapping of defined effect name to expression."""
        return {name: d.expression for name, d in self._defined.items()}

    @property
    def standardized(self) -> bool:
        """Whether residual variances are derived to give unit variances."""
        return self._standardized

    # =========================================================================
    # Accessors
    # =========================================================================

    def get_variable(self, name: str) -> Optional[ObservedVar]:
        return self._variables.get(name)

    def get_path(self, name: str) -> Optional[Path]:
        return self._paths.get(name)

    def paths_for(self, outcome: str) -> List[Path]:
        """Paths pointing at *outcome*, in syntax order."""
        return [p for p in self._paths.values() if p.outcome == outcome]

    def paths_with_label(self, label: str) -> List[Path]:
        return [p for p in self._paths.values() if p.label == label]

    # =========================================================================
    # Mutators
    # =========================================================================

    def set_effect_size(self, name: str, value: float) -> None:
        """Set the population value of a label (all its paths) or a path."""
        if name in self._paths:
            path = self._paths[name]
            if not path.is_free:
                raise ValueError(f"Path '{name}' is fixed at {path.fixed} and has no free population value")
            name = path.label  # type: ignore[assignment]

        paths = self.paths_with_label(name)
        if not paths:
            raise ValueError(f"Parameter '{name}' not found")
        for path in paths:
            path.population_value = float(value)

    def set_variable_type(self, name: str, var_type: str, proportion: Optional[float] = None) -> None:
        """Set the distribution of an exogenous variable."""
        var = self._variables.get(name)
        if var is None or var.role != "exogenous":
            raise ValueError(f"'{name}' is not an exogenous variable")
        var.var_type = var_type
        if proportion is not None:
            var.proportion = proportion

    def set_residual_variance(self, name: str, value: float) -> None:
        """Set the disturbance variance of an endogenous variable."""
        var = self._variables.get(name)
        if var is None or var.role != "endogenous":
            raise ValueError(f"'{name}' is not an endogenous variable")
        if value <= 0:
            raise ValueError("Residual variance must be positive")
        var.residual_variance = float(value)

    def set_standardized(self, standardized: bool) -> None:
        self._standardized = bool(standardized)

    def get_correlation_matrix(self) -> Optional[np.ndarray]:
        return self._correlation_matrix

    def set_correlation_matrix(self, matrix: np.ndarray) -> None:
        self._correlation_matrix = np.array(matrix, dtype=float)

    def set_correlation(self, var1: str, var2: str, value: float) -> None:
        """Set a single correlation between two exogenous variables."""
        exogenous = self.exogenous_names
        if var1 not in exogenous or var2 not in exogenous:
            raise ValueError(f"Correlations are only defined between exogenous variables: {', '.join(exogenous)}")

        if self._correlation_matrix is None:
            self._correlation_matrix = np.eye(len(exogenous))

        i, j = exogenous.index(var1), exogenous.index(var2)
        self._correlation_matrix[i, j] = value
        self._correlation_matrix[j, i] = value

    # =========================================================================
    # Population values
    # =========================================================================

    def population_values(self) -> Dict[str, float]:
        """Population value of every free label."""
        values = {}
        for label in self.parameter_names:
            values[label] = self.paths_with_label(label)[0].population_value
        return values

    def population_defined(self) -> Dict[str, float]:
        """Population value of every defined effect."""
        from ..utils.expressions import evaluate_defined_effects

        return {k: float(v) for k, v in evaluate_defined_effects(self.definitions, self.population_values()).items()}

    def population_targets(self) -> Dict[str, float]:
        """Population value of every testable target."""
        out = self.population_values()
        out.update(self.population_defined())
        return out

    def get_var_types(self) -> np.ndarray:
        """Distribution codes for exogenous variables (see data generation)."""
        codes = {
            "normal": 0,
            "binary": 1,
            "right_skewed": 2,
            "left_skewed": 3,
            "high_kurtosis": 4,
            "uniform": 5,
        }
        return np.array([codes[self._variables[n].var_type] for n in self.exogenous_names], dtype=np.int64)

    def get_var_params(self) -> np.ndarray:
        """Distribution parameter per exogenous variable (binary proportion)."""
        return np.array([self._variables[n].proportion for n in self.exogenous_names], dtype=float)

    def get_residual_variances(self) -> np.ndarray:
        """Disturbance variances in generation order."""
        return np.array([self._variables[n].residual_variance for n in self.endogenous_names], dtype=float)

    def __repr__(self):
        return f"PathRegistry(exogenous={self.exogenous_names}, endogenous={self.endogenous_names})"
