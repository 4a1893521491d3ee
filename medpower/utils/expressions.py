"""
Arithmetic expressions for defined effects.

Defined effects (``ind := a*b``) are parsed with Python's ``ast`` module and
evaluated by walking the tree, so only numbers, labels, parentheses and the
operators ``+ - * / **`` are accepted. Evaluation works element-wise on
numpy arrays, which lets a single call cover every Monte Carlo draw.
"""

import ast
import operator
from typing import Any, Dict, List, Mapping

__all__ = []

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
}

_UNARY_OPS = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}


def _parse_expression(expression: str) -> ast.AST:
    """Parse *expression* and reject any node outside the arithmetic subset."""
    if not isinstance(expression, str) or not expression.strip():
        raise ValueError("Expression cannot be empty")

    # lavaan writes powers as ^
    source = expression.strip().replace("^", "**")
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError:
        raise ValueError(f"Invalid expression '{expression}'") from None

    for node in ast.walk(tree):
        if isinstance(node, (ast.Expression, ast.Name, ast.Load)):
            continue
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            continue
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            continue
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            continue
        if type(node) in _BINARY_OPS or type(node) in _UNARY_OPS:
            continue
        raise ValueError(f"Unsupported element '{type(node).__name__}' in expression '{expression}'")

    return tree


def expression_names(expression: str) -> List[str]:
    """Return the names referenced by *expression*, in first-seen order."""
    tree = _parse_expression(expression)
    nodes = sorted((n for n in ast.walk(tree) if isinstance(n, ast.Name)), key=lambda n: n.col_offset)
    names: List[str] = []
    for node in nodes:
        if node.id not in names:
            names.append(node.id)
    return names


def evaluate_expression(expression: str, values: Mapping[str, Any]) -> Any:
    """Evaluate *expression* with names looked up in *values*.

    Args:
        expression: Arithmetic expression, e.g. ``"(a1 + a3*1)*b1"``.
        values: Mapping of name to scalar or numpy array. Arrays broadcast,
            so passing one array of draws per label evaluates all draws at
            once.

    Returns:
        Scalar or array, following numpy broadcasting of the inputs.

    Raises:
        ValueError: If the expression is malformed or references a name
            missing from *values*.
    """
    tree = _parse_expression(expression)

    def _eval(node):
        if isinstance(node, ast.Expression):
            return _eval(node.body)
        if isinstance(node, ast.Constant):
            return float(node.value)
        if isinstance(node, ast.Name):
            if node.id not in values:
                raise ValueError(f"Unknown name '{node.id}' in expression '{expression}'")
            return values[node.id]
        if isinstance(node, ast.BinOp):
            return _BINARY_OPS[type(node.op)](_eval(node.left), _eval(node.right))
        if isinstance(node, ast.UnaryOp):
            return _UNARY_OPS[type(node.op)](_eval(node.operand))
        raise ValueError(f"Unsupported element '{type(node).__name__}' in expression '{expression}'")

    return _eval(tree)


def evaluate_defined_effects(definitions: Dict[str, str], values: Mapping[str, Any]) -> Dict[str, Any]:
    """Evaluate defined effects in order, letting later ones use earlier ones.

    Args:
        definitions: Ordered mapping of effect name to expression.
        values: Label values (scalars or arrays).

    Returns:
        Mapping of effect name to evaluated value.
    """
    scope = dict(values)
    out = {}
    for name, expression in definitions.items():
        out[name] = evaluate_expression(expression, scope)
        scope[name] = out[name]
    return out
