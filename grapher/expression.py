import ast
import logging
import re

import numpy as np
from asteval import Interpreter, get_ast_names

from grapher.errors import EvaluationError, ParseError

logger = logging.getLogger(__name__)

VARIABLES = ("x", "y")

CONSTANTS = {
    "e": np.e,
    "pi": np.pi,
    "inf": np.inf,
}

# numpy ufuncs keep evaluation vectorized over the whole sampling grid
FUNCTIONS = {
    "sin": np.sin, "cos": np.cos, "tan": np.tan,
    "asin": np.arcsin, "acos": np.arccos, "atan": np.arctan, "atan2": np.arctan2,
    "sinh": np.sinh, "cosh": np.cosh, "tanh": np.tanh,
    "asinh": np.arcsinh, "acosh": np.arccosh, "atanh": np.arctanh,
    "exp": np.exp, "log": np.log, "log2": np.log2, "log10": np.log10,
    "sqrt": np.sqrt, "cbrt": np.cbrt, "abs": np.abs,
    "floor": np.floor, "ceil": np.ceil, "round": np.round, "sign": np.sign,
    "min": np.minimum, "max": np.maximum, "pow": np.power, "hypot": np.hypot,
}

KNOWN_NAMES = frozenset(VARIABLES) | frozenset(CONSTANTS) | frozenset(FUNCTIONS)

# Arithmetic failures in plain Python scalars (e.g. "1/0") become NaN samples
_ARITHMETIC_ERRORS = (ArithmeticError,)

# A number directly followed by a variable, e.g. "2x" or "0.5 y"
_IMPLICIT_PRODUCT = re.compile(r'(?<![A-Za-z_\d.])(\d+\.\d*|\.\d+|\d+)\s*(?=[xy]\b)')


def preprocess_equation(equation):
    # calculator notation to Python: "^" powers, "2x" products
    processed = equation.strip()
    processed = processed.replace('^', '**')
    processed = _IMPLICIT_PRODUCT.sub(r'\1 * ', processed)
    return processed


def needs_elementwise(tree):
    """True when the expression branches on a truth value ("if", "and", "not", "0 < x < 1")."""
    for node in ast.walk(tree):
        if isinstance(node, (ast.IfExp, ast.BoolOp)):
            return True
        if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.Not):
            return True
        if isinstance(node, ast.Compare) and len(node.ops) > 1:
            return True
    return False


class CompiledExpression:
    # Owns its asteval interpreter, so separate graphs never share evaluation state

    def __init__(self, equation, source, interpreter, elementwise=False):
        self.equation = equation
        self.source = source
        self.elementwise = elementwise
        self._interpreter = interpreter

    def __repr__(self):
        return f"CompiledExpression({self.equation!r})"

    def evaluate(self, x, y):
        # division by zero, domain errors and overflow come back as NaN or +/-inf
        x_values = np.asarray(x, dtype=np.float64)
        y_values = np.asarray(y, dtype=np.float64)
        shape = np.broadcast_shapes(x_values.shape, y_values.shape)

        if shape == ():
            return float(self._evaluate_once(x_values, y_values))

        if self.elementwise:
            # Truth tests on whole arrays are ambiguous, so go sample by sample
            xs = np.broadcast_to(x_values, shape).ravel()
            ys = np.broadcast_to(y_values, shape).ravel()
            values = np.array([self._evaluate_once(xv, yv) for xv, yv in zip(xs, ys)], dtype=np.float64)
            return values.reshape(shape)

        values = np.broadcast_to(self._evaluate_once(x_values, y_values), shape)
        return np.array(values, dtype=np.float64)

    def _evaluate_once(self, x_values, y_values):
        symtable = self._interpreter.symtable
        symtable["x"] = x_values
        symtable["y"] = y_values

        with np.errstate(all='ignore'):
            result = self._interpreter.eval(self.source, show_errors=False)

        errors = self._interpreter.error
        if errors:
            failure = errors[0]
            if failure.exc is not None and issubclass(failure.exc, _ARITHMETIC_ERRORS):
                return np.float64(np.nan)
            raise EvaluationError(f"Evaluating z = {self.equation!r} failed: {failure.msg}")

        return _as_float_array(result, self.equation)


def _as_float_array(result, equation):
    if result is None:
        raise EvaluationError(f"Evaluating z = {equation!r} produced no value")

    values = np.asarray(result)

    # Python's complex powers ("(-1)**0.5") are undefined on the real plane
    if np.iscomplexobj(values):
        values = np.where(values.imag == 0, values.real, np.nan)

    try:
        return values.astype(np.float64)
    except OverflowError:
        # exact Python ints beyond float range, e.g. 10^400
        if values.ndim == 0:
            return np.float64(np.inf if result > 0 else -np.inf)
        return np.array([_clamp_to_float(v) for v in values.ravel()]).reshape(values.shape)
    except (TypeError, ValueError) as exc:
        raise EvaluationError(f"z = {equation!r} does not evaluate to a number: {result!r}") from exc


def _clamp_to_float(value):
    try:
        return float(value)
    except OverflowError:
        return np.inf if value > 0 else -np.inf


def _make_interpreter():
    interpreter = Interpreter()
    interpreter.symtable.update(CONSTANTS)
    interpreter.symtable.update(FUNCTIONS)
    interpreter.symtable["x"] = 0.0
    interpreter.symtable["y"] = 0.0
    return interpreter


def compile_expression(equation):
    """Compiles an equation in x and y, raising ParseError when it is not usable."""
    if not isinstance(equation, str) or not equation.strip():
        raise ParseError(equation, "equation is empty")

    source = preprocess_equation(equation)
    interpreter = _make_interpreter()

    try:
        tree = interpreter.parse(source)
    except Exception as exc:
        raise ParseError(equation, f"syntax error ({exc})") from exc

    if len(tree.body) != 1 or not isinstance(tree.body[0], ast.Expr):
        raise ParseError(equation, "expected a single expression")

    unknown = sorted(set(get_ast_names(tree)) - KNOWN_NAMES)
    if unknown:
        raise ParseError(equation, f"unknown symbol(s): {', '.join(unknown)}")

    elementwise = needs_elementwise(tree)
    logger.debug(f"Compiled equation z = {equation} as {source!r} (elementwise={elementwise})")
    return CompiledExpression(equation, source, interpreter, elementwise)
