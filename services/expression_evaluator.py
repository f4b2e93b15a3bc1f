"""
Arithmetic-only expression evaluator.

Evaluates numeric expressions taken from LLM-generated formulas by walking the
Python AST of the expression. Only number literals, + - * / ** (^ is accepted
as exponentiation), unary signs, parentheses and sqrt() are supported.
Nothing is ever passed to eval().
"""

import ast
import math
from numbers import Number

# Keeps 10 ** 10 ** 10 style inputs from running away
MAX_EXPONENT = 1000


class ExpressionError(ValueError):
    """Raised when an expression is outside the supported arithmetic grammar"""


def evaluate_expression(expression: str) -> float:
    """
    Evaluate an arithmetic expression.

    Args:
        expression: e.g. "3^2 + 4^2", "sqrt(25)", "(10)/(4)"

    Returns:
        The numeric value as float

    Raises:
        ExpressionError: If the expression is malformed or uses anything
            beyond the supported grammar

    Examples:
        >>> evaluate_expression("2+2")
        4.0
        >>> evaluate_expression("sqrt(3^2+4^2)")
        5.0
    """
    if not expression or not expression.strip():
        raise ExpressionError("Empty expression")

    source = expression.strip().replace('^', '**')

    try:
        parsed = ast.parse(source, mode="eval")
    except SyntaxError as e:
        raise ExpressionError(f"Malformed expression '{expression}': {e.msg}")
    except (RecursionError, MemoryError, ValueError) as e:
        raise ExpressionError(f"Expression too large: {e}")

    try:
        return _eval(parsed.body)
    except ExpressionError:
        raise
    except (RecursionError, OverflowError, MemoryError, ValueError) as e:
        raise ExpressionError(f"Cannot evaluate '{expression}': {e}")


def _eval(node: ast.AST) -> float:
    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, Number):
            raise ExpressionError(f"Unsupported literal: {node.value!r}")
        if isinstance(node.value, complex):
            raise ExpressionError("Complex numbers are not supported")
        try:
            return float(node.value)
        except OverflowError:
            raise ExpressionError("Number too large")

    if isinstance(node, ast.UnaryOp):
        operand = _eval(node.operand)
        if isinstance(node.op, ast.UAdd):
            return operand
        if isinstance(node.op, ast.USub):
            return -operand
        raise ExpressionError(f"Unsupported unary operator: {type(node.op).__name__}")

    if isinstance(node, ast.BinOp):
        left = _eval(node.left)
        right = _eval(node.right)

        if isinstance(node.op, ast.Add):
            return left + right
        if isinstance(node.op, ast.Sub):
            return left - right
        if isinstance(node.op, ast.Mult):
            return left * right
        if isinstance(node.op, ast.Div):
            if right == 0:
                raise ExpressionError("Division by zero")
            return left / right
        if isinstance(node.op, ast.Pow):
            if abs(right) > MAX_EXPONENT:
                raise ExpressionError(f"Exponent too large: {right}")
            try:
                result = left ** right
            except (OverflowError, ZeroDivisionError) as e:
                raise ExpressionError(f"Cannot evaluate power: {e}")
            if isinstance(result, complex):
                raise ExpressionError("Complex result")
            return result
        raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}")

    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id != 'sqrt':
            raise ExpressionError("Only sqrt() calls are supported")
        if len(node.args) != 1 or node.keywords:
            raise ExpressionError("sqrt() takes exactly one argument")
        value = _eval(node.args[0])
        if value < 0:
            raise ExpressionError("Square root of a negative number")
        return math.sqrt(value)

    raise ExpressionError(f"Unsupported syntax: {type(node).__name__}")
