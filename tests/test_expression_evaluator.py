"""
Unit tests for the arithmetic-only expression evaluator.
"""

import sys
import os
import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.expression_evaluator import ExpressionError, evaluate_expression


class TestSupportedArithmetic:

    @pytest.mark.parametrize('expression,expected', [
        ('2+2', 4.0),
        ('7 - 10', -3.0),
        ('6 * 7', 42.0),
        ('(10)/(4)', 2.5),
        ('2^3', 8.0),
        ('2**3', 8.0),
        ('2^3^2', 512.0),
        ('-3 + 5', 2.0),
        ('+4', 4.0),
        ('(1 + 2) * 3', 9.0),
        ('0.5 * 4', 2.0),
        ('sqrt(16)', 4.0),
        ('sqrt(3^2+4^2)', 5.0),
    ])
    def test_evaluates(self, expression, expected):
        assert evaluate_expression(expression) == pytest.approx(expected)

    def test_returns_float(self):
        assert isinstance(evaluate_expression('2+2'), float)


class TestRejectedInput:

    @pytest.mark.parametrize('expression', [
        '',
        '   ',
        'pi',
        'x + 1',
        "__import__('os')",
        'abs(2)',
        'sqrt(1, 2)',
        '1,2',
        '2(3)',
        '2 3',
        '(1 + 2',
        'True + 1',
        "'a' * 3",
        '1 % 2',
    ])
    def test_rejected(self, expression):
        with pytest.raises(ExpressionError):
            evaluate_expression(expression)

    def test_division_by_zero(self):
        with pytest.raises(ExpressionError, match='Division by zero'):
            evaluate_expression('1/0')

    def test_negative_sqrt(self):
        with pytest.raises(ExpressionError):
            evaluate_expression('sqrt(-1)')

    def test_huge_exponent(self):
        with pytest.raises(ExpressionError, match='Exponent too large'):
            evaluate_expression('10^10000')

    def test_overflow(self):
        with pytest.raises(ExpressionError):
            evaluate_expression('10.5^999')

    def test_complex_power(self):
        with pytest.raises(ExpressionError):
            evaluate_expression('(-8)^(1/3)')

    def test_is_value_error(self):
        assert issubclass(ExpressionError, ValueError)


class TestOversizedInput:
    """Inputs that would exhaust float range or the recursion limit"""

    def test_huge_integer_literal(self):
        with pytest.raises(ExpressionError):
            evaluate_expression('1' + '0' * 400)

    def test_long_addition_chain(self):
        with pytest.raises(ExpressionError):
            evaluate_expression('+'.join(['1'] * 20000))

    def test_deep_unary_minus(self):
        with pytest.raises(ExpressionError):
            evaluate_expression('-' * 5000 + '1')
