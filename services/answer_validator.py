"""
Answer Validator - Re-checks the arithmetic of an LLM solution server-side.

The validator is advisory: it never raises and never blocks storing a solution.
Every failed check lowers the confidence score multiplicatively and flips
is_valid to False; the final confidence is clamped to [0.1, 1.0].

Checks, in order:
1. Extract the first number from final_answer (no number -> nothing to check)
2. Evaluate simple two-sided numeric equalities found in step formulas
3. Keyword-triggered template checks on the summary (right triangle,
   quadratic equation, circle area)

The keyword templates match Turkish vocabulary (üçgen, denklem, alan, daire)
by plain substring presence.
"""

import logging
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from services.expression_evaluator import ExpressionError, evaluate_expression
from services.llm_models.solution_models import ModelResponse
from services.llm_models.validation_models import ValidationResult

# Configure logging
logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0

STEP_TOLERANCE = 0.001
STEP_PENALTY = 0.8
UNEXPECTED_ERROR_PENALTY = 0.9

NUMBER_PATTERN = re.compile(r'-?\d+\.?\d*')

# A formula is a candidate equality only if it is made of these characters
CANDIDATE_PATTERN = re.compile(r'[\d\s+\-*/().,^=a-z]+', re.IGNORECASE)

# Each side must additionally be plain arithmetic (letters limited to sqrt)
SIDE_PATTERN = re.compile(r'[\d\s+\-*/().,^sqrt]+')

RADIUS_PATTERN = re.compile(r'(\d+)\s*cm')


def format_number(value: float) -> str:
    """Render 4.0 as '4' and keep the shortest repr otherwise"""
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value) if isinstance(value, float) else str(value)


def clamp_confidence(confidence: float) -> float:
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, confidence))


def extract_numeric_answer(final_answer: str) -> Optional[float]:
    """
    Extract the first decimal number from the final answer text.

    Examples:
        >>> extract_numeric_answer("c = 5 cm")
        5.0
        >>> extract_numeric_answer("x = -2.5 veya x = 3")
        -2.5
        >>> extract_numeric_answer("belirsiz") is None
        True
    """
    if not final_answer:
        return None
    match = NUMBER_PATTERN.search(final_answer)
    if not match:
        return None
    return float(match.group(0))


def normalize_formula(formula: str) -> str:
    """
    Rewrite the few LaTeX constructs the evaluator understands.

    \\sqrt{a} -> sqrt(a), \\frac{a}{b} -> (a)/(b), braces dropped,
    π and \\pi -> pi. Anything else passes through unchanged.
    """
    expression = re.sub(r'\\sqrt\{([^}]+)\}', r'sqrt(\1)', formula)
    expression = re.sub(r'\\frac\{([^}]+)\}\{([^}]+)\}', r'(\1)/(\2)', expression)
    expression = re.sub(r'[{}]', '', expression)
    expression = expression.replace('π', 'pi')
    expression = expression.replace('\\pi', 'pi')
    return expression


def check_step_formula(formula: str) -> Optional[str]:
    """
    Check a step formula of the form "<expr> = <expr>".

    Returns:
        An error message when both sides evaluate and disagree by more than
        STEP_TOLERANCE, otherwise None. Formulas that are not simple numeric
        equalities, or that fail to evaluate, are skipped (None).
    """
    expression = normalize_formula(formula)

    if not CANDIDATE_PATTERN.fullmatch(expression) or '=' not in expression:
        return None

    parts = expression.split('=')
    if len(parts) != 2:
        return None

    left_side = parts[0].strip()
    right_side = parts[1].strip()

    if not SIDE_PATTERN.fullmatch(left_side) or not SIDE_PATTERN.fullmatch(right_side):
        return None

    try:
        left_result = evaluate_expression(left_side)
        right_result = evaluate_expression(right_side)
    except ExpressionError as e:
        logger.debug(f"Skipping step formula '{formula}': {e}")
        return None

    if abs(left_result - right_result) > STEP_TOLERANCE:
        return f"step validation error: {format_number(left_result)} ≠ {format_number(right_result)}"

    return None


@dataclass(frozen=True)
class TemplateOutcome:
    """What a template check contributes to the result"""
    computed_value: Optional[Union[float, str]] = None
    error: Optional[str] = None
    penalty: float = 1.0


class TemplateCheck(ABC):
    """A keyword-triggered expected-value check"""

    name = "template"

    @abstractmethod
    def matches(self, summary: str) -> bool:
        pass

    @abstractmethod
    def check(self, response: ModelResponse, model_result: float) -> Optional[TemplateOutcome]:
        """Return None when the template has nothing to contribute"""
        pass


class PythagoreanTemplate(TemplateCheck):
    """Right triangle with legs 3 and 4"""

    name = "pythagorean"
    tolerance = 0.001
    penalty = 0.7

    def matches(self, summary: str) -> bool:
        return 'üçgen' in summary and '3' in summary and '4' in summary

    def check(self, response: ModelResponse, model_result: float) -> Optional[TemplateOutcome]:
        expected = math.sqrt(3 ** 2 + 4 ** 2)

        if abs(model_result - expected) > self.tolerance:
            return TemplateOutcome(
                computed_value=expected,
                error=(
                    f"Pythagorean check: expected {format_number(expected)}, "
                    f"found {format_number(model_result)}"
                ),
                penalty=self.penalty
            )
        return TemplateOutcome(computed_value=expected)


class QuadraticTemplate(TemplateCheck):
    """
    Quadratic equation marker.

    Records the model's result as the server value without checking it.
    """

    name = "quadratic"

    def matches(self, summary: str) -> bool:
        return 'denklem' in summary and ('x²' in summary or 'x^2' in summary)

    def check(self, response: ModelResponse, model_result: float) -> Optional[TemplateOutcome]:
        return TemplateOutcome(computed_value=model_result)


class CircleAreaTemplate(TemplateCheck):
    """Circle area from a radius given in cm"""

    name = "circle_area"
    tolerance = 1.0
    penalty = 0.8

    def matches(self, summary: str) -> bool:
        return 'alan' in summary and 'daire' in summary

    def check(self, response: ModelResponse, model_result: float) -> Optional[TemplateOutcome]:
        radius_match = RADIUS_PATTERN.search(response.summary)
        if not radius_match:
            return None

        radius = float(radius_match.group(1))
        expected = math.pi * radius * radius

        if abs(model_result - expected) > self.tolerance:
            return TemplateOutcome(
                computed_value=expected,
                error=f"circle area check: expected {expected:.2f}, found {format_number(model_result)}",
                penalty=self.penalty
            )
        return TemplateOutcome(computed_value=expected)


DEFAULT_TEMPLATES = (PythagoreanTemplate(), QuadraticTemplate(), CircleAreaTemplate())


class AnswerValidator:
    """Validates model responses against step equalities and template checks"""

    def __init__(self, templates: Optional[Sequence[TemplateCheck]] = None):
        self.templates = tuple(templates) if templates is not None else DEFAULT_TEMPLATES

    def validate(self, response: ModelResponse) -> ValidationResult:
        """
        Validate a model response.

        Never raises: an unexpected error is recorded as a generic error,
        costs a small confidence penalty, and marks the result as recovered.

        Args:
            response: The structured solution returned by the LLM

        Returns:
            ValidationResult with is_valid, server_computed_value,
            clamped confidence and error messages
        """
        errors: List[str] = []
        is_valid = True
        server_value = None
        recovered = False
        confidence = response.confidence

        try:
            model_result = extract_numeric_answer(response.final_answer)

            if model_result is not None:
                for step in response.steps:
                    if not step.formula:
                        continue
                    error = check_step_formula(step.formula)
                    if error:
                        logger.debug(f"Step {step.step_number} failed validation: {error}")
                        errors.append(error)
                        is_valid = False
                        confidence *= STEP_PENALTY

                for template in self.templates:
                    if not template.matches(response.summary):
                        continue
                    outcome = template.check(response, model_result)
                    if outcome is None:
                        continue
                    if outcome.computed_value is not None:
                        server_value = outcome.computed_value
                    if outcome.error:
                        logger.debug(f"Template '{template.name}' failed: {outcome.error}")
                        errors.append(outcome.error)
                        is_valid = False
                        confidence *= outcome.penalty

        except Exception as e:
            logger.warning(f"Unexpected error while validating solution: {e}", exc_info=True)
            errors.append(f"validation error: {e}")
            confidence *= UNEXPECTED_ERROR_PENALTY
            recovered = True

        return ValidationResult(
            is_valid=is_valid,
            server_computed_value=server_value,
            confidence=clamp_confidence(confidence),
            errors=errors,
            recovered=recovered
        )


_default_validator = AnswerValidator()


def validate_solution(response: ModelResponse) -> ValidationResult:
    """Validate a model response with the default templates"""
    return _default_validator.validate(response)
