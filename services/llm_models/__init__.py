"""
LLM Pydantic Models

Structured models shared by the solver, the validator and the API:
- Solution models (SolutionStep, PlotData, ModelResponse)
- Validation models (ValidationResult)
- Feedback models (FeedbackCreate)
"""

from .solution_models import SolutionStep, PlotData, ModelResponse
from .validation_models import ValidationResult
from .feedback_models import FeedbackCreate

__all__ = [
    'SolutionStep',
    'PlotData',
    'ModelResponse',
    'ValidationResult',
    'FeedbackCreate'
]
