"""
Validation Pydantic Models

Result of the server-side answer validation pass.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Union


class ValidationResult(BaseModel):
    """
    Outcome of validating a ModelResponse.

    Example:
    {
        "is_valid": false,
        "server_computed_value": 5.0,
        "confidence": 0.665,
        "errors": ["Pythagorean check: expected 5, found 6"],
        "recovered": false
    }
    """
    is_valid: bool = Field(description="False when any targeted check found a mismatch")
    server_computed_value: Optional[Union[float, str]] = Field(
        default=None,
        description="Value computed by a template check, if one applied"
    )
    confidence: float = Field(description="Adjusted confidence, always within [0.1, 1.0]")
    errors: List[str] = Field(default_factory=list)
    recovered: bool = Field(
        default=False,
        description="True when an unexpected error interrupted the pass and was absorbed"
    )
