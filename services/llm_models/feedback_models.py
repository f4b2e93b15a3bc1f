"""
Feedback Pydantic Models

Request payload for submitting feedback on a solution.
"""

from pydantic import BaseModel, Field
from typing import Optional


class FeedbackCreate(BaseModel):
    """
    Example:
    {
        "solution_id": "0b6c2c1e-...",
        "rating": 5,
        "comment": "Çok anlaşılır"
    }
    """
    solution_id: str = Field(min_length=1)
    user_id: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=2000)
