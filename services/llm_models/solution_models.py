"""
Solution Pydantic Models

Structured output models for the step-by-step solution returned by the LLM.
Field aliases match the JSON keys the model is prompted with (step, text, latex);
the Python attribute names are accepted as well.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Optional


class SolutionStep(BaseModel):
    """
    One numbered step of a worked solution.

    Example:
    {
        "step": 1,
        "text": "Pisagor teoremini yazalım",
        "latex": "c^2 = 3^2 + 4^2",
        "svg_overlay_id": 1
    }
    """
    model_config = ConfigDict(populate_by_name=True)

    step_number: int = Field(alias="step", description="1-based step number")
    explanation: str = Field(alias="text", description="Explanation of the step in simple language")
    formula: Optional[str] = Field(
        default=None,
        alias="latex",
        description="LaTeX formula for this step (optional)"
    )
    svg_overlay_id: Optional[int] = Field(
        default=None,
        description="Id of the diagram element highlighted by this step (optional)"
    )


class PlotData(BaseModel):
    """Sample points for a function plot"""
    x: List[float]
    y: List[float]


class ModelResponse(BaseModel):
    """
    Complete solution returned by the LLM.

    Example:
    {
        "summary": "3 ve 4 kenarlı dik üçgenin hipotenüsü",
        "steps": [{"step": 1, "text": "...", "latex": "c = \\sqrt{3^2 + 4^2}"}],
        "latex": "c^2 = a^2 + b^2",
        "final_answer": "c = 5",
        "hints": ["Pisagor teoremini hatırla"],
        "confidence": 0.95
    }
    """
    summary: str = Field(description="One sentence summary of the question")
    steps: List[SolutionStep] = Field(description="Ordered solution steps")
    latex: str = Field(default="", description="Main formula in LaTeX")
    diagram_svg: Optional[str] = Field(default=None, description="SVG drawing for geometry questions")
    diagram_commands: Optional[List[Any]] = Field(default=None)
    plot_data: Optional[PlotData] = Field(default=None)
    final_answer: str = Field(description="Final answer, including the numeric result when there is one")
    hints: List[str] = Field(default_factory=list, description="Short hints for the student")
    confidence: float = Field(description="Model's own confidence (0.0-1.0)")

    def to_json_dict(self) -> dict:
        """Serialize using the wire field names"""
        return self.model_dump(by_alias=True, mode="json")
