"""
Problem Solver Service - Asks the LLM for a step-by-step solution.

Builds the tutoring prompt for a question (text and/or photo), requests a
ModelResponse as structured output, and always returns a usable response:
- if the model's JSON cannot be decoded, a low-confidence placeholder
- if the provider call fails, an error placeholder explaining what happened

For geometry and math questions without a model-drawn diagram, a simple
template SVG is attached.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from services.llm_models.solution_models import ModelResponse, SolutionStep
from services.llm_provider_factory import (
    ImageAttachment,
    LLMProviderFactory,
    StructuredOutputError,
    get_llm_client,
)

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8
MAX_OUTPUT_TOKENS = 4096
REQUEST_TIMEOUT = 60.0

SYSTEM_PROMPT = """Sen "EyüpAI" adında sabırlı ve öğretici bir asistansın. Her soruyu öğrencinin seviyesinde, basit Türkçe ile açıkla. Matematik ve geometri sorularında adımları numaralandır ve her adımda ne yaptığını kısaca söyle. Cevabını mutlaka JSON olarak ver.

JSON formatı:
{
  "summary": "Sorunun kısa özeti (1 cümle)",
  "steps": [
    {"step": 1, "text": "Açıklama", "latex": "LaTeX formül (opsiyonel)", "svg_overlay_id": 1}
  ],
  "latex": "Ana formül",
  "diagram_svg": "SVG kodu veya null",
  "diagram_commands": null,
  "plot_data": null,
  "final_answer": "Son cevap",
  "hints": ["İpucu 1", "İpucu 2"],
  "confidence": 0.95
}

Kısa ve öğretici ol. Matematiksel ifadeleri LaTeX ile yaz."""

SUBJECT_NAMES = {
    'matematik': 'matematik',
    'geometri': 'geometri',
    'fizik': 'fizik',
    'kimya': 'kimya',
    'biyoloji': 'biyoloji',
    'tarih': 'tarih',
    'edebiyat': 'edebiyat/türkçe',
}

LEVEL_NAMES = {
    'primary': 'ilkokul/ortaokul',
    'high': 'lise/üniversite',
}

DIAGRAM_SUBJECTS = {'geometri', 'matematik'}

TRIANGLE_SVG = """<svg viewBox="0 0 300 200" xmlns="http://www.w3.org/2000/svg">
  <polygon points="50,150 200,150 200,50" fill="none" stroke="#3B82F6" stroke-width="2"/>
  <text x="125" y="170" text-anchor="middle">a</text>
  <text x="220" y="100" text-anchor="middle">b</text>
  <text x="125" y="90" text-anchor="middle" font-weight="bold">c</text>
  <path d="M185,150 L185,135 L200,135" fill="none" stroke="#3B82F6" stroke-width="1"/>
  <circle cx="200" cy="50" r="3" fill="#F59E0B" opacity="0" id="step-1-highlight"/>
  <circle cx="125" cy="100" r="3" fill="#F59E0B" opacity="0" id="step-2-highlight"/>
</svg>"""

CIRCLE_SVG = """<svg viewBox="0 0 300 200" xmlns="http://www.w3.org/2000/svg">
  <circle cx="150" cy="100" r="60" fill="none" stroke="#3B82F6" stroke-width="2"/>
  <line x1="150" y1="100" x2="210" y2="100" stroke="#3B82F6" stroke-width="1"/>
  <text x="180" y="95" text-anchor="middle">r</text>
  <circle cx="150" cy="100" r="2" fill="#3B82F6"/>
  <circle cx="180" cy="100" r="3" fill="#F59E0B" opacity="0" id="step-1-highlight"/>
</svg>"""


@dataclass
class SolveRequest:
    """A question to solve: text, a photo, or both"""
    subject: str
    level: str
    text: Optional[str] = None
    image_data: Optional[bytes] = None
    mime_type: Optional[str] = None

    @property
    def has_image(self) -> bool:
        return bool(self.image_data) and bool(self.mime_type)


def build_user_prompt(request: SolveRequest) -> str:
    """
    Build the user prompt for a question.

    Unknown subjects fall back to 'genel' and unknown levels to 'lise'.
    """
    subject_name = SUBJECT_NAMES.get(request.subject, 'genel')
    level_name = LEVEL_NAMES.get(request.level, 'lise')

    prompt = f"Konu: {subject_name}. Seviye: {level_name}.\n\n"

    if request.text:
        prompt += f"Soru: {request.text}\n\n"
    else:
        prompt += "Fotoğraftaki soruyu analiz et.\n\n"

    prompt += f"""Lütfen:
1. Soruyu kısaca özetle (1 cümle)
2. Her adımı numaralandır ve her adımın sonuna kısa bir "kontrol" ekle
3. Ana formülleri LaTeX olarak ver
4. Geometri sorusuysa diagram_svg ile basit bir SVG çizimi üret
5. JSON formatında cevap ver

Özellikle {subject_name} konusunda detaylı ve anlaşılır açıklama yap."""

    return prompt


def generate_geometry_svg(subject: str, text: Optional[str] = None) -> Optional[str]:
    """Pick a template diagram for triangle or circle questions"""
    if subject not in DIAGRAM_SUBJECTS or not text:
        return None

    if 'üçgen' in text or 'triangle' in text:
        return TRIANGLE_SVG

    if 'daire' in text or 'circle' in text:
        return CIRCLE_SVG

    return None


def _question_label(request: SolveRequest, length: int) -> str:
    if request.text:
        return f"{request.text[:length]}..."
    return "Fotoğraf sorusu"


def build_unparsed_response(request: SolveRequest) -> ModelResponse:
    """Placeholder used when the model answered but its JSON could not be decoded"""
    if request.text:
        summary = f"Soru: {_question_label(request, 100)}"
    else:
        summary = "Yüklenen fotoğraftaki soru"

    return ModelResponse(
        summary=summary,
        steps=[
            SolutionStep(
                step_number=1,
                explanation="Sorunuz analiz ediliyor. Lütfen daha basit bir ifade ile tekrar deneyin.",
                formula=""
            )
        ],
        latex="",
        final_answer="Çözüm bulunamadı",
        hints=["Soruyu daha net şekilde ifade etmeyi deneyin"],
        confidence=0.1
    )


def build_error_response(request: SolveRequest, error: Exception) -> ModelResponse:
    """Placeholder used when the provider call itself failed"""
    return ModelResponse(
        summary=f"Hata: {_question_label(request, 50)}",
        steps=[
            SolutionStep(
                step_number=1,
                explanation=f"Üzgünüz, sorunuz işlenirken hata oluştu: {error}",
                formula=""
            )
        ],
        latex="",
        final_answer="Hata nedeniyle çözüm üretilemedi",
        hints=[
            "Lütfen sorunuzu tekrar göndermeyi deneyin",
            "Fotoğraf net ve okunaklı olduğundan emin olun"
        ],
        confidence=0.0
    )


class ProblemSolverService:
    """Service to solve questions using the configured LLM provider"""

    @staticmethod
    def solve_problem(request: SolveRequest, provider=None) -> ModelResponse:
        """
        Solve a question via LLM.

        Never raises: decoding and provider failures are turned into
        placeholder responses so the caller can still validate and store them.

        Args:
            request: The question to solve
            provider: LLMProvider to use (defaults to the configured provider)

        Returns:
            ModelResponse with defaults filled in
        """
        try:
            if provider is None:
                provider = get_llm_client()

            messages = [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(request)}
            ]

            attachments = None
            if request.has_image:
                attachments = [ImageAttachment(data=request.image_data, mime_type=request.mime_type)]

            result = provider.create_structured_completion(
                messages=messages,
                response_model=ModelResponse,
                model=LLMProviderFactory.get_default_model(provider.get_provider_name()),
                attachments=attachments,
                temperature=0.2,
                max_tokens=MAX_OUTPUT_TOKENS,
                timeout=REQUEST_TIMEOUT
            )
            response = result["parsed_object"]

            logger.info(
                f"Solved {request.subject} question with {result['model']}: "
                f"steps={len(response.steps)}, confidence={response.confidence}"
            )

        except StructuredOutputError as e:
            logger.error(f"Could not decode model response: {e}")
            response = build_unparsed_response(request)

        except Exception as e:
            logger.error(f"LLM request failed: {e}", exc_info=True)
            return build_error_response(request, e)

        return ProblemSolverService._apply_defaults(response, request)

    @staticmethod
    def _apply_defaults(response: ModelResponse, request: SolveRequest) -> ModelResponse:
        """Fill in optional fields the model left out"""
        if not response.diagram_svg and request.subject in DIAGRAM_SUBJECTS:
            response.diagram_svg = generate_geometry_svg(request.subject, request.text)

        response.latex = response.latex or ""
        response.hints = response.hints or []
        response.confidence = response.confidence or DEFAULT_CONFIDENCE

        if not response.steps:
            response.steps = [
                SolutionStep(
                    step_number=1,
                    explanation=response.final_answer or "Çözüm tamamlandı",
                    formula=response.latex
                )
            ]

        return response
