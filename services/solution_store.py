"""
Solution Store - Persists solutions and feedback.

The store wraps a SQLAlchemy session handed to it by the caller (routes use
db.session), so its lifetime follows the request / app context rather than a
module-level singleton.
"""

import logging
from typing import Any, Dict, List, Optional

from models.feedback import Feedback
from models.solution import Solution

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


class SolutionStore:
    """Keyed access to Solution and Feedback records"""

    def __init__(self, session):
        self.session = session

    def create_solution(
        self,
        subject: str,
        level: str,
        model_response_json: Dict[str, Any],
        question_text: Optional[str] = None,
        uploaded_file_path: Optional[str] = None,
        user_id: Optional[str] = None,
        verified: bool = False,
        confidence: float = 0.0
    ) -> Solution:
        """
        Create and commit a solution record.

        Args:
            subject: Subject key e.g. 'matematik'
            level: Level key e.g. 'lise'
            model_response_json: Serialized ModelResponse
            question_text: The question as typed (or a label for photo questions)
            uploaded_file_path: Reference of the uploaded photo, if any
            user_id: Owner, None for anonymous requests
            verified: ValidationResult.is_valid
            confidence: ValidationResult.confidence

        Returns:
            The persisted Solution with id and created_at assigned

        Raises:
            ValueError: If subject, level or model response are missing
        """
        if not subject:
            raise ValueError("subject is required")
        if not level:
            raise ValueError("level is required")
        if model_response_json is None:
            raise ValueError("model_response_json is required")

        solution = Solution(
            user_id=user_id or None,
            subject=subject,
            level=level,
            question_text=question_text or None,
            uploaded_file_path=uploaded_file_path or None,
            model_response_json=model_response_json,
            verified=bool(verified),
            confidence=confidence or 0.0
        )

        try:
            self.session.add(solution)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Stored solution {solution.id} (verified={solution.verified}, confidence={solution.confidence:.3f})")
        return solution

    def get_solution(self, solution_id: str) -> Optional[Solution]:
        return self.session.get(Solution, solution_id)

    def list_solutions(
        self,
        user_id: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0
    ) -> List[Solution]:
        """
        List solutions newest first.

        Args:
            user_id: Only this user's solutions; None lists all
            limit: Page size (capped at MAX_LIMIT)
            offset: Number of records to skip
        """
        limit = max(0, min(limit, MAX_LIMIT))
        offset = max(0, offset)

        query = self.session.query(Solution)
        if user_id:
            query = query.filter(Solution.user_id == user_id)

        return (query
                .order_by(Solution.created_at.desc())
                .offset(offset)
                .limit(limit)
                .all())

    def delete_solution(self, solution_id: str) -> bool:
        """
        Delete a solution and its feedback.

        Returns:
            False if no such solution exists
        """
        solution = self.get_solution(solution_id)
        if not solution:
            return False

        try:
            self.session.delete(solution)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Deleted solution {solution_id}")
        return True

    def create_feedback(
        self,
        solution_id: str,
        user_id: Optional[str] = None,
        rating: Optional[int] = None,
        comment: Optional[str] = None
    ) -> Feedback:
        """
        Create feedback for an existing solution.

        Raises:
            ValueError: If the solution does not exist
        """
        if not self.get_solution(solution_id):
            raise ValueError(f"Solution not found: {solution_id}")

        feedback = Feedback(
            solution_id=solution_id,
            user_id=user_id or None,
            rating=rating,
            comment=comment or None
        )

        try:
            self.session.add(feedback)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Stored feedback {feedback.id} for solution {solution_id}")
        return feedback

    def list_feedback(self, solution_id: str) -> List[Feedback]:
        return (self.session.query(Feedback)
                .filter(Feedback.solution_id == solution_id)
                .order_by(Feedback.created_at)
                .all())
