import logging

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from models import db
from services.answer_validator import validate_solution
from services.llm_models.feedback_models import FeedbackCreate
from services.problem_solver_service import ProblemSolverService, SolveRequest
from services.solution_store import SolutionStore
from services.upload_service import read_upload

logger = logging.getLogger(__name__)

bp = Blueprint('api', __name__, url_prefix='/api')

DEFAULT_SUBJECT = 'matematik'
DEFAULT_LEVEL = 'lise'
PHOTO_QUESTION_LABEL = 'Fotoğraf sorusu'


def get_store() -> SolutionStore:
    return SolutionStore(db.session)


@bp.route('/health', methods=['GET'])
def health():
    return jsonify({'success': True, 'status': 'healthy'}), 200


@bp.route('/solve', methods=['POST'])
def solve():
    """
    Solve a question sent as text and/or a photo.

    Request (multipart/form-data or JSON):
        - text: Question text (optional if file is sent)
        - subject: matematik, geometri, fizik, ... (default: matematik)
        - level: primary, high, lise (default: lise)
        - file: Photo of the question (multipart only, optional if text is sent)

    Returns:
        JSON object with:
        - solution: stored solution record
        - parsed: the model response
        - verified: whether server-side validation passed
        - validation: {is_valid, server_computed_value, confidence, errors, recovered}
    """
    try:
        data = request.get_json(silent=True) if request.is_json else request.form
        data = data or {}

        text = (data.get('text') or '').strip() or None
        subject = data.get('subject') or DEFAULT_SUBJECT
        level = data.get('level') or DEFAULT_LEVEL
        file = request.files.get('file')

        if file is not None and not file.filename:
            file = None

        if not text and file is None:
            return jsonify({
                'success': False,
                'error': 'Metin veya fotoğraf göndermelisiniz'
            }), 400

        upload = read_upload(file) if file is not None else None

        solve_request = SolveRequest(
            subject=subject,
            level=level,
            text=text,
            image_data=upload.data if upload else None,
            mime_type=upload.mime_type if upload else None
        )

        model_response = ProblemSolverService.solve_problem(solve_request)
        validation = validate_solution(model_response)

        solution = get_store().create_solution(
            subject=subject,
            level=level,
            question_text=text or PHOTO_QUESTION_LABEL,
            uploaded_file_path=upload.reference if upload else None,
            model_response_json=model_response.to_json_dict(),
            verified=validation.is_valid,
            confidence=validation.confidence
        )

        if validation.errors:
            logger.info(f"Solution {solution.id} validation errors: {validation.errors}")

        return jsonify({
            'success': True,
            'solution': solution.to_dict(),
            'parsed': model_response.to_json_dict(),
            'verified': validation.is_valid,
            'validation': validation.model_dump(mode='json')
        }), 200

    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Solve error: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Beklenmeyen hata oluştu'
        }), 500


@bp.route('/history', methods=['GET'])
def get_history():
    """
    Get solved questions, newest first.

    Query params:
        - limit: Page size (default: HISTORY_PAGE_SIZE)
        - offset: Records to skip (default: 0)
        - user_id: Only this user's solutions (optional)
    """
    try:
        default_limit = current_app.config.get('HISTORY_PAGE_SIZE', 10)
        limit = request.args.get('limit', default_limit, type=int)
        offset = request.args.get('offset', 0, type=int)
        user_id = request.args.get('user_id', None, type=str)

        solutions = get_store().list_solutions(user_id=user_id, limit=limit, offset=offset)

        return jsonify({
            'success': True,
            'solutions': [solution.to_dict() for solution in solutions],
            'count': len(solutions)
        }), 200

    except Exception as e:
        current_app.logger.error(f"History error: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Geçmiş yüklenirken hata oluştu'
        }), 500


@bp.route('/history/<solution_id>', methods=['DELETE'])
def delete_history_item(solution_id):
    """Delete a solution and its feedback"""
    try:
        if not get_store().delete_solution(solution_id):
            return jsonify({
                'success': False,
                'error': 'Çözüm bulunamadı'
            }), 404

        return jsonify({'success': True}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Delete error: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Silme işleminde hata oluştu'
        }), 500


@bp.route('/solution/<solution_id>', methods=['GET'])
def get_solution(solution_id):
    """Get a single solution"""
    try:
        solution = get_store().get_solution(solution_id)

        if not solution:
            return jsonify({
                'success': False,
                'error': 'Çözüm bulunamadı'
            }), 404

        return jsonify({'success': True, 'solution': solution.to_dict()}), 200

    except Exception as e:
        current_app.logger.error(f"Get solution error: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Çözüm yüklenirken hata oluştu'
        }), 500


@bp.route('/solution/<solution_id>/feedback', methods=['GET'])
def get_solution_feedback(solution_id):
    """List feedback submitted for a solution"""
    try:
        store = get_store()
        if not store.get_solution(solution_id):
            return jsonify({
                'success': False,
                'error': 'Çözüm bulunamadı'
            }), 404

        feedback = store.list_feedback(solution_id)
        return jsonify({
            'success': True,
            'feedback': [item.to_dict() for item in feedback],
            'count': len(feedback)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Get feedback error: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Geri bildirimler yüklenirken hata oluştu'
        }), 500


@bp.route('/feedback', methods=['POST'])
def submit_feedback():
    """
    Submit feedback for a solution.

    Request body:
    {
        "solution_id": "0b6c2c1e-...",
        "user_id": "optional",
        "rating": 1-5 (optional),
        "comment": "optional"
    }
    """
    try:
        payload = FeedbackCreate.model_validate(request.get_json(silent=True) or {})
        feedback = get_store().create_feedback(**payload.model_dump())
        return jsonify({'success': True, 'feedback': feedback.to_dict()}), 200

    except (ValidationError, ValueError) as e:
        logger.warning(f"Rejected feedback: {e}")
        return jsonify({
            'success': False,
            'error': 'Geçersiz geri bildirim verisi'
        }), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Feedback error: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Geri bildirim kaydedilemedi'
        }), 500
