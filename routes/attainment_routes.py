from flask import Blueprint, jsonify, request
from models import db
from attainment import AttainmentEngine, NoData, NotEnrolled
from attainment.config import WeightConfig
from attainment.errors import NotFoundError, ConfigurationError, PersistenceError
from attainment.repository import AttainmentRepository
from routes.export_utils import export_to_excel_csv
import logging
import traceback

attainment_bp = Blueprint('attainment', __name__, url_prefix='/attainment')

CSV_HEADERS = ['Course', 'CO', 'Roll No', 'Student', 'Section', 'Attempted Questions', 'Total Questions',
               'Percentage', 'Weighted Percentage', 'Met Target']


def _statuses():
    """Course statuses from ?status=COMPLETED&status=ONGOING, or None for the default"""
    statuses = [s.upper() for s in request.args.getlist('status') if s]
    return tuple(statuses) or None


def _result_response(result, **kwargs):
    if isinstance(result, (NoData, NotEnrolled)):
        return jsonify({'success': True, 'data': None, **result.to_dict()})
    return jsonify({'success': True, 'data': result.to_dict(**kwargs)})


@attainment_bp.errorhandler(NotFoundError)
def handle_not_found(error):
    return jsonify({'success': False, 'message': str(error)}), 404


@attainment_bp.errorhandler(ConfigurationError)
def handle_configuration_error(error):
    logging.warning(f"Attainment configuration error: {str(error)}")
    return jsonify({'success': False, 'message': str(error)}), 422


@attainment_bp.errorhandler(PersistenceError)
def handle_persistence_error(error):
    return jsonify({'success': False, 'message': str(error)}), 500


@attainment_bp.route('/course/<int:course_id>/co-attainment')
def course_co_attainment(course_id):
    """Comprehensive CO attainment, or one CO (?co_id=) optionally for one section (?section_id=)"""
    co_id = request.args.get('co_id', type=int)
    section_id = request.args.get('section_id', type=int)
    include_students = request.args.get('students', '1') != '0'
    engine = AttainmentEngine()

    if co_id is None:
        result = engine.calculate_comprehensive_co_attainment(course_id)
    elif section_id is None:
        result = engine.calculate_course_co_attainment(course_id, co_id)
    else:
        result = engine.calculate_section_co_attainment(course_id, co_id, section_id)
    return _result_response(result, include_students=include_students)


@attainment_bp.route('/course/<int:course_id>/co/<int:co_id>/student/<int:student_id>')
def student_co_attainment(course_id, co_id, student_id):
    section_id = request.args.get('section_id', type=int)
    result = AttainmentEngine().calculate_student_co_attainment(course_id, co_id, student_id, section_id)
    return _result_response(result)


@attainment_bp.route('/course/<int:course_id>/co-attainment/save', methods=['POST'])
def save_course_co_attainment(course_id):
    data = request.get_json(silent=True) or {}
    academic_year = data.get('academic_year') or ''
    try:
        report = AttainmentEngine().batch_save_co_attainments(course_id, academic_year)
    except PersistenceError:
        logging.error(f"Saving CO attainments for course {course_id} failed: {traceback.format_exc()}")
        raise
    return jsonify({'success': True, 'message': f"Saved {report.saved} attainment records",
                    'data': report.to_dict()})


@attainment_bp.route('/course/<int:course_id>/co-attainment/export')
def export_course_co_attainment(course_id):
    result = AttainmentEngine().calculate_comprehensive_co_attainment(course_id)
    if isinstance(result, NoData):
        return jsonify({'success': False, 'message': 'No attainment data to export', **result.to_dict()}), 404

    section_names = {}
    for co_attainment in result.co_attainments:
        for section in co_attainment.section_attainments:
            section_names[section.section.id] = section.section.name

    def rows():
        for co_attainment in result.co_attainments:
            for student in co_attainment.student_attainments:
                yield {
                    'Course': result.course.code,
                    'CO': co_attainment.co.code,
                    'Roll No': student.student.roll_no,
                    'Student': student.student.name,
                    'Section': section_names.get(student.section_id, ''),
                    'Attempted Questions': student.attempted_questions,
                    'Total Questions': student.total_questions,
                    'Percentage': f"{student.percentage:.2f}",
                    'Weighted Percentage': f"{student.weighted_percentage:.2f}",
                    'Met Target': 'Yes' if student.met_target else 'No',
                }

    return export_to_excel_csv(rows(), f"co_attainment_{result.course.code}", CSV_HEADERS)


@attainment_bp.route('/program/<int:program_id>/po-attainment')
def program_po_attainment(program_id):
    academic_year = request.args.get('academic_year') or None
    result = AttainmentEngine().calculate_program_po_attainment(program_id, academic_year, _statuses())
    return _result_response(result)


@attainment_bp.route('/program/<int:program_id>/po-attainment/save', methods=['POST'])
def save_program_po_attainment(program_id):
    data = request.get_json(silent=True) or {}
    summary, saved = AttainmentEngine().save_program_po_attainment(
        program_id, data.get('academic_year') or None, data.get('statuses') or None)
    if isinstance(summary, NoData):
        return jsonify({'success': True, 'data': None, 'saved': saved, **summary.to_dict()})
    return jsonify({'success': True, 'data': summary.to_dict(), 'saved': saved})


@attainment_bp.route('/batch/<int:batch_id>/po-attainment')
def batch_po_attainment(batch_id):
    academic_year = request.args.get('academic_year') or None
    result = AttainmentEngine().calculate_batch_po_attainment(batch_id, academic_year, _statuses())
    return _result_response(result)


@attainment_bp.route('/settings/weights', methods=['GET', 'POST'])
def attainment_weights():
    repository = AttainmentRepository()
    if request.method == 'GET':
        return jsonify({'success': True, 'data': repository.get_attainment_weights().to_dict()})

    data = request.get_json(silent=True) or {}
    if 'direct_weight' not in data or 'indirect_weight' not in data:
        return jsonify({'success': False, 'message': 'direct_weight and indirect_weight are required'}), 400

    # Raises ConfigurationError (422) on invalid weights
    weights = WeightConfig(data['direct_weight'], data['indirect_weight'])
    try:
        repository.save_attainment_weights(weights)
    except Exception as e:
        db.session.rollback()
        logging.error(f"Error saving attainment weights: {str(e)}\n{traceback.format_exc()}")
        return jsonify({'success': False, 'message': f'Error saving weights: {str(e)}'}), 500
    return jsonify({'success': True, 'message': 'Attainment weights saved', 'data': weights.to_dict()})
