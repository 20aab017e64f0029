from decimal import Decimal

import pytest

from attainment import AttainmentEngine, NoData, NotEnrolled
from attainment.errors import NotFoundError, ConfigurationError
from attainment.repository import AttainmentRepository
from attainment.values import (StudentCOAttainment, SectionCOAttainment, CourseCOAttainment,
                               ComprehensiveCOAttainment, ProgramPOAttainmentSummary, BatchPOAttainmentSummary,
                               Attempted, NOT_ATTEMPTED, NO_QUESTIONS, NO_PROGRAM_OUTCOMES)
from models import db


def test_student_attainment_ignores_unattempted_and_null_marks(course_setup):
    course, co1 = course_setup['course'], course_setup['co1']
    s1, s2, s3, s4 = course_setup['students'][:4]
    engine = AttainmentEngine()

    first = engine.calculate_student_co_attainment(course.id, co1.id, s1.id)
    assert isinstance(first, StudentCOAttainment)
    assert first.weighted_percentage == Decimal('62.00')
    assert first.percentage == Decimal('65.00')
    assert first.met_target is True

    second = engine.calculate_student_co_attainment(course.id, co1.id, s2.id)
    assert second.attempted_questions == 1
    assert second.total_questions == 3
    assert second.weighted_percentage == Decimal('50.00')
    assert second.met_target is True

    third = engine.calculate_student_co_attainment(course.id, co1.id, s3.id)
    assert third.weighted_percentage == Decimal('12.00')
    assert third.met_target is False

    fourth = engine.calculate_student_co_attainment(course.id, co1.id, s4.id)
    assert fourth.attempted_questions == 0
    assert fourth.weighted_percentage == Decimal('0.00')


def test_student_not_enrolled(course_setup):
    course, co1 = course_setup['course'], course_setup['co1']
    inactive, outsider = course_setup['students'][4:]
    engine = AttainmentEngine()

    assert engine.calculate_student_co_attainment(course.id, co1.id, inactive.id) == NotEnrolled(inactive.id, course.id)
    assert isinstance(engine.calculate_student_co_attainment(course.id, co1.id, outsider.id), NotEnrolled)
    with pytest.raises(NotFoundError):
        engine.calculate_student_co_attainment(course.id, co1.id, 9999)


def test_unknown_entities_raise_not_found(course_setup):
    engine = AttainmentEngine()
    course = course_setup['course']
    with pytest.raises(NotFoundError):
        engine.calculate_comprehensive_co_attainment(9999)
    with pytest.raises(NotFoundError):
        engine.calculate_course_co_attainment(course.id, 9999)
    with pytest.raises(NotFoundError):
        engine.calculate_section_co_attainment(course.id, course_setup['co1'].id, 9999)
    with pytest.raises(NotFoundError):
        engine.calculate_program_po_attainment(9999)
    with pytest.raises(NotFoundError):
        engine.calculate_batch_po_attainment(9999)


def test_section_attainment(course_setup):
    course, co1 = course_setup['course'], course_setup['co1']
    section_a, section_b = course_setup['sections']
    engine = AttainmentEngine()

    result_a = engine.calculate_section_co_attainment(course.id, co1.id, section_a.id)
    assert isinstance(result_a, SectionCOAttainment)
    assert result_a.total_students == 2
    assert result_a.students_meeting_target == 2
    assert result_a.attainment_level == 3
    assert result_a.average_attainment == Decimal('57.50')
    assert result_a.weighted_average_attainment == Decimal('56.00')

    result_b = engine.calculate_section_co_attainment(course.id, co1.id, section_b.id)
    assert result_b.students_meeting_target == 0
    assert result_b.attainment_level == 0


def test_course_attainment_rolls_up_sections(course_setup):
    course, co1 = course_setup['course'], course_setup['co1']

    result = AttainmentEngine().calculate_course_co_attainment(course.id, co1.id)

    assert isinstance(result, CourseCOAttainment)
    assert result.total_students == sum(s.total_students for s in result.section_attainments) == 4
    assert result.students_meeting_target == 2
    assert result.percentage_meeting_target == Decimal('50.00')
    assert result.attainment_level == 1
    assert result.average_attainment == Decimal('31.25')
    assert result.weighted_average_attainment == Decimal('31.00')


def test_comprehensive_attainment(course_setup):
    course = course_setup['course']

    result = AttainmentEngine().calculate_comprehensive_co_attainment(course.id)

    assert isinstance(result, ComprehensiveCOAttainment)
    assert [c.co.code for c in result.co_attainments] == ['CO1']
    assert [(co.code, reason) for co, reason in result.unattained_outcomes] == [('CO2', NO_QUESTIONS)]
    assert result.total_students == 4
    assert result.to_dict()['thresholds']['target_percentage'] == 50.0


def test_recalculation_is_idempotent(course_setup):
    course = course_setup['course']
    engine = AttainmentEngine()

    first = engine.calculate_comprehensive_co_attainment(course.id).to_dict()
    second = engine.calculate_comprehensive_co_attainment(course.id).to_dict()
    first.pop('calculated_at')
    second.pop('calculated_at')
    assert first == second


def test_section_specific_assessment_only_counts_for_its_section(course_setup):
    s = course_setup['seeder']
    course, co1 = course_setup['course'], course_setup['co1']
    section_a, section_b = course_setup['sections']
    s1, _, s3 = course_setup['students'][:3]
    lab = s.assessment(course, 'Lab B', 20, kind='assignment', section=section_b)
    lab_question = s.question(lab, 10, [co1])
    s.mark(s3, lab_question, 10)
    s.commit()
    engine = AttainmentEngine()

    # (0 x 0.4 + 0.2 x 0.6 + 1.0 x 0.2) / 1.2 = 26.67%
    third = engine.calculate_student_co_attainment(course.id, co1.id, s3.id, section_b.id)
    assert third.weighted_percentage == Decimal('26.67')
    assert third.total_questions == 4

    first = engine.calculate_student_co_attainment(course.id, co1.id, s1.id, section_a.id)
    assert first.total_questions == 3
    assert first.weighted_percentage == Decimal('62.00')


def test_inactive_assessments_are_ignored(course_setup):
    s = course_setup['seeder']
    course, co1 = course_setup['course'], course_setup['co1']
    s1 = course_setup['students'][0]
    retired = s.assessment(course, 'Old Quiz', 50, kind='quiz', active=False)
    s.mark(s1, s.question(retired, 10, [co1]), 0)
    s.commit()

    result = AttainmentEngine().calculate_student_co_attainment(course.id, co1.id, s1.id)
    assert result.total_questions == 3
    assert result.weighted_percentage == Decimal('62.00')


def test_invalid_course_thresholds_raise(course_setup):
    course = course_setup['course']
    course.level2_threshold = 40
    db.session.commit()
    with pytest.raises(ConfigurationError):
        AttainmentEngine().calculate_comprehensive_co_attainment(course.id)


def test_repository_read_interface(course_setup):
    course, co1 = course_setup['course'], course_setup['co1']
    q1, q2, q3 = course_setup['questions']
    s2 = course_setup['students'][1]
    section_a = course_setup['sections'][0]
    repository = AttainmentRepository()

    questions = repository.list_questions_mapped_to_co(co1.id, course.id)
    assert [q.id for q in questions] == [q1.id, q2.id, q3.id]
    assert questions[0].weightage == Decimal('40')

    marks = repository.list_student_marks(s2.id, [q1.id, q2.id, q3.id])
    assert marks[q1.id] == Attempted(Decimal('5'))
    assert marks[q2.id] is NOT_ATTEMPTED
    assert marks[q3.id] is NOT_ATTEMPTED

    enrolled = repository.list_active_enrollments(course.id, section_a.id)
    assert [s.roll_no for s in enrolled] == ['21A001', '21A002']
    assert repository.get_course_thresholds(course.id).level2 == Decimal('70')


def test_program_po_attainment(course_setup):
    s = course_setup['seeder']
    po1, po2 = course_setup['pos']

    summary = AttainmentEngine().calculate_program_po_attainment(s.program.id)

    assert isinstance(summary, ProgramPOAttainmentSummary)
    assert [p.po.code for p in summary.po_attainments] == ['PO1', 'PO2']
    first, second = summary.po_attainments
    # CO1 is at course level 1, mapped to PO1 at correlation 3
    assert first.direct_attainment == Decimal('1.00')
    assert first.final_attainment == Decimal('1.00')
    assert first.mapped_cos == 1
    assert first.total_cos == 2
    assert first.co_coverage_factor == Decimal('50.00')
    assert second.direct_attainment is None
    assert summary.attained_pos == 0
    assert summary.is_compliant is False
    assert summary.overall_attainment == Decimal('0.50')


def test_program_po_attainment_blends_indirect_surveys(course_setup):
    s = course_setup['seeder']
    po1 = course_setup['pos'][0]
    # Batch-level survey is used when no program-wide survey exists
    s.survey(po1, alumni=Decimal('3.0'), exit=Decimal('2.0'), batch=s.batch)
    s.commit()

    summary = AttainmentEngine().calculate_program_po_attainment(s.program.id)

    first = summary.po_attainments[0]
    assert first.indirect_attainment == Decimal('2.50')
    # 0.8 x 1.0 + 0.2 x 2.5
    assert first.final_attainment == Decimal('1.30')


def test_out_of_scale_survey_raises(course_setup):
    s = course_setup['seeder']
    s.survey(course_setup['pos'][0], alumni=Decimal('4.5'))
    s.commit()
    with pytest.raises(ConfigurationError):
        AttainmentEngine().calculate_program_po_attainment(s.program.id)


def test_course_status_filter(course_setup):
    s = course_setup['seeder']
    ongoing = s.course('CS102', status='ONGOING')
    s.outcome(ongoing, 'CO1')
    s.commit()
    engine = AttainmentEngine()

    default = engine.calculate_program_po_attainment(s.program.id)
    assert default.po_attainments[0].total_cos == 2

    widened = engine.calculate_program_po_attainment(s.program.id, course_statuses=('COMPLETED', 'ONGOING'))
    assert widened.po_attainments[0].total_cos == 3


def test_batch_po_attainment(course_setup):
    s = course_setup['seeder']
    s.course('CS102', status='ONGOING')
    s.commit()

    summary = AttainmentEngine().calculate_batch_po_attainment(s.batch.id)

    assert isinstance(summary, BatchPOAttainmentSummary)
    assert summary.total_courses == 2
    assert summary.completed_courses == 1
    assert summary.batch.name == '2021-2025'
    assert summary.to_dict()['batch']['start_year'] == 2021


def test_program_without_outcomes_is_no_data(seeder):
    seeder.commit()
    result = AttainmentEngine().calculate_program_po_attainment(seeder.program.id)
    assert result == NoData(NO_PROGRAM_OUTCOMES)


def test_course_po_attainment(course_setup):
    course = course_setup['course']
    results = AttainmentEngine().calculate_course_po_attainment(course.id)
    assert [r.po.code for r in results] == ['PO1', 'PO2']
    assert results[0].direct_attainment == Decimal('1.00')


def test_engine_respects_academic_year(course_setup):
    s = course_setup['seeder']
    summary = AttainmentEngine().calculate_program_po_attainment(s.program.id, academic_year='1999-00')
    # No course in that year: every PO is unattained
    assert all(p.direct_attainment is None for p in summary.po_attainments)
    assert summary.academic_year == '1999-00'
