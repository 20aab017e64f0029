from decimal import Decimal

from attainment.student_calculator import calculate_student_co_attainment
from attainment.values import (Attempted, NOT_ATTEMPTED, NoData, OutcomeInfo, QuestionInfo, StudentInfo,
                               StudentCOAttainment, NO_QUESTIONS)

STUDENT = StudentInfo(1, '21A001', 'Ada Lovelace', section_id=10)
CO1 = OutcomeInfo(1, 'CO1', 'Analyze algorithms')


def question(qid, assessment_id, max_marks, weightage=100, name=None, kind='exam'):
    return QuestionInfo(id=qid, assessment_id=assessment_id, assessment_name=name or f'Assessment {assessment_id}',
                        assessment_type=kind, weightage=Decimal(str(weightage)), max_marks=Decimal(str(max_marks)))


def marks(value):
    return Attempted(Decimal(str(value)))


def test_unattempted_questions_are_excluded():
    """7 + 9 out of two attempted 10-mark questions is 80%, the skipped one does not count"""
    questions = [question(1, 1, 10), question(2, 1, 10), question(3, 1, 10)]
    attempts = {1: marks(7), 2: marks(9), 3: NOT_ATTEMPTED}

    result = calculate_student_co_attainment(STUDENT, CO1, questions, attempts)

    assert isinstance(result, StudentCOAttainment)
    assert result.percentage == Decimal('80.00')
    assert result.weighted_percentage == Decimal('80.00')
    assert result.attempted_questions == 2
    assert result.total_questions == 3
    assert result.obtained_marks == Decimal('16.00')
    assert result.max_marks == Decimal('20.00')


def test_missing_attempt_key_is_not_attempted():
    questions = [question(1, 1, 10), question(2, 1, 10)]
    result = calculate_student_co_attainment(STUDENT, CO1, questions, {1: marks(5)})
    assert result.percentage == Decimal('50.00')
    assert result.attempted_questions == 1


def test_recorded_zero_is_an_attempt():
    questions = [question(1, 1, 10), question(2, 1, 10)]
    result = calculate_student_co_attainment(STUDENT, CO1, questions, {1: marks(10), 2: marks(0)})
    assert result.percentage == Decimal('50.00')
    assert result.attempted_questions == 2


def test_weightage_normalized_over_attempted_assessments():
    """Only a 40% weightage assessment attempted at 80% gives 80%, not 32%"""
    questions = [question(1, 1, 10, weightage=40), question(2, 1, 10, weightage=40),
                 question(3, 2, 20, weightage=60)]
    attempts = {1: marks(8), 2: marks(8)}

    result = calculate_student_co_attainment(STUDENT, CO1, questions, attempts)

    assert result.weighted_percentage == Decimal('80.00')
    assert len(result.assessments) == 1
    assert result.assessments[0].contribution == Decimal('80.00')


def test_weighted_percentage_combines_assessment_scores():
    # Midterm 40%: 16/20 = 0.8, Final 60%: 10/20 = 0.5 -> 0.32 + 0.30 = 62%
    questions = [question(1, 1, 10, weightage=40), question(2, 1, 10, weightage=40),
                 question(3, 2, 20, weightage=60)]
    attempts = {1: marks(8), 2: marks(8), 3: marks(10)}

    result = calculate_student_co_attainment(STUDENT, CO1, questions, attempts)

    assert result.weighted_percentage == Decimal('62.00')
    assert result.percentage == Decimal('65.00')
    contributions = sum(a.contribution for a in result.assessments)
    assert contributions == result.weighted_percentage


def test_zero_weightage_falls_back_to_simple_percentage():
    questions = [question(1, 1, 10, weightage=0), question(2, 2, 30, weightage=0)]
    result = calculate_student_co_attainment(STUDENT, CO1, questions, {1: marks(10), 2: marks(10)})
    assert result.weighted_percentage == result.percentage == Decimal('50.00')


def test_nothing_attempted_counts_as_zero():
    questions = [question(1, 1, 10), question(2, 2, 10)]
    result = calculate_student_co_attainment(STUDENT, CO1, questions, {})
    assert isinstance(result, StudentCOAttainment)
    assert result.attempted_questions == 0
    assert result.percentage == Decimal('0.00')
    assert result.weighted_percentage == Decimal('0.00')
    assert result.assessments == ()


def test_no_questions_is_no_data():
    result = calculate_student_co_attainment(STUDENT, CO1, [], {})
    assert isinstance(result, NoData)
    assert result.reason == NO_QUESTIONS
    assert not result


def test_percentages_round_half_up():
    questions = [question(1, 1, 3)]
    result = calculate_student_co_attainment(STUDENT, CO1, questions, {1: marks(2)})
    assert result.percentage == Decimal('66.67')

    questions = [question(1, 1, 8)]
    result = calculate_student_co_attainment(STUDENT, CO1, questions, {1: marks('0.1')})
    # 1.25% exactly
    assert result.percentage == Decimal('1.25')


def test_result_does_not_depend_on_question_order():
    questions = [question(1, 1, 10, weightage=30), question(2, 2, 15, weightage=50), question(3, 1, 5, weightage=30)]
    attempts = {1: marks(6), 2: marks(11), 3: marks(5)}
    forward = calculate_student_co_attainment(STUDENT, CO1, questions, attempts)
    backward = calculate_student_co_attainment(STUDENT, CO1, list(reversed(questions)), attempts)
    assert forward == backward


def test_to_dict_is_json_ready():
    questions = [question(1, 1, 10, weightage=40, name='Quiz 1', kind='quiz')]
    data = calculate_student_co_attainment(STUDENT, CO1, questions, {1: marks(9)}, section_id=10).to_dict()
    assert data['co_code'] == 'CO1'
    assert data['section_id'] == 10
    assert data['percentage'] == 90.0
    assert data['assessments'][0]['type'] == 'quiz'
    assert data['student']['roll_no'] == '21A001'


def test_marks_outside_question_range_are_clamped():
    """12 on a 10-mark question caps at 10, -3 floors at 0"""
    questions = [question(1, 1, 10), question(2, 1, 10)]

    over = calculate_student_co_attainment(STUDENT, CO1, questions, {1: marks(12), 2: marks(10)})
    assert over.percentage == Decimal('100.00')
    assert over.obtained_marks == Decimal('20.00')

    under = calculate_student_co_attainment(STUDENT, CO1, questions, {1: marks(-3), 2: marks(5)})
    assert under.percentage == Decimal('25.00')
    assert under.attempted_questions == 2
