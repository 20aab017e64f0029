"""
Per-student CO attainment from raw question marks.

Only attempted questions count toward obtained and max marks, so a skipped
question never drags a student down. Assessment weightages are normalized by
the weightage of assessments the student actually attempted.
"""
import logging
from decimal import Decimal

from attainment.values import (AssessmentContribution, StudentCOAttainment, NoData, NO_QUESTIONS,
                               NOT_ATTEMPTED, round_decimal, ZERO, HUNDRED)


class _AssessmentGroup:
    def __init__(self, question):
        self.assessment_id = question.assessment_id
        self.name = question.assessment_name
        self.type = question.assessment_type
        self.weightage = question.weightage
        self.obtained = ZERO
        self.max_marks = ZERO
        self.attempted = 0

    @property
    def score(self):
        """Fraction of attempted marks obtained, 0..1"""
        if self.max_marks <= 0:
            return ZERO
        return self.obtained / self.max_marks


def _clamp_marks(marks, question, student):
    """Keep recorded marks inside 0..max_marks, logging data that had to be corrected"""
    marks = Decimal(marks)
    if marks < ZERO:
        logging.warning(f"Negative marks {marks} for student {student.roll_no} on question {question.id}, using 0")
        return ZERO
    if marks > question.max_marks:
        logging.warning(f"Marks {marks} exceed max {question.max_marks} for student {student.roll_no} "
                        f"on question {question.id}, capping")
        return question.max_marks
    return marks


def calculate_student_co_attainment(student, outcome, questions, attempts, section_id=None):
    """
    Calculate one student's attainment of one CO.

    Args:
        student: StudentInfo of an actively enrolled student
        outcome: OutcomeInfo of the course outcome
        questions: QuestionInfo list already filtered to the CO, course, active
            assessments and (if given) section
        attempts: dict question_id -> Attempted / NOT_ATTEMPTED; missing keys are
            treated as not attempted
        section_id: section the calculation is scoped to, echoed in the result

    Returns:
        StudentCOAttainment, or NoData when the CO has no questions in scope
    """
    if not questions:
        return NoData(NO_QUESTIONS)

    groups = {}
    total_obtained = ZERO
    total_max = ZERO
    attempted_questions = 0

    for question in sorted(questions, key=lambda q: (q.assessment_id, q.id)):
        attempt = attempts.get(question.id, NOT_ATTEMPTED)
        if not attempt.attempted:
            continue
        group = groups.get(question.assessment_id)
        if group is None:
            group = groups[question.assessment_id] = _AssessmentGroup(question)
        marks = _clamp_marks(attempt.marks, question, student)
        group.obtained += marks
        group.max_marks += question.max_marks
        group.attempted += 1
        total_obtained += marks
        total_max += question.max_marks
        attempted_questions += 1

    simple_percentage = total_obtained / total_max * HUNDRED if total_max > 0 else ZERO

    # Weightage normalized over assessments the student attempted
    contributing = [g for g in groups.values() if g.max_marks > 0]
    weight_total = sum((g.weightage / HUNDRED for g in contributing), ZERO)
    if weight_total > 0:
        weighted_score = sum((g.score * g.weightage / HUNDRED for g in contributing), ZERO)
        weighted_percentage = weighted_score / weight_total * HUNDRED
    else:
        weighted_percentage = simple_percentage

    breakdown = []
    for group in groups.values():
        percentage = group.score * HUNDRED
        share = (group.weightage / HUNDRED) / weight_total if weight_total > 0 and group.max_marks > 0 else ZERO
        breakdown.append(AssessmentContribution(
            assessment_id=group.assessment_id,
            name=group.name,
            type=group.type,
            weightage=round_decimal(group.weightage),
            attempted_questions=group.attempted,
            obtained_marks=round_decimal(group.obtained),
            max_marks=round_decimal(group.max_marks),
            percentage=round_decimal(percentage),
            contribution=round_decimal(share * percentage),
        ))

    return StudentCOAttainment(
        student=student,
        co=outcome,
        section_id=section_id,
        total_questions=len(questions),
        attempted_questions=attempted_questions,
        obtained_marks=round_decimal(total_obtained),
        max_marks=round_decimal(total_max),
        percentage=round_decimal(simple_percentage),
        weighted_percentage=round_decimal(weighted_percentage),
        assessments=tuple(breakdown),
    )


def calculate_for_student(course_data, outcome, student, section_id=None):
    """Run the calculator against a CourseData snapshot"""
    questions = course_data.questions_mapped_to_co(outcome.id, section_id)
    attempts = course_data.student_attempts(student.id, [q.id for q in questions])
    return calculate_student_co_attainment(student, outcome, questions, attempts, section_id)
