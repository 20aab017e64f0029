import os
from decimal import Decimal

import pytest

# Keep test runs quiet
os.environ.setdefault('LOG_LEVEL', 'ERROR')

from app import create_app
from models import (db, Program, Batch, Section, Course, CourseOutcome, ProgramOutcome, Assessment, Question,
                    Student, Enrollment, StudentMark, IndirectAttainment,
                    question_course_outcome, course_outcome_program_outcome)


@pytest.fixture
def app():
    app = create_app({'TESTING': True, 'SQLALCHEMY_DATABASE_URI': 'sqlite://'})
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class Seeder:
    """Small helpers for building programs, courses, marks and mappings in tests"""

    def __init__(self):
        self.program = self._add(Program(code='CSE', name='Computer Science and Engineering'))
        self.batch = self._add(Batch(program_id=self.program.id, name='2021-2025', start_year=2021, end_year=2025))
        self.sections = {}

    def _add(self, obj):
        db.session.add(obj)
        db.session.flush()
        return obj

    def section(self, name):
        if name not in self.sections:
            self.sections[name] = self._add(Section(batch_id=self.batch.id, name=name))
        return self.sections[name]

    def course(self, code='CS101', status='COMPLETED', target=50, levels=(50, 70, 85), academic_year='2023-24'):
        return self._add(Course(code=code, name=f'Course {code}', semester='Fall 2023',
                                academic_year=academic_year, batch_id=self.batch.id, status=status,
                                target_percentage=target, level1_threshold=levels[0],
                                level2_threshold=levels[1], level3_threshold=levels[2]))

    def outcome(self, course, code, active=True):
        return self._add(CourseOutcome(course_id=course.id, code=code, description=f'{code} of {course.code}',
                                       is_active=active))

    def program_outcome(self, code):
        return self._add(ProgramOutcome(program_id=self.program.id, code=code, description=f'{code} description'))

    def assessment(self, course, name, weightage, kind='exam', section=None, active=True):
        return self._add(Assessment(course_id=course.id, name=name, type=kind, weightage=weightage,
                                    section_id=section.id if section else None, max_marks=100,
                                    is_active=active))

    def question(self, assessment, max_marks, outcomes=(), number='1'):
        question = self._add(Question(assessment_id=assessment.id, number=number, max_marks=max_marks))
        for outcome in outcomes:
            db.session.execute(question_course_outcome.insert().values(
                question_id=question.id, course_outcome_id=outcome.id))
        return question

    def student(self, roll_no, section, courses=(), active=True):
        student = self._add(Student(roll_no=roll_no, name=f'Student {roll_no}', batch_id=self.batch.id,
                                    section_id=section.id if section else None))
        for course in courses:
            self._add(Enrollment(student_id=student.id, course_id=course.id, is_active=active))
        return student

    def mark(self, student, question, marks):
        value = None if marks is None else Decimal(str(marks))
        return self._add(StudentMark(student_id=student.id, question_id=question.id, obtained_marks=value))

    def map_co_po(self, outcome, program_outcome, level, active=True):
        db.session.execute(course_outcome_program_outcome.insert().values(
            course_outcome_id=outcome.id, program_outcome_id=program_outcome.id, level=level, is_active=active))

    def survey(self, program_outcome, alumni=None, exit=None, employer=None, batch=None, academic_year=''):
        return self._add(IndirectAttainment(po_id=program_outcome.id, batch_id=batch.id if batch else None,
                                            academic_year=academic_year, alumni_survey=alumni,
                                            exit_survey=exit, employer_survey=employer))

    def commit(self):
        db.session.commit()


@pytest.fixture
def seeder(app):
    return Seeder()


@pytest.fixture
def course_setup(seeder):
    """
    CS101 (target 50, levels 50/70/85) with sections A and B.

    CO1: Midterm (weightage 40) Q1, Q2 of 10 marks; Final (weightage 60) Q3 of 20 marks.
    CO2: active but without questions.
    s1 (A) 8, 8, 10       -> weighted 62.00, simple 65.00
    s2 (A) 5, -, NULL     -> weighted 50.00, simple 50.00
    s3 (B) 0, 0, 4        -> weighted 12.00, simple 10.00
    s4 (B) nothing        -> 0
    s5 (A) inactive enrollment, s6 (A) not enrolled
    """
    s = seeder
    section_a, section_b = s.section('A'), s.section('B')
    course = s.course('CS101')
    co1 = s.outcome(course, 'CO1')
    co2 = s.outcome(course, 'CO2')
    midterm = s.assessment(course, 'Midterm', 40)
    final = s.assessment(course, 'Final', 60)
    q1 = s.question(midterm, 10, [co1], '1')
    q2 = s.question(midterm, 10, [co1], '2')
    q3 = s.question(final, 20, [co1], '1')

    s1 = s.student('21A001', section_a, [course])
    s2 = s.student('21A002', section_a, [course])
    s3 = s.student('21B001', section_b, [course])
    s4 = s.student('21B002', section_b, [course])
    s5 = s.student('21A003', section_a, [course], active=False)
    s6 = s.student('21A004', section_a)

    for student, marks in ((s1, (8, 8, 10)), (s3, (0, 0, 4)), (s5, (10, 10, 20))):
        for question, value in zip((q1, q2, q3), marks):
            s.mark(student, question, value)
    s.mark(s2, q1, 5)
    s.mark(s2, q3, None)

    po1 = s.program_outcome('PO1')
    po2 = s.program_outcome('PO2')
    s.map_co_po(co1, po1, 3)
    s.commit()

    return {
        'course': course, 'co1': co1, 'co2': co2, 'midterm': midterm, 'final': final,
        'questions': (q1, q2, q3), 'sections': (section_a, section_b),
        'students': (s1, s2, s3, s4, s5, s6), 'pos': (po1, po2), 'seeder': s,
    }
