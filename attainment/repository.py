"""
Data access for the attainment engine.

``AttainmentRepository`` reads marks, mappings and configuration through
Flask-SQLAlchemy. ``load_course_data`` bulk loads everything one course needs
into a ``CourseData`` snapshot in a fixed number of queries so the calculation
stages never touch the database.
"""
import logging
from collections import defaultdict
from decimal import Decimal

from flask import current_app, has_app_context
from sqlalchemy import select

from models import (db, Course, CourseOutcome, Assessment, Question, Section, Student, Enrollment,
                    StudentMark, Program, ProgramOutcome, Batch, AttainmentSetting, IndirectAttainment,
                    question_course_outcome, course_outcome_program_outcome)
from attainment.config import ThresholdConfig, WeightConfig, POConfig, MAX_LEVEL, to_decimal
from attainment.errors import NotFoundError, ConfigurationError
from attainment.values import (Attempted, NOT_ATTEMPTED, CourseInfo, OutcomeInfo, SectionInfo, StudentInfo,
                               QuestionInfo, ProgramInfo, BatchInfo, round_decimal)

SURVEY_FIELDS = ('alumni_survey', 'exit_survey', 'employer_survey')


class CourseData:
    """In-memory snapshot of one course: outcomes, sections, enrolled students, questions and marks"""

    def __init__(self, course, thresholds, outcomes, sections, students, questions,
                 question_outcomes, marks):
        self.course = course
        self.thresholds = thresholds
        self.outcomes = sorted(outcomes, key=lambda o: (o.code, o.id))
        self.sections = sorted(sections, key=lambda s: (s.name, s.id))
        # Only actively enrolled students
        self.students = sorted(students, key=lambda s: (s.roll_no, s.id))
        self.questions = {q.id: q for q in questions}
        self._question_ids_by_outcome = {co_id: sorted(set(ids)) for co_id, ids in question_outcomes.items()}
        # (student_id, question_id) -> Decimal or None
        self.marks = marks
        self._outcomes_by_id = {o.id: o for o in self.outcomes}
        self._sections_by_id = {s.id: s for s in self.sections}
        self._students_by_id = {s.id: s for s in self.students}

    def outcome(self, co_id):
        try:
            return self._outcomes_by_id[co_id]
        except KeyError:
            raise NotFoundError('CourseOutcome', co_id)

    def section(self, section_id):
        try:
            return self._sections_by_id[section_id]
        except KeyError:
            raise NotFoundError('Section', section_id)

    def student(self, student_id):
        return self._students_by_id.get(student_id)

    def questions_mapped_to_co(self, co_id, section_id=None):
        """Questions of active assessments mapped to the CO; course-wide assessments apply to every section"""
        questions = [self.questions[qid] for qid in self._question_ids_by_outcome.get(co_id, ())
                     if qid in self.questions]
        if section_id is not None:
            questions = [q for q in questions if q.section_id is None or q.section_id == section_id]
        return questions

    def student_attempts(self, student_id, question_ids):
        attempts = {}
        for question_id in question_ids:
            marks = self.marks.get((student_id, question_id))
            attempts[question_id] = Attempted(marks) if marks is not None else NOT_ATTEMPTED
        return attempts

    def active_enrollments(self, section_id=None):
        if section_id is None:
            return list(self.students)
        return [s for s in self.students if s.section_id == section_id]


def _course_info(course):
    return CourseInfo(course.id, course.code, course.name, course.batch_id, course.academic_year, course.status)


def _question_info(question, assessment):
    return QuestionInfo(
        id=question.id,
        assessment_id=assessment.id,
        assessment_name=assessment.name,
        assessment_type=assessment.type,
        weightage=to_decimal(assessment.weightage or 0, 'weightage'),
        max_marks=to_decimal(question.max_marks, 'max_marks'),
        section_id=assessment.section_id,
    )


def _student_info(student):
    return StudentInfo(student.id, student.roll_no, student.name, student.section_id)


class AttainmentRepository:
    """Reads everything the attainment pipeline needs"""

    def __init__(self, session=None):
        self.session = session or db.session

    # --- Lookups ---

    def get_course(self, course_id):
        course = self.session.get(Course, course_id)
        if course is None:
            raise NotFoundError('Course', course_id)
        return course

    def get_student(self, student_id):
        student = self.session.get(Student, student_id)
        if student is None:
            raise NotFoundError('Student', student_id)
        return _student_info(student)

    def get_program(self, program_id):
        program = self.session.get(Program, program_id)
        if program is None:
            raise NotFoundError('Program', program_id)
        return ProgramInfo(program.id, program.code, program.name)

    def get_batch(self, batch_id):
        batch = self.session.get(Batch, batch_id)
        if batch is None:
            raise NotFoundError('Batch', batch_id)
        return batch

    def get_course_thresholds(self, course_id):
        return ThresholdConfig.from_course(self.get_course(course_id))

    # --- Course scope ---

    def list_questions_mapped_to_co(self, co_id, course_id, section_id=None):
        query = (
            select(Question, Assessment)
            .join(Assessment, Question.assessment_id == Assessment.id)
            .join(question_course_outcome, question_course_outcome.c.question_id == Question.id)
            .where(question_course_outcome.c.course_outcome_id == co_id,
                   Assessment.course_id == course_id,
                   Assessment.is_active.is_(True))
            .order_by(Question.id)
        )
        if section_id is not None:
            query = query.where((Assessment.section_id == section_id) | (Assessment.section_id.is_(None)))
        return [_question_info(q, a) for q, a in self.session.execute(query).all()]

    def list_student_marks(self, student_id, question_ids):
        if not question_ids:
            return {}
        rows = StudentMark.query.filter(
            StudentMark.student_id == student_id,
            StudentMark.question_id.in_(question_ids)
        ).all()
        recorded = {row.question_id: row.obtained_marks for row in rows}
        return {
            qid: Attempted(Decimal(recorded[qid])) if recorded.get(qid) is not None else NOT_ATTEMPTED
            for qid in question_ids
        }

    def list_active_enrollments(self, course_id, section_id=None):
        query = (
            Student.query.join(Enrollment, Enrollment.student_id == Student.id)
            .filter(Enrollment.course_id == course_id, Enrollment.is_active.is_(True))
        )
        if section_id is not None:
            query = query.filter(Student.section_id == section_id)
        return [_student_info(s) for s in query.order_by(Student.roll_no).all()]

    def list_sections(self, course):
        if course.batch_id is None:
            return []
        sections = Section.query.filter_by(batch_id=course.batch_id).order_by(Section.name).all()
        return [SectionInfo(s.id, s.name) for s in sections]

    def load_course_data(self, course_id):
        """Bulk load a course in a fixed number of queries"""
        course = self.get_course(course_id)
        thresholds = ThresholdConfig.from_course(course)

        outcomes = CourseOutcome.query.filter_by(course_id=course_id, is_active=True).all()
        outcome_ids = [o.id for o in outcomes]

        assessments = {a.id: a for a in Assessment.query.filter_by(course_id=course_id, is_active=True).all()}
        questions = []
        if assessments:
            for question in Question.query.filter(Question.assessment_id.in_(list(assessments))).all():
                questions.append(_question_info(question, assessments[question.assessment_id]))
        questions_by_id = {q.id: q for q in questions}

        question_outcomes = defaultdict(list)
        if outcome_ids and questions_by_id:
            rows = self.session.execute(
                select(question_course_outcome.c.course_outcome_id, question_course_outcome.c.question_id)
                .where(question_course_outcome.c.course_outcome_id.in_(outcome_ids))
            ).all()
            for co_id, question_id in rows:
                if question_id in questions_by_id:
                    question_outcomes[co_id].append(question_id)

        students = self.list_active_enrollments(course_id)
        unsectioned = [s.roll_no for s in students if s.section_id is None]
        if unsectioned:
            logging.warning(f"Course {course.code}: {len(unsectioned)} enrolled students have no section "
                            f"and are left out of section roll-ups")

        marks = {}
        student_ids = [s.id for s in students]
        if student_ids and questions_by_id:
            rows = StudentMark.query.filter(
                StudentMark.question_id.in_(list(questions_by_id)),
                StudentMark.student_id.in_(student_ids)
            ).all()
            for row in rows:
                if row.obtained_marks is not None:
                    marks[(row.student_id, row.question_id)] = Decimal(row.obtained_marks)

        logging.info(f"Loaded course {course.code}: {len(outcomes)} COs, {len(questions)} questions, "
                     f"{len(students)} students, {len(marks)} marks")

        return CourseData(
            course=_course_info(course),
            thresholds=thresholds,
            outcomes=[OutcomeInfo(o.id, o.code, o.description) for o in outcomes],
            sections=self.list_sections(course),
            students=students,
            questions=questions,
            question_outcomes=question_outcomes,
            marks=marks,
        )

    # --- Program scope ---

    def list_program_outcomes(self, program_id):
        outcomes = ProgramOutcome.query.filter_by(program_id=program_id, is_active=True) \
            .order_by(ProgramOutcome.code).all()
        return [OutcomeInfo(po.id, po.code, po.description) for po in outcomes]

    def list_courses(self, program_id=None, batch_id=None, academic_year=None, statuses=None):
        """Active courses of a program or batch, optionally narrowed to statuses and an academic year"""
        query = Course.query.filter(Course.is_active.is_(True))
        if batch_id is not None:
            query = query.filter(Course.batch_id == batch_id)
        elif program_id is not None:
            query = query.join(Batch, Course.batch_id == Batch.id).filter(Batch.program_id == program_id)
        if statuses:
            query = query.filter(Course.status.in_(list(statuses)))
        if academic_year:
            query = query.filter(Course.academic_year == academic_year)
        return query.order_by(Course.code, Course.id).all()

    def count_course_outcomes(self, course_ids):
        if not course_ids:
            return 0
        return CourseOutcome.query.filter(CourseOutcome.course_id.in_(course_ids),
                                          CourseOutcome.is_active.is_(True)).count()

    def list_co_po_mappings(self, course_ids):
        """Active CO->PO mappings of the given courses as (course_id, course_code, co, po_id, level)"""
        if not course_ids:
            return []
        rows = self.session.execute(
            select(CourseOutcome, Course.code, course_outcome_program_outcome.c.program_outcome_id,
                   course_outcome_program_outcome.c.level)
            .join(Course, CourseOutcome.course_id == Course.id)
            .join(course_outcome_program_outcome,
                  course_outcome_program_outcome.c.course_outcome_id == CourseOutcome.id)
            .where(CourseOutcome.course_id.in_(course_ids),
                   CourseOutcome.is_active.is_(True),
                   course_outcome_program_outcome.c.is_active.is_(True))
            .order_by(Course.code, CourseOutcome.code)
        ).all()
        return [
            (co.course_id, course_code, OutcomeInfo(co.id, co.code, co.description), po_id, int(level))
            for co, course_code, po_id, level in rows
        ]

    # --- Configuration ---

    def get_attainment_weights(self):
        setting = AttainmentSetting.query.first()
        if setting is not None:
            return WeightConfig(setting.direct_weight, setting.indirect_weight)
        config = current_app.config if has_app_context() else {}
        return WeightConfig(config.get('ATTAINMENT_DIRECT_WEIGHT', '0.8'),
                            config.get('ATTAINMENT_INDIRECT_WEIGHT', '0.2'))

    def get_po_config(self, course_statuses=None):
        statuses = tuple(course_statuses) if course_statuses else ('COMPLETED',)
        setting = AttainmentSetting.query.first()
        if setting is not None:
            return POConfig(setting.po_target_level, setting.po_level1_threshold, setting.po_level2_threshold,
                            setting.po_level3_threshold, setting.min_compliance_fraction, statuses)
        config = current_app.config if has_app_context() else {}
        return POConfig(target_level=config.get('ATTAINMENT_PO_TARGET_LEVEL', '2.0'),
                        min_compliance_fraction=config.get('ATTAINMENT_MIN_COMPLIANCE', '0.6'),
                        course_statuses=statuses)

    def save_attainment_weights(self, weights):
        setting = AttainmentSetting.query.first()
        if setting is None:
            setting = AttainmentSetting()
            self.session.add(setting)
        setting.direct_weight = weights.direct_weight
        setting.indirect_weight = weights.indirect_weight
        self.session.commit()
        logging.info(f"Attainment weights updated: direct={weights.direct_weight}, "
                     f"indirect={weights.indirect_weight}")

    # --- Indirect attainment ---

    def get_indirect_attainment(self, po_ids, program_id, batch_id=None, academic_year=None):
        """
        Survey attainment per PO on the 0-3 scale.

        Batch scope prefers the batch's own survey rows and falls back to
        program-wide rows (batch_id NULL); program scope prefers program-wide
        rows and falls back to the program's batch rows.
        """
        if not po_ids:
            return {}
        query = IndirectAttainment.query.filter(IndirectAttainment.po_id.in_(po_ids))
        if academic_year:
            query = query.filter(IndirectAttainment.academic_year == academic_year)
        program_batch_ids = {b.id for b in Batch.query.filter_by(program_id=program_id).all()}

        preferred, fallback = defaultdict(list), defaultdict(list)
        for row in query.order_by(IndirectAttainment.id).all():
            value = self._survey_value(row)
            if value is None:
                continue
            if batch_id is not None:
                if row.batch_id == batch_id:
                    preferred[row.po_id].append(value)
                elif row.batch_id is None:
                    fallback[row.po_id].append(value)
            elif row.batch_id is None:
                preferred[row.po_id].append(value)
            elif row.batch_id in program_batch_ids:
                fallback[row.po_id].append(value)

        result = {}
        for po_id in po_ids:
            values = preferred.get(po_id) or fallback.get(po_id)
            if values:
                result[po_id] = round_decimal(sum(values) / len(values))
        return result

    @staticmethod
    def _survey_value(row):
        values = []
        for name in SURVEY_FIELDS:
            raw = getattr(row, name)
            if raw is None:
                continue
            value = to_decimal(raw, name)
            if value < 0 or value > MAX_LEVEL:
                raise ConfigurationError(
                    f"{name} for PO {row.po_id} must be on the 0-3 scale, got {value}")
            values.append(value)
        if not values:
            return None
        return sum(values) / len(values)
