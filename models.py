# --- START OF FILE models.py ---

from datetime import datetime
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import Index # Import Index explicitly

# Create a db instance to be initialized later
db = SQLAlchemy()

# Association tables for many-to-many relationships
course_outcome_program_outcome = db.Table(
    'course_outcome_program_outcome',
    db.Column('course_outcome_id', db.Integer, db.ForeignKey('course_outcome.id', ondelete='CASCADE'), primary_key=True),
    db.Column('program_outcome_id', db.Integer, db.ForeignKey('program_outcome.id', ondelete='CASCADE'), primary_key=True),
    db.Column('level', db.Integer, nullable=False, default=1),  # Correlation level 1 (low) .. 3 (high)
    db.Column('is_active', db.Boolean, nullable=False, default=True),
    db.CheckConstraint('level BETWEEN 1 AND 3', name='ck_co_po_level_range'),
    Index('idx_co_po_co_id', 'course_outcome_id'),
    Index('idx_co_po_po_id', 'program_outcome_id'),
    Index('idx_co_po_combined', 'course_outcome_id', 'program_outcome_id')
)

question_course_outcome = db.Table(
    'question_course_outcome',
    db.Column('question_id', db.Integer, db.ForeignKey('question.id', ondelete='CASCADE'), primary_key=True),
    db.Column('course_outcome_id', db.Integer, db.ForeignKey('course_outcome.id', ondelete='CASCADE'), primary_key=True),
    Index('idx_qco_q_id', 'question_id'),
    Index('idx_qco_co_id', 'course_outcome_id'),
    Index('idx_qco_combined', 'question_id', 'course_outcome_id')
)

class Program(db.Model):
    """Degree program that owns program outcomes and batches"""
    __tablename__ = 'program'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), nullable=False, unique=True, index=True)
    name = db.Column(db.String(150), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    batches = db.relationship('Batch', backref='program', lazy=True, cascade="all, delete-orphan")
    program_outcomes = db.relationship('ProgramOutcome', backref='program', lazy=True, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Program {self.code}: {self.name}>"

class Batch(db.Model):
    """Intake cohort of a program, e.g. 2021-2025"""
    __tablename__ = 'batch'
    id = db.Column(db.Integer, primary_key=True)
    program_id = db.Column(db.Integer, db.ForeignKey('program.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(50), nullable=False)
    start_year = db.Column(db.Integer, nullable=True)
    end_year = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now)

    sections = db.relationship('Section', backref='batch', lazy=True, cascade="all, delete-orphan")
    courses = db.relationship('Course', backref='batch', lazy=True)

    __table_args__ = (
        db.UniqueConstraint('program_id', 'name', name='_program_batch_name_uc'),
    )

    def __repr__(self):
        return f"<Batch {self.name} of Program {self.program_id}>"

class Section(db.Model):
    """Section of a batch (A, B, ...)"""
    __tablename__ = 'section'
    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('batch.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(20), nullable=False)

    students = db.relationship('Student', backref='section', lazy=True)

    __table_args__ = (
        db.UniqueConstraint('batch_id', 'name', name='_batch_section_name_uc'),
    )

    def __repr__(self):
        return f"<Section {self.name} of Batch {self.batch_id}>"

class Course(db.Model):
    """Course model representing a university/school course"""
    __tablename__ = 'course' # Explicit table name
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), nullable=False, index=True) # Indexed
    name = db.Column(db.String(100), nullable=False, index=True) # Indexed name for search
    semester = db.Column(db.String(20), nullable=True, index=True)
    academic_year = db.Column(db.String(20), nullable=True, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('batch.id', ondelete='SET NULL'), nullable=True, index=True)
    status = db.Column(db.String(20), nullable=False, default='FUTURE', index=True) # FUTURE, ONGOING, COMPLETED
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    # Attainment targets, all percentages
    target_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=60.0)
    level1_threshold = db.Column(db.Numeric(5, 2), nullable=False, default=60.0)
    level2_threshold = db.Column(db.Numeric(5, 2), nullable=False, default=75.0)
    level3_threshold = db.Column(db.Numeric(5, 2), nullable=False, default=85.0)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    assessments = db.relationship('Assessment', backref='course', lazy=True, cascade="all, delete-orphan")
    course_outcomes = db.relationship('CourseOutcome', backref='course', lazy=True, cascade="all, delete-orphan")
    enrollments = db.relationship('Enrollment', backref='course', lazy=True, cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint('code', 'batch_id', 'academic_year', name='_code_batch_year_uc'),
        Index('idx_course_batch_status', 'batch_id', 'status', 'is_active'),
    )

    def __repr__(self):
        return f"<Course {self.code}: {self.name}>"

class Assessment(db.Model):
    """Assessment (exam, quiz, assignment, project) belonging to a course and optionally one section"""
    __tablename__ = 'assessment'
    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey('course.id', ondelete='CASCADE'), nullable=False, index=True) # Indexed FK
    section_id = db.Column(db.Integer, db.ForeignKey('section.id', ondelete='SET NULL'), nullable=True, index=True)
    name = db.Column(db.String(150), nullable=False, index=True)
    type = db.Column(db.String(20), nullable=False, default='exam')
    weightage = db.Column(db.Numeric(5, 2), nullable=False, default=0.0) # 0-100, independent of other assessments
    max_marks = db.Column(db.Numeric(10, 2), nullable=False, default=100.0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    questions = db.relationship('Question', backref='assessment', lazy=True, cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_assessment_course_active', 'course_id', 'is_active'),
        Index('idx_assessment_course_section', 'course_id', 'section_id'),
    )

    def __repr__(self):
        return f"<Assessment {self.name} for Course {self.course_id}>"

class CourseOutcome(db.Model):
    """CourseOutcome model"""
    __tablename__ = 'course_outcome'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), nullable=False, index=True) # Indexed
    description = db.Column(db.Text, nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey('course.id', ondelete='CASCADE'), nullable=False, index=True) # Indexed FK
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    program_outcomes = db.relationship('ProgramOutcome', secondary=course_outcome_program_outcome,
                                      lazy='subquery', backref=db.backref('course_outcomes', lazy=True))
    questions = db.relationship('Question', secondary=question_course_outcome,
                               lazy='subquery', backref=db.backref('course_outcomes', lazy=True))

    __table_args__ = (
        Index('idx_co_course_code', 'course_id', 'code'),
    )

    def __repr__(self):
        return f"<CourseOutcome {self.code}>"

class ProgramOutcome(db.Model):
    """ProgramOutcome model"""
    __tablename__ = 'program_outcome'
    id = db.Column(db.Integer, primary_key=True)
    program_id = db.Column(db.Integer, db.ForeignKey('program.id', ondelete='CASCADE'), nullable=False, index=True)
    code = db.Column(db.String(20), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        db.UniqueConstraint('program_id', 'code', name='_program_po_code_uc'),
    )

    def __repr__(self):
        return f"<ProgramOutcome {self.code}>"

class Question(db.Model):
    """Question model"""
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.Text, nullable=True)
    number = db.Column(db.String(20), nullable=False)
    max_marks = db.Column(db.Numeric(10, 2), nullable=False)
    assessment_id = db.Column(db.Integer, db.ForeignKey('assessment.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.now)

    marks = db.relationship('StudentMark', backref='question', lazy=True, cascade="all, delete-orphan")

    __table_args__ = (
        db.CheckConstraint('max_marks > 0', name='ck_question_max_marks_positive'),
        Index('idx_question_assessment_number', 'assessment_id', 'number'),
    )

    def __repr__(self):
        return f"<Question {self.number} for Assessment {self.assessment_id}>"

class Student(db.Model):
    """Student model"""
    __tablename__ = 'student'
    id = db.Column(db.Integer, primary_key=True)
    roll_no = db.Column(db.String(20), nullable=False, unique=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    batch_id = db.Column(db.Integer, db.ForeignKey('batch.id', ondelete='SET NULL'), nullable=True, index=True)
    section_id = db.Column(db.Integer, db.ForeignKey('section.id', ondelete='SET NULL'), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.now)

    enrollments = db.relationship('Enrollment', backref='student', lazy=True, cascade="all, delete-orphan")
    marks = db.relationship('StudentMark', backref='student', lazy=True, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Student {self.roll_no}: {self.name}>"

class Enrollment(db.Model):
    """Enrollment of a student in a course"""
    __tablename__ = 'enrollment'
    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id', ondelete='CASCADE'), nullable=False, index=True)
    course_id = db.Column(db.Integer, db.ForeignKey('course.id', ondelete='CASCADE'), nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    enrolled_at = db.Column(db.DateTime, default=datetime.now)

    __table_args__ = (
        db.UniqueConstraint('student_id', 'course_id', name='_student_course_enrollment_uc'),
        Index('idx_enrollment_course_active', 'course_id', 'is_active'),
    )

    def __repr__(self):
        return f"<Enrollment Student {self.student_id} in Course {self.course_id}>"

class StudentMark(db.Model):
    """Marks obtained by a student on a question. NULL obtained_marks means not attempted."""
    __tablename__ = 'student_mark'
    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id', ondelete='CASCADE'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id', ondelete='CASCADE'), nullable=False, index=True)
    obtained_marks = db.Column(db.Numeric(10, 2), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        db.UniqueConstraint('student_id', 'question_id', name='_student_question_mark_uc'),
        Index('idx_mark_question_student', 'question_id', 'student_id'),
    )

    def __repr__(self):
        return f"<StudentMark {self.obtained_marks} for Student {self.student_id}, Question {self.question_id}>"

class COAttainment(db.Model):
    """Persisted per-student CO attainment. section_id '' marks a course-level row."""
    __tablename__ = 'co_attainment'
    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey('course.id', ondelete='CASCADE'), nullable=False, index=True)
    section_id = db.Column(db.String(20), nullable=False, default='')
    co_id = db.Column(db.Integer, db.ForeignKey('course_outcome.id', ondelete='CASCADE'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey('student.id', ondelete='CASCADE'), nullable=False, index=True)
    academic_year = db.Column(db.String(20), nullable=False, default='')
    percentage = db.Column(db.Numeric(5, 2), nullable=False)
    met_target = db.Column(db.Boolean, nullable=False, default=False)
    calculated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        db.UniqueConstraint('course_id', 'section_id', 'co_id', 'student_id', 'academic_year',
                            name='uq_co_attainment_key'),
        Index('idx_co_attainment_course_co', 'course_id', 'co_id'),
    )

    def __repr__(self):
        return f"<COAttainment CO {self.co_id} Student {self.student_id}: {self.percentage}%>"

class POAttainmentRecord(db.Model):
    """Persisted PO attainment for a program (batch_id '') or one batch"""
    __tablename__ = 'po_attainment'
    id = db.Column(db.Integer, primary_key=True)
    program_id = db.Column(db.Integer, db.ForeignKey('program.id', ondelete='CASCADE'), nullable=False, index=True)
    batch_id = db.Column(db.String(20), nullable=False, default='')
    po_id = db.Column(db.Integer, db.ForeignKey('program_outcome.id', ondelete='CASCADE'), nullable=False, index=True)
    academic_year = db.Column(db.String(20), nullable=False, default='')
    direct_attainment = db.Column(db.Numeric(4, 2), nullable=True)
    indirect_attainment = db.Column(db.Numeric(4, 2), nullable=True)
    final_attainment = db.Column(db.Numeric(4, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False)
    calculated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        db.UniqueConstraint('program_id', 'batch_id', 'po_id', 'academic_year', name='uq_po_attainment_key'),
    )

    def __repr__(self):
        return f"<POAttainmentRecord PO {self.po_id}: {self.final_attainment}>"

class AttainmentSetting(db.Model):
    """Program-wide attainment weights and PO targets (single row)"""
    __tablename__ = 'attainment_setting'
    id = db.Column(db.Integer, primary_key=True)
    direct_weight = db.Column(db.Numeric(4, 3), nullable=False, default=0.8)
    indirect_weight = db.Column(db.Numeric(4, 3), nullable=False, default=0.2)
    po_target_level = db.Column(db.Numeric(3, 2), nullable=False, default=2.0)
    po_level1_threshold = db.Column(db.Numeric(3, 2), nullable=False, default=1.5)
    po_level2_threshold = db.Column(db.Numeric(3, 2), nullable=False, default=2.0)
    po_level3_threshold = db.Column(db.Numeric(3, 2), nullable=False, default=2.5)
    min_compliance_fraction = db.Column(db.Numeric(3, 2), nullable=False, default=0.6)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<AttainmentSetting direct={self.direct_weight} indirect={self.indirect_weight}>"

class IndirectAttainment(db.Model):
    """Survey based (indirect) attainment of a PO on the 0-3 scale"""
    __tablename__ = 'indirect_attainment'
    id = db.Column(db.Integer, primary_key=True)
    po_id = db.Column(db.Integer, db.ForeignKey('program_outcome.id', ondelete='CASCADE'), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('batch.id', ondelete='CASCADE'), nullable=True, index=True)
    academic_year = db.Column(db.String(20), nullable=False, default='')
    alumni_survey = db.Column(db.Numeric(3, 2), nullable=True)
    exit_survey = db.Column(db.Numeric(3, 2), nullable=True)
    employer_survey = db.Column(db.Numeric(3, 2), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.now)

    __table_args__ = (
        Index('idx_indirect_po_batch_year', 'po_id', 'batch_id', 'academic_year'),
    )

    def __repr__(self):
        return f"<IndirectAttainment PO {self.po_id} Batch {self.batch_id}>"
