"""
Value records produced by the attainment pipeline.

Every record is a frozen dataclass holding Decimals rounded half-up to two
places; ``to_dict()`` turns a record tree into JSON-serializable data.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

TWO_PLACES = Decimal('0.01')
ONE_PLACE = Decimal('0.1')
ZERO = Decimal('0')
HUNDRED = Decimal('100')

# NoData reasons
NO_QUESTIONS = 'no_questions'
NO_ENROLLMENTS = 'no_enrollments'
NO_SECTIONS = 'no_sections'
NO_RESULTS = 'no_results'
NO_COURSE_OUTCOMES = 'no_course_outcomes'
NO_PROGRAM_OUTCOMES = 'no_program_outcomes'


def round_decimal(value, places=TWO_PLACES):
    """Round half-up, the way marks are rounded on result sheets"""
    return Decimal(value).quantize(places, rounding=ROUND_HALF_UP)


def _float(value):
    return float(value) if value is not None else None


def _check_percentage(name, value):
    if value < ZERO or value > HUNDRED:
        raise ValueError(f"{name} must be between 0 and 100, got {value}")


# --- Absent results ---

@dataclass(frozen=True)
class NoData:
    """Nothing in scope to attain against (no questions, sections, enrollments...)"""
    reason: str = NO_QUESTIONS

    def __bool__(self):
        return False

    def to_dict(self):
        return {'status': 'no_data', 'reason': self.reason}


@dataclass(frozen=True)
class NotEnrolled:
    """Student has no active enrollment in the course"""
    student_id: int
    course_id: int

    def __bool__(self):
        return False

    def to_dict(self):
        return {'status': 'not_enrolled', 'student_id': self.student_id, 'course_id': self.course_id}


# --- Attempts ---

@dataclass(frozen=True)
class Attempted:
    """A recorded mark, zero included"""
    marks: Decimal
    attempted = True


class _NotAttempted:
    """Missing mark row or a row with NULL marks"""
    attempted = False
    marks = None

    def __repr__(self):
        return 'NOT_ATTEMPTED'


NOT_ATTEMPTED = _NotAttempted()


# --- Snapshot entities ---

@dataclass(frozen=True)
class CourseInfo:
    id: int
    code: str
    name: str
    batch_id: Optional[int] = None
    academic_year: Optional[str] = None
    status: str = 'COMPLETED'

    def to_dict(self):
        return {'id': self.id, 'code': self.code, 'name': self.name,
                'academic_year': self.academic_year, 'status': self.status}


@dataclass(frozen=True)
class OutcomeInfo:
    id: int
    code: str
    description: str = ''

    def to_dict(self):
        return {'id': self.id, 'code': self.code, 'description': self.description}


@dataclass(frozen=True)
class SectionInfo:
    id: int
    name: str

    def to_dict(self):
        return {'id': self.id, 'name': self.name}


@dataclass(frozen=True)
class StudentInfo:
    id: int
    roll_no: str
    name: str
    section_id: Optional[int] = None

    def to_dict(self):
        return {'id': self.id, 'roll_no': self.roll_no, 'name': self.name, 'section_id': self.section_id}


@dataclass(frozen=True)
class QuestionInfo:
    id: int
    assessment_id: int
    assessment_name: str
    assessment_type: str
    weightage: Decimal
    max_marks: Decimal
    section_id: Optional[int] = None


@dataclass(frozen=True)
class ProgramInfo:
    id: int
    code: str
    name: str

    def to_dict(self):
        return {'id': self.id, 'code': self.code, 'name': self.name}


@dataclass(frozen=True)
class BatchInfo:
    id: int
    name: str
    start_year: Optional[int] = None
    end_year: Optional[int] = None

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'start_year': self.start_year, 'end_year': self.end_year}


# --- CO attainment ---

@dataclass(frozen=True)
class AssessmentContribution:
    """One assessment's share of a student's weighted CO percentage"""
    assessment_id: int
    name: str
    type: str
    weightage: Decimal
    attempted_questions: int
    obtained_marks: Decimal
    max_marks: Decimal
    percentage: Decimal
    contribution: Decimal

    def to_dict(self):
        return {
            'assessment_id': self.assessment_id,
            'name': self.name,
            'type': self.type,
            'weightage': float(self.weightage),
            'attempted_questions': self.attempted_questions,
            'obtained_marks': float(self.obtained_marks),
            'max_marks': float(self.max_marks),
            'percentage': float(self.percentage),
            'contribution': float(self.contribution),
        }


@dataclass(frozen=True)
class StudentCOAttainment:
    student: StudentInfo
    co: OutcomeInfo
    section_id: Optional[int]
    total_questions: int
    attempted_questions: int
    obtained_marks: Decimal
    max_marks: Decimal
    percentage: Decimal
    weighted_percentage: Decimal
    assessments: Tuple[AssessmentContribution, ...] = ()
    met_target: bool = False

    def __post_init__(self):
        _check_percentage('percentage', self.percentage)
        _check_percentage('weighted_percentage', self.weighted_percentage)

    def to_dict(self):
        return {
            'student': self.student.to_dict(),
            'co_id': self.co.id,
            'co_code': self.co.code,
            'section_id': self.section_id,
            'total_questions': self.total_questions,
            'attempted_questions': self.attempted_questions,
            'obtained_marks': float(self.obtained_marks),
            'max_marks': float(self.max_marks),
            'percentage': float(self.percentage),
            'weighted_percentage': float(self.weighted_percentage),
            'met_target': self.met_target,
            'assessments': [a.to_dict() for a in self.assessments],
        }


def _attainment_stats_dict(result):
    return {
        'co': result.co.to_dict(),
        'total_students': result.total_students,
        'students_meeting_target': result.students_meeting_target,
        'percentage_meeting_target': float(result.percentage_meeting_target),
        'attainment_level': result.attainment_level,
        'average_attainment': float(result.average_attainment),
        'weighted_average_attainment': float(result.weighted_average_attainment),
        'thresholds': result.thresholds.to_dict(),
    }


@dataclass(frozen=True)
class SectionCOAttainment:
    section: SectionInfo
    co: OutcomeInfo
    total_students: int
    students_meeting_target: int
    percentage_meeting_target: Decimal
    attainment_level: int
    average_attainment: Decimal
    weighted_average_attainment: Decimal
    thresholds: object
    student_attainments: Tuple[StudentCOAttainment, ...] = ()

    def __post_init__(self):
        _check_percentage('percentage_meeting_target', self.percentage_meeting_target)

    def to_dict(self, include_students=True):
        data = {'section': self.section.to_dict()}
        data.update(_attainment_stats_dict(self))
        if include_students:
            data['student_attainments'] = [s.to_dict() for s in self.student_attainments]
        return data


@dataclass(frozen=True)
class CourseCOAttainment:
    course: CourseInfo
    co: OutcomeInfo
    total_students: int
    students_meeting_target: int
    percentage_meeting_target: Decimal
    attainment_level: int
    average_attainment: Decimal
    weighted_average_attainment: Decimal
    thresholds: object
    section_attainments: Tuple[SectionCOAttainment, ...] = ()
    student_attainments: Tuple[StudentCOAttainment, ...] = ()

    def __post_init__(self):
        _check_percentage('percentage_meeting_target', self.percentage_meeting_target)

    def to_dict(self, include_students=True):
        data = {'course': self.course.to_dict()}
        data.update(_attainment_stats_dict(self))
        data['section_attainments'] = [s.to_dict(include_students=False) for s in self.section_attainments]
        if include_students:
            data['student_attainments'] = [s.to_dict() for s in self.student_attainments]
        return data


@dataclass(frozen=True)
class ComprehensiveCOAttainment:
    """All active COs of a course at course level"""
    course: CourseInfo
    thresholds: object
    total_students: int
    co_attainments: Tuple[CourseCOAttainment, ...]
    unattained_outcomes: Tuple[Tuple[OutcomeInfo, str], ...] = ()
    calculated_at: datetime = field(default_factory=datetime.now)

    def student_attainments(self):
        for co_attainment in self.co_attainments:
            yield from co_attainment.student_attainments

    def to_dict(self, include_students=True):
        return {
            'course': self.course.to_dict(),
            'thresholds': self.thresholds.to_dict(),
            'total_students': self.total_students,
            'co_attainments': [c.to_dict(include_students=include_students) for c in self.co_attainments],
            'no_data_outcomes': [
                {'co': co.to_dict(), 'reason': reason} for co, reason in self.unattained_outcomes
            ],
            'calculated_at': self.calculated_at.isoformat(),
        }


# --- PO attainment ---

@dataclass(frozen=True)
class POContribution:
    """One CO->PO mapping that fed a PO's direct attainment"""
    co: OutcomeInfo
    course_code: str
    co_attainment: Decimal
    level: int

    @property
    def weighted_value(self):
        return self.co_attainment * self.level

    def to_dict(self):
        return {
            'co': self.co.to_dict(),
            'course_code': self.course_code,
            'co_attainment': float(self.co_attainment),
            'mapping_level': self.level,
        }


@dataclass(frozen=True)
class POAttainment:
    po: OutcomeInfo
    target_level: Decimal
    direct_attainment: Optional[Decimal]
    indirect_attainment: Optional[Decimal]
    final_attainment: Decimal
    status: str
    attained: bool
    total_cos: int
    mapped_cos: int
    avg_mapping_level: Decimal
    co_coverage_factor: Decimal
    contributions: Tuple[POContribution, ...] = ()

    def to_dict(self):
        return {
            'po': self.po.to_dict(),
            'target_level': float(self.target_level),
            'direct_attainment': _float(self.direct_attainment),
            'indirect_attainment': _float(self.indirect_attainment),
            'final_attainment': float(self.final_attainment),
            'status': self.status,
            'attained': self.attained,
            'total_cos': self.total_cos,
            'mapped_cos': self.mapped_cos,
            'avg_mapping_level': float(self.avg_mapping_level),
            'co_coverage_factor': float(self.co_coverage_factor),
            'contributions': [c.to_dict() for c in self.contributions],
        }


@dataclass(frozen=True)
class ProgramPOAttainmentSummary:
    program: ProgramInfo
    academic_year: Optional[str]
    target_level: Decimal
    overall_attainment: Decimal
    nba_compliance_score: Decimal
    total_pos: int
    attained_pos: int
    level3_pos: int
    level2_pos: int
    level1_pos: int
    not_attained_pos: int
    is_compliant: bool
    po_attainments: Tuple[POAttainment, ...]
    recommendations: Tuple[str, ...]
    calculated_at: datetime

    def to_dict(self):
        return {
            'program': self.program.to_dict(),
            'academic_year': self.academic_year,
            'target_level': float(self.target_level),
            'overall_attainment': float(self.overall_attainment),
            'nba_compliance_score': float(self.nba_compliance_score),
            'total_pos': self.total_pos,
            'attained_pos': self.attained_pos,
            'level3_pos': self.level3_pos,
            'level2_pos': self.level2_pos,
            'level1_pos': self.level1_pos,
            'not_attained_pos': self.not_attained_pos,
            'is_compliant': self.is_compliant,
            'po_attainments': [p.to_dict() for p in self.po_attainments],
            'recommendations': list(self.recommendations),
            'calculated_at': self.calculated_at.isoformat(),
        }


@dataclass(frozen=True)
class BatchPOAttainmentSummary(ProgramPOAttainmentSummary):
    batch: BatchInfo
    total_courses: int
    completed_courses: int

    def to_dict(self):
        data = super().to_dict()
        data['batch'] = self.batch.to_dict()
        data['total_courses'] = self.total_courses
        data['completed_courses'] = self.completed_courses
        return data


@dataclass(frozen=True)
class SaveReport:
    """Outcome of a batch save"""
    course_id: int
    academic_year: str
    created: int = 0
    updated: int = 0

    @property
    def saved(self):
        return self.created + self.updated

    def to_dict(self):
        return {
            'course_id': self.course_id,
            'academic_year': self.academic_year,
            'saved': self.saved,
            'created': self.created,
            'updated': self.updated,
        }
