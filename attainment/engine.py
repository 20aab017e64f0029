"""
Entry point for attainment calculations.

``AttainmentEngine`` loads data through ``AttainmentRepository`` and hands it
to the pure calculation stages:

    student calculator -> target evaluator -> section/course aggregator
    -> PO aggregator -> persister

Nothing is written until a save method is called, and every call recomputes
from the current data.
"""
import logging
from datetime import datetime
from decimal import Decimal

from flask import current_app, has_app_context

from attainment import persistence
from attainment.aggregator import aggregate_section, aggregate_course, aggregate_comprehensive
from attainment.po_aggregator import calculate_po_attainment, summarize_po_attainments
from attainment.repository import AttainmentRepository
from attainment.student_calculator import calculate_for_student
from attainment.target import evaluate_target
from attainment.values import (NoData, NotEnrolled, POContribution, ProgramPOAttainmentSummary,
                               BatchPOAttainmentSummary, BatchInfo, ComprehensiveCOAttainment, CourseCOAttainment,
                               SaveReport, NO_PROGRAM_OUTCOMES)


class AttainmentEngine:

    def __init__(self, repository=None, max_workers=None):
        self.repository = repository or AttainmentRepository()
        if max_workers is None:
            max_workers = current_app.config.get('ATTAINMENT_MAX_WORKERS', 1) if has_app_context() else 1
        self.max_workers = max(1, int(max_workers))

    # --- Course outcomes ---

    def calculate_student_co_attainment(self, course_id, co_id, student_id, section_id=None):
        """StudentCOAttainment, NoData when the CO has no questions, NotEnrolled for non-enrolled students"""
        data = self.repository.load_course_data(course_id)
        outcome = data.outcome(co_id)
        student = data.student(student_id)
        if student is None:
            # Raises NotFoundError for unknown students
            self.repository.get_student(student_id)
            return NotEnrolled(student_id, course_id)
        return evaluate_target(calculate_for_student(data, outcome, student, section_id), data.thresholds)

    def calculate_section_co_attainment(self, course_id, co_id, section_id):
        data = self.repository.load_course_data(course_id)
        return aggregate_section(data, data.outcome(co_id), data.section(section_id))

    def calculate_course_co_attainment(self, course_id, co_id):
        data = self.repository.load_course_data(course_id)
        return aggregate_course(data, data.outcome(co_id), self.max_workers)

    def calculate_comprehensive_co_attainment(self, course_id):
        data = self.repository.load_course_data(course_id)
        return aggregate_comprehensive(data, self.max_workers)

    def batch_save_co_attainments(self, course_id, academic_year=None):
        """Recompute every CO of the course and store each student's course-level result"""
        result = self.calculate_comprehensive_co_attainment(course_id)
        if not isinstance(result, ComprehensiveCOAttainment):
            logging.warning(f"Nothing to save for course {course_id}: {result.reason}")
            return SaveReport(course_id=course_id, academic_year=academic_year or '')
        return persistence.save_student_attainments(course_id, list(result.student_attainments()),
                                                    academic_year=academic_year or '')

    # --- Program outcomes ---

    def calculate_program_po_attainment(self, program_id, academic_year=None, course_statuses=None):
        program = self.repository.get_program(program_id)
        po_config = self.repository.get_po_config(course_statuses)
        courses = self.repository.list_courses(program_id=program_id, academic_year=academic_year,
                                               statuses=po_config.course_statuses)
        po_attainments = self._po_attainments(program_id, courses, po_config, academic_year=academic_year)
        if isinstance(po_attainments, NoData):
            return po_attainments
        summary = summarize_po_attainments(po_attainments, po_config)
        logging.info(f"Program {program.code}: {summary['attained_pos']}/{summary['total_pos']} POs attained, "
                     f"compliance {summary['nba_compliance_score']}%")
        return ProgramPOAttainmentSummary(
            program=program,
            academic_year=academic_year,
            po_attainments=tuple(po_attainments),
            calculated_at=datetime.now(),
            **summary
        )

    def calculate_batch_po_attainment(self, batch_id, academic_year=None, course_statuses=None):
        batch = self.repository.get_batch(batch_id)
        program = self.repository.get_program(batch.program_id)
        po_config = self.repository.get_po_config(course_statuses)
        all_courses = self.repository.list_courses(batch_id=batch_id, academic_year=academic_year)
        courses = [c for c in all_courses if c.status in po_config.course_statuses]
        po_attainments = self._po_attainments(program.id, courses, po_config,
                                              batch_id=batch_id, academic_year=academic_year)
        if isinstance(po_attainments, NoData):
            return po_attainments
        summary = summarize_po_attainments(po_attainments, po_config)
        logging.info(f"Batch {batch.name}: {summary['attained_pos']}/{summary['total_pos']} POs attained")
        return BatchPOAttainmentSummary(
            program=program,
            academic_year=academic_year,
            po_attainments=tuple(po_attainments),
            calculated_at=datetime.now(),
            batch=BatchInfo(batch.id, batch.name, batch.start_year, batch.end_year),
            total_courses=len(all_courses),
            completed_courses=sum(1 for c in all_courses if c.status == 'COMPLETED'),
            **summary
        )

    def calculate_course_po_attainment(self, course_id, course_statuses=None):
        """PO attainment contributed by a single course, whatever its status"""
        course = self.repository.get_course(course_id)
        if course.batch_id is None:
            return NoData(NO_PROGRAM_OUTCOMES)
        batch = self.repository.get_batch(course.batch_id)
        po_config = self.repository.get_po_config(course_statuses or (course.status,))
        return self._po_attainments(batch.program_id, [course], po_config, batch_id=batch.id)

    def save_program_po_attainment(self, program_id, academic_year=None, course_statuses=None):
        summary = self.calculate_program_po_attainment(program_id, academic_year, course_statuses)
        if isinstance(summary, NoData):
            return summary, {'created': 0, 'updated': 0, 'saved': 0}
        return summary, persistence.save_po_attainment_summary(summary)

    def save_batch_po_attainment(self, batch_id, academic_year=None, course_statuses=None):
        summary = self.calculate_batch_po_attainment(batch_id, academic_year, course_statuses)
        if isinstance(summary, NoData):
            return summary, {'created': 0, 'updated': 0, 'saved': 0}
        return summary, persistence.save_po_attainment_summary(summary, batch_id=batch_id)

    def _po_attainments(self, program_id, courses, po_config, batch_id=None, academic_year=None):
        program_outcomes = self.repository.list_program_outcomes(program_id)
        if not program_outcomes:
            return NoData(NO_PROGRAM_OUTCOMES)

        weights = self.repository.get_attainment_weights()
        course_ids = [c.id for c in courses]
        total_cos = self.repository.count_course_outcomes(course_ids)
        mappings = self.repository.list_co_po_mappings(course_ids)
        indirect = self.repository.get_indirect_attainment(
            [po.id for po in program_outcomes], program_id, batch_id=batch_id, academic_year=academic_year)

        co_levels = self._course_co_levels({course_id for course_id, _, _, _, _ in mappings})

        po_attainments = []
        for po in program_outcomes:
            contributions, levels = [], []
            for course_id, course_code, co, po_id, level in mappings:
                if po_id != po.id:
                    continue
                levels.append(level)
                co_level = co_levels.get((course_id, co.id))
                if co_level is None:
                    continue
                contributions.append(POContribution(co=co, course_code=course_code,
                                                    co_attainment=Decimal(co_level), level=level))
            po_attainments.append(calculate_po_attainment(
                po, contributions, levels, total_cos, indirect.get(po.id), weights, po_config))
        return po_attainments

    def _course_co_levels(self, course_ids):
        """(course_id, co_id) -> course-level attainment level for COs that have results"""
        levels = {}
        for course_id in sorted(course_ids):
            data = self.repository.load_course_data(course_id)
            for outcome in data.outcomes:
                result = aggregate_course(data, outcome, self.max_workers)
                if isinstance(result, CourseCOAttainment):
                    levels[(course_id, outcome.id)] = result.attainment_level
        return levels
