"""
Section and course roll-up of student CO attainment.
"""
import logging
from concurrent.futures import ThreadPoolExecutor

from attainment.student_calculator import calculate_for_student
from attainment.target import evaluate_target
from attainment.values import (SectionCOAttainment, CourseCOAttainment, ComprehensiveCOAttainment, NoData,
                               StudentCOAttainment, NO_ENROLLMENTS, NO_QUESTIONS, NO_SECTIONS, NO_RESULTS,
                               NO_COURSE_OUTCOMES, round_decimal, ZERO, HUNDRED)


def classify_attainment_level(percentage_meeting_target, thresholds):
    """Map the share of students meeting the target to an attainment level 0-3"""
    if percentage_meeting_target >= thresholds.level3:
        return 3
    if percentage_meeting_target >= thresholds.level2:
        return 2
    if percentage_meeting_target >= thresholds.level1:
        return 1
    return 0


def _summarize(student_results, thresholds):
    """Counts, share meeting target, level and averages over evaluated students"""
    total = len(student_results)
    meeting = sum(1 for r in student_results if r.met_target)
    # Classification uses the unrounded share
    raw_share = HUNDRED * meeting / total if total else ZERO
    return {
        'total_students': total,
        'students_meeting_target': meeting,
        'percentage_meeting_target': round_decimal(raw_share),
        'attainment_level': classify_attainment_level(raw_share, thresholds),
        'average_attainment': round_decimal(
            sum((r.percentage for r in student_results), ZERO) / total if total else ZERO),
        'weighted_average_attainment': round_decimal(
            sum((r.weighted_percentage for r in student_results), ZERO) / total if total else ZERO),
    }


def aggregate_section(course_data, outcome, section):
    """
    CO attainment of one section.

    Every actively enrolled student of the section is evaluated; students whose
    calculation yields NoData are dropped. Returns NoData when the section has
    no enrollments or the CO has no questions for it.
    """
    students = course_data.active_enrollments(section.id)
    if not students:
        return NoData(NO_ENROLLMENTS)

    results = []
    for student in students:
        result = evaluate_target(calculate_for_student(course_data, outcome, student, section.id),
                                 course_data.thresholds)
        if isinstance(result, StudentCOAttainment):
            results.append(result)
    if not results:
        return NoData(NO_QUESTIONS)

    summary = _summarize(results, course_data.thresholds)
    logging.info(f"{course_data.course.code} {outcome.code} section {section.name}: "
                 f"{summary['students_meeting_target']}/{summary['total_students']} met target, "
                 f"level {summary['attainment_level']}")
    return SectionCOAttainment(
        section=section,
        co=outcome,
        thresholds=course_data.thresholds,
        student_attainments=tuple(results),
        **summary
    )


def aggregate_course(course_data, outcome, max_workers=1):
    """
    CO attainment of a whole course, composed from its sections.

    Section results are reduced in section order, so the outcome does not
    depend on max_workers.
    """
    sections = course_data.sections
    if not sections:
        return NoData(NO_SECTIONS)
    if not course_data.questions_mapped_to_co(outcome.id):
        return NoData(NO_QUESTIONS)

    if max_workers > 1 and len(sections) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            section_results = list(executor.map(lambda s: aggregate_section(course_data, outcome, s), sections))
    else:
        section_results = [aggregate_section(course_data, outcome, s) for s in sections]

    reasons = {r.reason for r in section_results if isinstance(r, NoData)}
    section_results = [r for r in section_results if isinstance(r, SectionCOAttainment)]
    if not section_results:
        return NoData(reasons.pop() if len(reasons) == 1 else NO_RESULTS)

    students = tuple(s for section in section_results for s in section.student_attainments)
    summary = _summarize(students, course_data.thresholds)
    logging.info(f"{course_data.course.code} {outcome.code}: level {summary['attainment_level']} "
                 f"across {len(section_results)} sections")
    return CourseCOAttainment(
        course=course_data.course,
        co=outcome,
        thresholds=course_data.thresholds,
        section_attainments=tuple(section_results),
        student_attainments=students,
        **summary
    )


def aggregate_comprehensive(course_data, max_workers=1):
    """Course-level attainment for every active CO, ordered by code"""
    if not course_data.outcomes:
        return NoData(NO_COURSE_OUTCOMES)

    attained, unattained = [], []
    for outcome in course_data.outcomes:
        result = aggregate_course(course_data, outcome, max_workers)
        if isinstance(result, CourseCOAttainment):
            attained.append(result)
        else:
            unattained.append((outcome, result.reason))

    return ComprehensiveCOAttainment(
        course=course_data.course,
        thresholds=course_data.thresholds,
        total_students=max((r.total_students for r in attained), default=0),
        co_attainments=tuple(attained),
        unattained_outcomes=tuple(unattained),
    )
