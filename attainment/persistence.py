"""
Idempotent storage of attainment results.

Rows are upserted on their natural keys, so re-saving the same results never
creates duplicates. Saves for one course are serialized by a per-course lock
and a batch is written in a single transaction.
"""
import logging
import threading
import weakref
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from models import db, COAttainment, POAttainmentRecord
from attainment.errors import PersistenceError
from attainment.values import SaveReport

# Entries disappear once no save holds the lock
_locks = weakref.WeakValueDictionary()
_locks_guard = threading.Lock()


def course_lock(course_id):
    """Lock shared by every save touching the given course"""
    with _locks_guard:
        lock = _locks.get(course_id)
        if lock is None:
            lock = _locks[course_id] = threading.Lock()
        return lock


def _upsert_co_row(course_id, co_id, student_id, percentage, met_target, academic_year, section_id):
    """Insert or update one row in the current session; returns True when a row was created"""
    section_key = '' if section_id is None else str(section_id)
    year_key = academic_year or ''
    row = COAttainment.query.filter_by(
        course_id=course_id, section_id=section_key, co_id=co_id,
        student_id=student_id, academic_year=year_key
    ).first()
    now = datetime.now()
    if row is None:
        db.session.add(COAttainment(
            course_id=course_id, section_id=section_key, co_id=co_id, student_id=student_id,
            academic_year=year_key, percentage=percentage, met_target=met_target, calculated_at=now))
        return True
    row.percentage = percentage
    row.met_target = met_target
    row.calculated_at = now
    return False


def upsert_co_attainment(course_id, co_id, student_id, percentage, met_target, academic_year='', section_id=''):
    """Save a single student CO attainment. section_id '' stores a course-level row."""
    with course_lock(course_id):
        try:
            created = _upsert_co_row(course_id, co_id, student_id, percentage, met_target,
                                     academic_year, section_id)
            db.session.commit()
            return created
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error saving CO attainment for course {course_id}, CO {co_id}, "
                          f"student {student_id}: {str(e)}")
            raise PersistenceError(f"Could not save CO attainment: {str(e)}") from e


def save_student_attainments(course_id, student_attainments, academic_year='', section_id=''):
    """
    Save many StudentCOAttainment results at once.

    All rows are written in one transaction; on failure nothing is kept and
    PersistenceError is raised.
    """
    created = updated = 0
    with course_lock(course_id):
        try:
            for result in student_attainments:
                if _upsert_co_row(course_id, result.co.id, result.student.id, result.weighted_percentage,
                                  result.met_target, academic_year, section_id):
                    created += 1
                else:
                    updated += 1
                # Pending inserts must be visible to the next lookup on the same key
                db.session.flush()
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error saving CO attainments for course {course_id}: {str(e)}")
            raise PersistenceError(f"Could not save CO attainments for course {course_id}: {str(e)}") from e

    logging.info(f"Saved CO attainments for course {course_id}: {created} created, {updated} updated")
    return SaveReport(course_id=course_id, academic_year=academic_year or '', created=created, updated=updated)


def upsert_po_attainment(program_id, po_attainment, batch_id='', academic_year=''):
    """Insert or update one PO attainment row in the current session; returns True when created"""
    batch_key = '' if batch_id is None else str(batch_id)
    year_key = academic_year or ''
    row = POAttainmentRecord.query.filter_by(
        program_id=program_id, batch_id=batch_key, po_id=po_attainment.po.id, academic_year=year_key
    ).first()
    created = row is None
    if created:
        row = POAttainmentRecord(program_id=program_id, batch_id=batch_key,
                                 po_id=po_attainment.po.id, academic_year=year_key)
        db.session.add(row)
    row.direct_attainment = po_attainment.direct_attainment
    row.indirect_attainment = po_attainment.indirect_attainment
    row.final_attainment = po_attainment.final_attainment
    row.status = po_attainment.status
    row.calculated_at = datetime.now()
    return created


def save_po_attainment_summary(summary, batch_id=''):
    """Persist every PO of a program or batch summary in one transaction"""
    created = updated = 0
    try:
        for po_attainment in summary.po_attainments:
            if upsert_po_attainment(summary.program.id, po_attainment, batch_id, summary.academic_year):
                created += 1
            else:
                updated += 1
            db.session.flush()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logging.error(f"Error saving PO attainments for program {summary.program.id}: {str(e)}")
        raise PersistenceError(f"Could not save PO attainments: {str(e)}") from e

    logging.info(f"Saved PO attainments for program {summary.program.code}: {created} created, {updated} updated")
    return {'created': created, 'updated': updated, 'saved': created + updated}
