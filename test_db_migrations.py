from decimal import Decimal

from sqlalchemy import inspect, text

from app import create_app
from attainment.repository import AttainmentRepository
from db_migrations import check_and_update_database
from models import db, AttainmentSetting


def test_default_settings_created_once(app):
    assert AttainmentSetting.query.count() == 1
    assert check_and_update_database(app) is True
    assert AttainmentSetting.query.count() == 1


def test_unique_keys_present(app):
    inspector = inspect(db.engine)
    unique_sets = [tuple(c['column_names']) for c in inspector.get_unique_constraints('co_attainment')]
    unique_sets += [tuple(i['column_names']) for i in inspector.get_indexes('co_attainment') if i.get('unique')]
    assert ('course_id', 'section_id', 'co_id', 'student_id', 'academic_year') in unique_sets


def test_missing_columns_are_added(app):
    with db.engine.begin() as connection:
        connection.execute(text("DROP TABLE course_outcome_program_outcome"))
        connection.execute(text(
            "CREATE TABLE course_outcome_program_outcome ("
            "course_outcome_id INTEGER NOT NULL, program_outcome_id INTEGER NOT NULL, "
            "PRIMARY KEY (course_outcome_id, program_outcome_id))"
        ))

    assert check_and_update_database(app) is True

    columns = {c['name'] for c in inspect(db.engine).get_columns('course_outcome_program_outcome')}
    assert {'level', 'is_active'} <= columns


def test_default_settings_seeded_from_config():
    configured = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'ATTAINMENT_DIRECT_WEIGHT': '0.6',
        'ATTAINMENT_INDIRECT_WEIGHT': '0.4',
        'ATTAINMENT_PO_TARGET_LEVEL': '1.0',
        'ATTAINMENT_MIN_COMPLIANCE': '0.5',
    })
    with configured.app_context():
        repository = AttainmentRepository()
        weights = repository.get_attainment_weights()
        po_config = repository.get_po_config()
        assert weights.direct_weight == Decimal('0.6')
        assert weights.indirect_weight == Decimal('0.4')
        assert po_config.target_level == Decimal('1.0')
        assert po_config.min_compliance_fraction == Decimal('0.5')
        db.session.remove()
        db.drop_all()
