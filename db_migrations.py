import logging
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

# Columns added after the first release: table -> [(column, DDL type and default)]
REQUIRED_COLUMNS = {
    'course_outcome_program_outcome': [
        ('level', 'INTEGER NOT NULL DEFAULT 1'),
        ('is_active', 'BOOLEAN NOT NULL DEFAULT 1'),
    ],
    'course': [
        ('status', "VARCHAR(20) NOT NULL DEFAULT 'FUTURE'"),
        ('target_percentage', 'NUMERIC(5,2) NOT NULL DEFAULT 60.0'),
        ('level1_threshold', 'NUMERIC(5,2) NOT NULL DEFAULT 60.0'),
        ('level2_threshold', 'NUMERIC(5,2) NOT NULL DEFAULT 75.0'),
        ('level3_threshold', 'NUMERIC(5,2) NOT NULL DEFAULT 85.0'),
    ],
    'assessment': [
        ('section_id', 'INTEGER'),
    ],
}

# Natural keys of the derived attainment tables
UNIQUE_INDEXES = {
    'co_attainment': ('uq_co_attainment_key', ['course_id', 'section_id', 'co_id', 'student_id', 'academic_year']),
    'po_attainment': ('uq_po_attainment_key', ['program_id', 'batch_id', 'po_id', 'academic_year']),
}

def _add_missing_columns(engine, inspector, table_names):
    for table, columns in REQUIRED_COLUMNS.items():
        if table not in table_names:
            logging.warning(f"{table} table not found. It will be created when the app runs.")
            continue
        existing = {c['name'] for c in inspector.get_columns(table)}
        for column, ddl in columns:
            if column in existing:
                continue
            logging.info(f"Adding {column} column to {table} table")
            with engine.begin() as connection:
                connection.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
            logging.info(f"Successfully added {column} column to {table} table")

def _ensure_unique_indexes(engine, inspector, table_names):
    for table, (index_name, columns) in UNIQUE_INDEXES.items():
        if table not in table_names:
            continue
        unique_sets = [tuple(c['column_names']) for c in inspector.get_unique_constraints(table)]
        unique_sets += [tuple(i['column_names']) for i in inspector.get_indexes(table) if i.get('unique')]
        if tuple(columns) in unique_sets:
            continue
        logging.info(f"Creating unique index {index_name} on {table}")
        with engine.begin() as connection:
            connection.execute(text(
                f"CREATE UNIQUE INDEX IF NOT EXISTS {index_name} ON {table} ({', '.join(columns)})"
            ))

def _ensure_default_settings(app):
    """Seed the settings row from the ATTAINMENT_* config values on first run"""
    from models import db, AttainmentSetting
    from attainment.config import WeightConfig, POConfig
    if AttainmentSetting.query.first() is not None:
        return
    weights = WeightConfig(app.config.get('ATTAINMENT_DIRECT_WEIGHT', '0.8'),
                           app.config.get('ATTAINMENT_INDIRECT_WEIGHT', '0.2'))
    po_config = POConfig(target_level=app.config.get('ATTAINMENT_PO_TARGET_LEVEL', '2.0'),
                         min_compliance_fraction=app.config.get('ATTAINMENT_MIN_COMPLIANCE', '0.6'))
    logging.info(f"Creating default attainment settings (direct {weights.direct_weight} / "
                 f"indirect {weights.indirect_weight}, PO target {po_config.target_level})")
    db.session.add(AttainmentSetting(
        direct_weight=weights.direct_weight,
        indirect_weight=weights.indirect_weight,
        po_target_level=po_config.target_level,
        po_level1_threshold=po_config.level1,
        po_level2_threshold=po_config.level2,
        po_level3_threshold=po_config.level3,
        min_compliance_fraction=po_config.min_compliance_fraction,
    ))
    db.session.commit()

def check_and_update_database(app):
    """
    Check and update the database schema if necessary.
    This function runs at app startup to handle migrations for new columns.
    """
    logging.info("Checking database schema for attainment tables...")

    try:
        with app.app_context():
            from models import db
            engine = db.engine
            inspector = inspect(engine)
            table_names = inspector.get_table_names()

            _add_missing_columns(engine, inspector, table_names)
            _ensure_unique_indexes(engine, inspector, table_names)
            if 'attainment_setting' in table_names:
                _ensure_default_settings(app)

        logging.info("Database schema check completed")
        return True
    except SQLAlchemyError as e:
        logging.error(f"Error during database migration: {str(e)}")
        return False
