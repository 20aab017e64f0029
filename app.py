import os
import logging
import argparse
from flask import Flask, request, jsonify
from flask_migrate import Migrate

# Import db from models
from models import db
# Import database migration function
from db_migrations import check_and_update_database

# Configure logging level from environment variable
def configure_logging():
    """Configure logging based on environment settings"""
    log_level = os.environ.get('LOG_LEVEL', 'WARNING').upper()

    # Map string levels to logging constants
    level_mapping = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL
    }

    actual_level = level_mapping.get(log_level, logging.WARNING)

    # Setup logging
    logging.basicConfig(
        filename=os.environ.get('LOG_FILE', 'app.log'),
        level=actual_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    return actual_level

def create_app(test_config=None):
    app = Flask(__name__)

    # Get the absolute path to the current directory
    base_dir = os.path.abspath(os.path.dirname(__file__))

    # Configuration
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev_key_for_local_use')
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get(
        'DATABASE_URL', f'sqlite:///{os.path.join(base_dir, "instance", "attainment_data.db")}')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    # Attainment defaults, overridden by the attainment_setting row when present
    app.config['ATTAINMENT_DIRECT_WEIGHT'] = os.environ.get('ATTAINMENT_DIRECT_WEIGHT', '0.8')
    app.config['ATTAINMENT_INDIRECT_WEIGHT'] = os.environ.get('ATTAINMENT_INDIRECT_WEIGHT', '0.2')
    app.config['ATTAINMENT_PO_TARGET_LEVEL'] = os.environ.get('ATTAINMENT_PO_TARGET_LEVEL', '2.0')
    app.config['ATTAINMENT_MIN_COMPLIANCE'] = os.environ.get('ATTAINMENT_MIN_COMPLIANCE', '0.6')
    app.config['ATTAINMENT_MAX_WORKERS'] = int(os.environ.get('ATTAINMENT_MAX_WORKERS', '1'))

    if test_config:
        app.config.update(test_config)
    else:
        # Ensure instance folder exists for the default SQLite database
        os.makedirs(os.path.join(base_dir, 'instance'), exist_ok=True)

        # Configure logging
        log_level = configure_logging()

        # Log the current configuration
        if log_level <= logging.INFO:
            logging.info(f"Application started with log level: {logging.getLevelName(log_level)}")

    # Initialize extensions with app
    db.init_app(app)
    migrate = Migrate(app, db)

    # Register blueprints
    from routes.attainment_routes import attainment_bp

    app.register_blueprint(attainment_bp)

    # Create tables if they don't exist
    with app.app_context():
        db.create_all()
        # Run database migrations to update schema for existing installations
        check_and_update_database(app)

    @app.route('/')
    def index():
        return jsonify({
            'success': True,
            'service': 'attainment',
            'endpoints': sorted(str(rule) for rule in app.url_map.iter_rules()
                                if rule.endpoint.startswith('attainment.'))
        })

    # Error handlers
    @app.errorhandler(404)
    def page_not_found(e):
        logging.warning(f"404 error: {request.path}")
        return jsonify({'success': False, 'message': 'Not found'}), 404

    @app.errorhandler(500)
    def server_error(e):
        logging.error(f"500 error: {str(e)}")
        return jsonify({'success': False, 'message': 'Internal server error'}), 500

    return app

if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='OBE attainment calculation service')
    parser.add_argument('--port', type=int, default=5000, help='Port to run the server on')
    parser.add_argument('--host', default='127.0.0.1', help='Host interface to bind')
    parser.add_argument('--debug', action='store_true', help='Run Flask in debug mode')
    args = parser.parse_args()

    app = create_app()
    app.run(host=args.host, port=args.port, debug=args.debug)
