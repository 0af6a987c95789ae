# stockkeeper/__init__.py

from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError
from config import Config
from stockkeeper.errors import InventoryError
from stockkeeper.extensions import db, login_manager, init_app
from stockkeeper.models import User
import os
import logging
from logging.handlers import RotatingFileHandler
from sqlalchemy.exc import SQLAlchemyError, OperationalError, DisconnectionError


def configure_logging(app):
    """Attach production log handlers unless running debug or tests."""
    if app.debug or app.testing:
        return

    if app.config.get('LOG_TO_STDOUT'):
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.INFO)
        app.logger.addHandler(stream_handler)
    else:
        if not os.path.exists('logs'):
            os.mkdir('logs')
        file_handler = RotatingFileHandler('logs/stockkeeper.log',
                                           maxBytes=10240000,
                                           backupCount=10)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s '
            '[in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

    app.logger.setLevel(logging.INFO)
    app.logger.info('Stockkeeper startup')


def ensure_admin(app):
    """Create the bootstrap admin from config if it does not exist yet."""
    if not app.config.get('ADMIN_PASSWORD'):
        return
    if User.query.filter_by(username=app.config['ADMIN_USERNAME']).first():
        return
    admin = User(
        username=app.config['ADMIN_USERNAME'],
        email=app.config['ADMIN_EMAIL'],
        role=User.ROLE_ADMIN
    )
    admin.set_password(app.config['ADMIN_PASSWORD'])
    db.session.add(admin)
    db.session.commit()
    app.logger.info(f"Created admin user {admin.username}")


def create_app(config_class=Config):
    """Application factory.

    Args:
        config_class: Config class, or a mapping of overrides applied on
            top of the base Config
    """
    app = Flask(__name__)
    if isinstance(config_class, dict):
        app.config.from_object(Config)
        app.config.update(config_class)
    else:
        app.config.from_object(config_class)

    configure_logging(app)

    # Initialize Flask extensions
    init_app(app)

    login_manager.session_protection = 'strong'

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Please log in to access this page.'}), 401

    from stockkeeper.main import bp as main_bp
    from stockkeeper.auth import bp as auth_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix='/auth')

    # Register CLI commands
    from stockkeeper.cli import init_cli
    init_cli(app)

    with app.app_context():
        db.create_all()
        ensure_admin(app)

    @app.errorhandler(InventoryError)
    def handle_inventory_error(error):
        app.logger.info(f'{type(error).__name__}: {error.message}')
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        return jsonify({'error': error.description}), 400

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(error):
        app.logger.error(f'Database error occurred: {str(error)}')
        if isinstance(error, OperationalError):
            return jsonify({'error': 'Database connection error. Please try again later.'}), 503
        elif isinstance(error, DisconnectionError):
            db.session.remove()  # Clean up the session
            return jsonify({'error': 'Lost connection to database. Please refresh the page.'}), 500
        return jsonify({'error': 'An unexpected database error occurred.'}), 500

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.teardown_appcontext
    def cleanup(resp_or_exc):
        """Ensure proper cleanup of database sessions"""
        db.session.remove()

    return app
