# stockkeeper/extensions.py

from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_wtf.csrf import CSRFProtect
from sqlalchemy.engine.url import make_url


def engine_options(config):
    """Build SQLAlchemy engine options for the configured database.

    Args:
        config: Flask config mapping

    Returns:
        dict: Options suitable for SQLALCHEMY_ENGINE_OPTIONS
    """
    url = make_url(config['SQLALCHEMY_DATABASE_URI'])

    # Common options safe for all databases
    options = {
        'pool_pre_ping': True,
    }

    # Pool sizing only applies to non-SQLite databases
    if not url.drivername.startswith('sqlite'):
        options.update({
            'pool_size': config.get('SQLALCHEMY_POOL_SIZE', 10),
            'pool_recycle': config.get('SQLALCHEMY_POOL_RECYCLE', 300),
            'pool_timeout': config.get('SQLALCHEMY_POOL_TIMEOUT', 20),
            'max_overflow': config.get('SQLALCHEMY_MAX_OVERFLOW', 5),
        })

        # Database-specific connect_args
        if url.drivername.startswith('postgresql'):
            options['connect_args'] = {
                'connect_timeout': config.get('SQLALCHEMY_CONNECT_TIMEOUT', 10),
                'keepalives': 1,
                'keepalives_idle': 30,
                'keepalives_interval': 10,
                'keepalives_count': 5
            }
        elif url.drivername.startswith('mysql'):
            options['connect_args'] = {
                'connect_timeout': config.get('SQLALCHEMY_CONNECT_TIMEOUT', 10)
            }

    return options


# Initialize Flask extensions
db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
limiter = Limiter(key_func=get_remote_address)
csrf = CSRFProtect()


def init_app(app):
    """Initialize Flask extensions.

    Args:
        app: Flask application instance
    """
    app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', engine_options(app.config))
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db, render_as_batch=True)
    limiter.init_app(app)
    csrf.init_app(app)
