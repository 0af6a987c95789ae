# stockkeeper/models/user.py

from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from sqlalchemy.orm import validates

from stockkeeper.extensions import db
from stockkeeper.timeutils import utcnow


class User(UserMixin, db.Model):
    """User model representing application users.

    Inherits from:
        UserMixin: Provides default implementations for Flask-Login interface
        db.Model: SQLAlchemy model base class
    """
    ROLE_ADMIN = 'admin'
    ROLE_USER = 'user'
    ROLES = (ROLE_ADMIN, ROLE_USER)

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    role = db.Column(
        db.String(20),
        nullable=False,
        default=ROLE_USER
    )
    created_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utcnow
    )
    last_login = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    logs = db.relationship('ActivityLog', backref=db.backref('log_owner', lazy='joined'), lazy='dynamic')

    @validates('role')
    def validate_role(self, key, value):
        if value not in self.ROLES:
            raise ValueError(f"Invalid role: {value}")
        return value

    def set_password(self, password):
        """Set user's password hash from plain text password.

        Args:
            password: Plain text password to hash
        """
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if plain text password matches hash.

        Args:
            password: Plain text password to verify

        Returns:
            bool: True if password matches, False otherwise
        """
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def is_admin(self):
        """Check if user has the elevated (admin) role.

        Returns:
            bool: True if user is admin, False otherwise
        """
        return self.role == self.ROLE_ADMIN

    def update_last_login(self):
        """Update user's last login timestamp to current time."""
        self.last_login = utcnow()
        db.session.commit()

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'role': self.role,
        }

    def __repr__(self):
        return f'<User {self.username}>'
