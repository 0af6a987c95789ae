# stockkeeper/services/__init__.py

from stockkeeper.errors import AuthorizationError, ValidationError


def require_admin(actor, action):
    """Raise AuthorizationError unless ``actor`` holds the elevated role."""
    if actor is None or not actor.is_admin():
        raise AuthorizationError(f"Only an admin may {action}.")


def require_text(value, message):
    if value is None or not str(value).strip():
        raise ValidationError(message)
    return str(value).strip()


def require_positive_int(value, message):
    # bool is an int subclass; True is not a quantity
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(message)
    return value
