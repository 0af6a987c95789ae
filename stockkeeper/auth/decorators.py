from functools import wraps
from flask import jsonify
from flask_login import current_user


def admin_required(f):
    """Decorator to restrict access to admin users only.

    This decorator checks if the current user is both authenticated
    and has the admin role. If not, it returns a JSON 401 or 403 response.

    Args:
        f: The view function to decorate

    Returns:
        decorated_function: The decorated view function
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'error': 'Please log in to access this page.'}), 401

        if not current_user.is_admin():
            return jsonify({'error': 'Admin access required.'}), 403

        return f(*args, **kwargs)
    return decorated_function
