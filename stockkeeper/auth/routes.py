from flask import current_app, jsonify
from flask_login import current_user, login_user, logout_user, login_required
from flask_wtf.csrf import generate_csrf
from stockkeeper.auth import bp
from stockkeeper.auth.forms import LoginForm
from stockkeeper.models import User
from stockkeeper.extensions import limiter


@bp.route('/csrf')
def csrf_token():
    """Token that POST requests send back in the X-CSRFToken header."""
    return jsonify({'csrf_token': generate_csrf()})


@bp.route('/login', methods=['POST'])
@limiter.limit("5 per minute")  # Protect against brute force
def login():
    if current_user.is_authenticated:
        return jsonify({'user': current_user.to_dict()})

    form = LoginForm()
    if not form.validate_on_submit():
        return jsonify({'error': 'Invalid input', 'fields': form.errors}), 400

    user = User.query.filter_by(username=form.username.data).first()
    if user is None or not user.check_password(form.password.data):
        current_app.logger.warning(f"Failed login for {form.username.data}")
        return jsonify({'error': 'Invalid username or password'}), 401
    if not user.is_active:
        return jsonify({'error': 'Account is disabled'}), 403

    login_user(user, remember=form.remember_me.data)
    user.update_last_login()
    return jsonify({'user': user.to_dict()})


@bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out'})
