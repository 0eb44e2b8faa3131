"""Authentication routes: registration, login, own profile and password change."""

from datetime import datetime
from flask import Blueprint, request, jsonify, current_app
from lendit import db, limiter
from lendit.models import User
from lendit.utils import token_required, create_token
import re

auth_bp = Blueprint('auth', __name__)

# Email validation regex
EMAIL_REGEX = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')

# Username validation: 3-30 chars, alphanumeric + underscores
USERNAME_REGEX = re.compile(r'^[a-zA-Z0-9_]{3,30}$')

ZIP_REGEX = re.compile(r'^[0-9A-Za-z -]{3,10}$')

# Allowed fields for profile update (prevent mass assignment)
PROFILE_ALLOWED_FIELDS = {
    'first_name', 'last_name', 'nickname', 'zip_code',
    'latitude', 'longitude', 'payout_account_id'
}


def _validate_profile_data(data):
    """Validate profile update fields. Returns error message or None."""
    unknown = set(data.keys()) - PROFILE_ALLOWED_FIELDS
    if unknown:
        return f"Unknown fields: {', '.join(sorted(unknown))}"

    length_limits = {
        'first_name': 50,
        'last_name': 50,
        'nickname': 50,
        'payout_account_id': 255,
    }

    for field, max_len in length_limits.items():
        if field in data and data[field] is not None:
            if not isinstance(data[field], str):
                return f"{field} must be a string"
            if len(data[field]) > max_len:
                return f"{field} must be less than {max_len} characters"

    if data.get('zip_code') is not None:
        if not isinstance(data['zip_code'], str) or not ZIP_REGEX.match(data['zip_code']):
            return "zip_code is invalid"

    for field, bound in (('latitude', 90), ('longitude', 180)):
        if field in data and data[field] is not None:
            try:
                value = float(data[field])
            except (TypeError, ValueError):
                return f"{field} must be a number"
            if value < -bound or value > bound:
                return f"{field} must be between -{bound} and {bound}"

    return None


@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per minute")
def register():
    """Register a new user account."""
    try:
        data = request.get_json()

        if not data or not all(k in data for k in ['username', 'email', 'password']):
            return jsonify({'error': 'Missing required fields'}), 400

        username = str(data['username']).strip()
        email = str(data['email']).strip().lower()
        password = str(data['password'])

        if not USERNAME_REGEX.match(username):
            return jsonify({'error': 'Username must be 3-30 characters and contain only letters, numbers, and underscores'}), 400

        if not EMAIL_REGEX.match(email) or len(email) > 254:
            return jsonify({'error': 'Invalid email format'}), 400

        if len(password) < 6:
            return jsonify({'error': 'Password must be at least 6 characters'}), 400

        if len(password) > 128:
            return jsonify({'error': 'Password must be less than 128 characters'}), 400

        profile = {k: data[k] for k in ('first_name', 'last_name', 'nickname', 'zip_code') if data.get(k) is not None}
        error = _validate_profile_data(profile)
        if error:
            return jsonify({'error': error}), 400

        if User.query.filter_by(username=username).first():
            return jsonify({'error': 'Username already exists'}), 409

        if User.query.filter_by(email=email).first():
            return jsonify({'error': 'Email already exists'}), 409

        user = User(username=username, email=email, **profile)
        user.set_password(password)

        db.session.add(user)
        db.session.commit()

        return jsonify({
            'message': 'User registered successfully',
            'token': create_token(user),
            'user': user.to_dict()
        }), 201
    except Exception:
        db.session.rollback()
        raise


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    """Authenticate user and return JWT token."""
    data = request.get_json()

    if not data or not all(k in data for k in ['email', 'password']):
        return jsonify({'error': 'Missing email or password'}), 400

    user = User.query.filter_by(email=str(data['email']).strip().lower()).first()

    if not user or not user.check_password(data['password']):
        return jsonify({'error': 'Invalid email or password'}), 401

    if not user.is_active:
        return jsonify({'error': 'Account is disabled'}), 403

    return jsonify({
        'message': 'Login successful',
        'token': create_token(user),
        'user': user.to_dict()
    }), 200


@auth_bp.route('/profile', methods=['GET'])
@token_required
def get_profile(current_user_id):
    """Get current user profile."""
    user = User.query.get(current_user_id)

    if not user:
        return jsonify({'error': 'User not found'}), 404

    return jsonify(user.to_dict()), 200


@auth_bp.route('/profile', methods=['PUT'])
@token_required
def update_profile(current_user_id):
    """Update current user profile."""
    try:
        user = User.query.get(current_user_id)
        if not user:
            return jsonify({'error': 'User not found'}), 404

        data = request.get_json() or {}
        error = _validate_profile_data(data)
        if error:
            return jsonify({'error': error}), 400

        for key, value in data.items():
            setattr(user, key, value)

        db.session.commit()

        return jsonify({
            'message': 'Profile updated successfully',
            'user': user.to_dict()
        }), 200
    except Exception:
        db.session.rollback()
        raise


@auth_bp.route('/password', methods=['PUT'])
@limiter.limit("5 per minute")
@token_required
def change_password(current_user_id):
    """Change the current user's password after verifying the current one."""
    try:
        data = request.get_json()

        if not data or not all(k in data for k in ['current_password', 'new_password']):
            return jsonify({'error': 'Both current and new passwords are required'}), 400

        new_password = str(data['new_password'])

        if len(new_password) < 6:
            return jsonify({'error': 'Password must be at least 6 characters'}), 400

        if len(new_password) > 128:
            return jsonify({'error': 'Password must be less than 128 characters'}), 400

        user = User.query.get(current_user_id)

        if not user:
            return jsonify({'error': 'User not found'}), 404

        if not user.check_password(str(data['current_password'])):
            return jsonify({'error': 'Current password is incorrect'}), 401

        user.set_password(new_password)
        user.updated_at = datetime.utcnow()
        db.session.commit()

        current_app.logger.info(f'User {user.id} changed password')

        return jsonify({'message': 'Password updated'}), 200
    except Exception:
        db.session.rollback()
        raise
