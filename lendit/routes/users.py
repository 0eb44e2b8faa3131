"""User routes: public profiles, a user's items, premium tier and subscriptions."""

from flask import Blueprint, jsonify, current_app, request
from lendit.models import User, Item
from lendit.services import subscriptions
from lendit.services.pricing import get_discount_rate, is_premium
from lendit.utils import token_required

users_bp = Blueprint('users', __name__)


def premium_summary(user):
    """Tier details the client needs to show pricing and listing limits."""
    premium = is_premium(user)
    subscription = subscriptions.current_subscription(user.id)
    return {
        'premium_status': user.premium_status,
        'is_premium': premium,
        'premium_until': user.premium_until.isoformat() if user.premium_until else None,
        'discount_rate': get_discount_rate(user),
        'max_listings': None if premium else current_app.config['FREE_LISTING_LIMIT'],
        'current_listings': Item.query.filter_by(owner_id=user.id).count(),
        'priority': {'listing': premium, 'requests': premium},
        'subscription': subscription.to_dict() if subscription else None,
    }


@users_bp.route('/me/premium', methods=['GET'])
@token_required
def get_premium_status(current_user_id):
    """Get the current user's premium tier."""
    user = User.query.get(current_user_id)
    if not user:
        return jsonify({'error': 'User not found'}), 404
    return jsonify(premium_summary(user)), 200


@users_bp.route('/me/premium', methods=['POST'])
@token_required
def activate_premium(current_user_id):
    """Start a premium subscription. Billing is handled outside this service.

    Body (optional):
        plan: 'monthly' (default) or 'yearly'
    """
    data = request.get_json(silent=True) or {}
    subscriptions.subscribe(current_user_id, data.get('plan', 'monthly'))
    user = User.query.get(current_user_id)
    return jsonify(premium_summary(user)), 201


@users_bp.route('/me/premium', methods=['DELETE'])
@token_required
def cancel_premium(current_user_id):
    """Cancel auto-renewal; premium continues until the period ends.

    Body (optional):
        reason: why the user is leaving
    """
    data = request.get_json(silent=True) or {}
    subscription = subscriptions.cancel(current_user_id, data.get('reason'))
    user = User.query.get(current_user_id)
    summary = premium_summary(user)
    summary['message'] = (
        f'Auto-renewal cancelled. Premium benefits will continue until {subscription.end_date.date().isoformat()}'
    )
    return jsonify(summary), 200


@users_bp.route('/me/subscription', methods=['GET'])
@token_required
def get_subscription(current_user_id):
    """Get the current user's running subscription, if any."""
    subscription = subscriptions.current_subscription(current_user_id)
    if not subscription:
        return jsonify({'has_subscription': False, 'message': 'No active subscription found'}), 200
    return jsonify({'has_subscription': True, 'subscription': subscription.to_dict()}), 200


@users_bp.route('/me/subscription/history', methods=['GET'])
@token_required
def get_subscription_history(current_user_id):
    """List the current user's subscription periods, newest first.

    Query params:
    - page (default: 1), per_page (default: 10)
    """
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 10, type=int), 100)
    periods = subscriptions.history(current_user_id, page, per_page)
    return jsonify({
        'subscriptions': [s.to_dict() for s in periods.items],
        'total': periods.total,
        'pages': periods.pages,
        'current_page': page
    }), 200


@users_bp.route('/<int:user_id>', methods=['GET'])
def get_user(user_id):
    """Get a user's public profile."""
    user = User.query.get(user_id)
    if not user or not user.is_active:
        return jsonify({'error': 'User not found'}), 404
    return jsonify(user.to_public_dict()), 200


@users_bp.route('/<int:user_id>/items', methods=['GET'])
def get_user_items(user_id):
    """Get items listed by a user."""
    user = User.query.get(user_id)
    if not user:
        return jsonify({'error': 'User not found'}), 404

    items = Item.query.filter_by(owner_id=user_id).order_by(Item.created_at.desc()).all()
    return jsonify({
        'items': [item.to_dict() for item in items],
        'total': len(items)
    }), 200
