"""Item routes: browse, nearby search and owner CRUD."""

from flask import Blueprint, request, jsonify, current_app
from lendit import db
from lendit.constants import validate_category
from lendit.models import Item, ItemStatus, Transaction, User
from lendit.services.pricing import is_premium
from lendit.services.transactions import HOLDING_STATUSES
from lendit.utils import token_required, token_optional
from lendit.utils.geo import get_bounding_box, distance

items_bp = Blueprint('items', __name__)

EDITABLE_FIELDS = {'title', 'description', 'category', 'price', 'image_urls', 'location', 'latitude', 'longitude'}
MAX_IMAGES = 3


def _validate_item_data(data, partial=False):
    """Validate item fields. Returns (cleaned, error)."""
    cleaned = {}

    if not partial:
        missing = [k for k in ('title', 'description', 'category', 'price') if data.get(k) in (None, '')]
        if missing:
            return None, f"Missing required fields: {', '.join(missing)}"

    unknown = set(data.keys()) - EDITABLE_FIELDS
    if unknown:
        return None, f"Unknown fields: {', '.join(sorted(unknown))}"

    for field, max_len in (('title', 255), ('description', 5000), ('location', 255)):
        if field in data and data[field] is not None:
            if not isinstance(data[field], str) or not data[field].strip():
                return None, f"{field} must be a non-empty string"
            if len(data[field]) > max_len:
                return None, f"{field} must be less than {max_len} characters"
            cleaned[field] = data[field].strip()

    if 'category' in data:
        if not isinstance(data['category'], str):
            return None, "category must be a string"
        category, error = validate_category(data['category'])
        if error:
            return None, error
        cleaned['category'] = category

    if 'price' in data:
        try:
            price = float(data['price'])
        except (TypeError, ValueError):
            return None, "price must be a number"
        if price < 0:
            return None, "price must be non-negative"
        cleaned['price'] = round(price, 2)

    if 'image_urls' in data:
        urls = data['image_urls'] or []
        if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
            return None, "image_urls must be a list of strings"
        if len(urls) > MAX_IMAGES:
            return None, f"At most {MAX_IMAGES} images are allowed"
        cleaned['image_urls'] = urls

    for field, bound in (('latitude', 90), ('longitude', 180)):
        if field in data and data[field] is not None:
            try:
                value = float(data[field])
            except (TypeError, ValueError):
                return None, f"{field} must be a number"
            if value < -bound or value > bound:
                return None, f"{field} must be between -{bound} and {bound}"
            cleaned[field] = value

    return cleaned, None


def _has_active_transaction(item_id):
    return Transaction.query.filter(
        Transaction.item_id == item_id,
        Transaction.status.in_(HOLDING_STATUSES)
    ).first() is not None


@items_bp.route('', methods=['GET'])
def get_items():
    """Get items with filtering and pagination.

    Query params:
    - category, status (default: available), q (title search)
    - page (default: 1), per_page (default: 20)
    """
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 20, type=int), 100)
    category = request.args.get('category')
    status = request.args.get('status', ItemStatus.AVAILABLE)
    search = request.args.get('q')

    query = Item.query
    if status != 'all':
        query = query.filter_by(status=status)
    if category:
        query = query.filter_by(category=category)
    if search:
        query = query.filter(Item.title.ilike(f'%{search}%'))

    items = query.order_by(Item.created_at.desc()).paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        'items': [item.to_dict() for item in items.items],
        'total': items.total,
        'pages': items.pages,
        'current_page': page
    }), 200


@items_bp.route('/nearby', methods=['GET'])
def get_nearby_items():
    """Get available items within a radius, nearest first.

    Query params:
    - latitude, longitude (required)
    - radius: Search radius in km (default: 25)
    - category
    """
    latitude = request.args.get('latitude', type=float)
    longitude = request.args.get('longitude', type=float)
    radius = request.args.get('radius', 25, type=float)
    category = request.args.get('category')

    if latitude is None or longitude is None:
        return jsonify({'error': 'latitude and longitude are required'}), 400
    if radius <= 0:
        return jsonify({'error': 'radius must be positive'}), 400

    min_lat, max_lat, min_lng, max_lng = get_bounding_box(latitude, longitude, radius)
    query = Item.query.filter(
        Item.status == ItemStatus.AVAILABLE,
        Item.latitude.between(min_lat, max_lat),
        Item.longitude.between(min_lng, max_lng)
    )
    if category:
        query = query.filter_by(category=category)

    results = []
    for item in query.all():
        d = distance(latitude, longitude, item.latitude, item.longitude)
        if d <= radius:
            results.append((d, item))
    results.sort(key=lambda pair: pair[0])

    return jsonify({
        'items': [item.to_dict(distance=d) for d, item in results],
        'total': len(results),
        'radius': radius
    }), 200


@items_bp.route('/mine', methods=['GET'])
@token_required
def get_my_items(current_user_id):
    """Get items owned by the authenticated user."""
    items = Item.query.filter_by(owner_id=current_user_id).order_by(Item.created_at.desc()).all()
    return jsonify({'items': [item.to_dict() for item in items], 'total': len(items)}), 200


@items_bp.route('/<int:item_id>', methods=['GET'])
@token_optional
def get_item(current_user_id, item_id):
    """Get a specific item by ID."""
    item = Item.query.get(item_id)
    if not item:
        return jsonify({'error': 'Item not found'}), 404
    data = item.to_dict()
    data['is_owner'] = current_user_id is not None and current_user_id == item.owner_id
    return jsonify(data), 200


@items_bp.route('', methods=['POST'])
@token_required
def create_item(current_user_id):
    """Create a new item. Free users may list a limited number of items."""
    try:
        user = User.query.get(current_user_id)
        if not user:
            return jsonify({'error': 'User not found'}), 404

        data = request.get_json() or {}
        cleaned, error = _validate_item_data(data)
        if error:
            return jsonify({'error': error}), 400

        if not is_premium(user):
            limit = current_app.config['FREE_LISTING_LIMIT']
            count = Item.query.filter_by(owner_id=current_user_id).count()
            if count >= limit:
                return jsonify({
                    'error': f'Free accounts can list up to {limit} items. Upgrade to premium for unlimited listings.',
                    'current_count': count,
                    'max_allowed': limit
                }), 403

        if 'latitude' not in cleaned and user.latitude is not None:
            cleaned['latitude'] = user.latitude
            cleaned['longitude'] = user.longitude

        item = Item(owner_id=current_user_id, status=ItemStatus.AVAILABLE, **cleaned)
        db.session.add(item)
        db.session.commit()

        current_app.logger.info(f'Item {item.id} listed by user {current_user_id}')
        return jsonify(item.to_dict()), 201
    except Exception:
        db.session.rollback()
        raise


@items_bp.route('/<int:item_id>', methods=['PUT'])
@token_required
def update_item(current_user_id, item_id):
    """Update an item (owner only)."""
    try:
        item = Item.query.get(item_id)
        if not item:
            return jsonify({'error': 'Item not found'}), 404
        if item.owner_id != current_user_id:
            return jsonify({'error': 'Not authorized'}), 403

        cleaned, error = _validate_item_data(request.get_json() or {}, partial=True)
        if error:
            return jsonify({'error': error}), 400

        for key, value in cleaned.items():
            setattr(item, key, value)
        db.session.commit()

        return jsonify(item.to_dict()), 200
    except Exception:
        db.session.rollback()
        raise


@items_bp.route('/<int:item_id>/status', methods=['PATCH'])
@token_required
def update_item_status(current_user_id, item_id):
    """Owner toggles an item between available and unavailable."""
    item = Item.query.get(item_id)
    if not item:
        return jsonify({'error': 'Item not found'}), 404
    if item.owner_id != current_user_id:
        return jsonify({'error': 'Not authorized'}), 403

    status = (request.get_json() or {}).get('status')
    if status not in ItemStatus.OWNER_SETTABLE:
        return jsonify({'error': f'status must be one of: {", ".join(ItemStatus.OWNER_SETTABLE)}'}), 400
    if _has_active_transaction(item.id):
        return jsonify({'error': 'Item has an active transaction'}), 400

    item.status = status
    db.session.commit()
    return jsonify(item.to_dict()), 200


@items_bp.route('/<int:item_id>', methods=['DELETE'])
@token_required
def delete_item(current_user_id, item_id):
    """Delete an item (owner only, not while lent out or requested)."""
    try:
        item = Item.query.get(item_id)
        if not item:
            return jsonify({'error': 'Item not found'}), 404
        if item.owner_id != current_user_id:
            return jsonify({'error': 'Not authorized'}), 403
        if _has_active_transaction(item.id):
            return jsonify({'error': 'Item has an active transaction'}), 400
        if item.transactions.count():
            # Keep history intact; hide the item instead
            item.status = ItemStatus.UNAVAILABLE
            db.session.commit()
            return jsonify({'message': 'Item has past transactions and was marked unavailable'}), 200

        db.session.delete(item)
        db.session.commit()

        return jsonify({'message': 'Item deleted successfully'}), 200
    except Exception:
        db.session.rollback()
        raise
