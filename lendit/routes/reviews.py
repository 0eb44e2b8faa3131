"""Review routes for ratings and feedback.

REVIEWS ARE RESTRICTED TO COMPLETED TRANSACTIONS ONLY.
Each party can review the other exactly once per transaction:
- The borrower rates the lender (counts toward the lender rating)
- The lender rates the borrower (counts toward the borrower rating)
"""

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.exc import StaleDataError
from lendit import db
from lendit.models import Review, Transaction, TransactionStatus, User
from lendit.utils import token_required

reviews_bp = Blueprint('reviews', __name__)

MAX_COMMENT_LENGTH = 500


def _counterpart(transaction, role):
    """The user being reviewed and the role they are rated in."""
    if role == 'lender':
        return transaction.borrower_id, 'borrower'
    return transaction.lender_id, 'lender'


@reviews_bp.route('', methods=['POST'])
@token_required
def create_review(current_user_id):
    """Review the other party of a completed transaction.

    Body: transaction_id, rating (1-5), comment (optional)
    """
    data = request.get_json(silent=True) or {}

    transaction_id = data.get('transaction_id')
    rating = data.get('rating')
    comment = data.get('comment')

    if not transaction_id:
        return jsonify({'error': 'transaction_id is required'}), 400
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        return jsonify({'error': 'Rating must be an integer between 1 and 5'}), 400
    if comment is not None and (not isinstance(comment, str) or len(comment) > MAX_COMMENT_LENGTH):
        return jsonify({'error': f'Comment must be a string of at most {MAX_COMMENT_LENGTH} characters'}), 400

    transaction = Transaction.query.get(transaction_id)
    if not transaction:
        return jsonify({'error': 'Transaction not found'}), 404

    role = transaction.role_of(current_user_id)
    if not role:
        return jsonify({'error': 'You are not part of this transaction'}), 403
    if transaction.status != TransactionStatus.COMPLETED:
        return jsonify({'error': 'Transaction must be completed before leaving reviews'}), 400

    already = transaction.lender_reviewed if role == 'lender' else transaction.borrower_reviewed
    if already:
        return jsonify({'error': 'You have already reviewed this transaction'}), 400

    reviewee_id, reviewee_role = _counterpart(transaction, role)
    reviewee = User.query.get(reviewee_id)

    try:
        review = Review(
            transaction_id=transaction.id,
            reviewer_id=current_user_id,
            reviewee_id=reviewee_id,
            reviewer_role=role,
            rating=rating,
            comment=comment
        )
        db.session.add(review)
        if role == 'lender':
            transaction.lender_reviewed = True
        else:
            transaction.borrower_reviewed = True
        if reviewee:
            reviewee.add_rating(reviewee_role, rating)
        db.session.commit()
    except (IntegrityError, StaleDataError):
        db.session.rollback()
        return jsonify({'error': 'Transaction was modified by another request, please retry'}), 409

    current_app.logger.info(f'User {current_user_id} reviewed transaction {transaction.id} ({rating} stars)')
    return jsonify({
        'message': 'Review submitted',
        'review': review.to_dict()
    }), 201


@reviews_bp.route('/user/<int:user_id>', methods=['GET'])
def get_user_reviews(user_id):
    """Reviews a user received.

    Query params:
    - role: 'lender' or 'borrower' (the role the user was rated in)
    """
    user = User.query.get(user_id)
    if not user:
        return jsonify({'error': 'User not found'}), 404

    role = request.args.get('role')
    query = Review.query.options(
        joinedload(Review.reviewer)
    ).filter_by(reviewee_id=user_id)

    if role:
        if role not in Review.ROLES:
            return jsonify({'error': f"role must be one of: {', '.join(Review.ROLES)}"}), 400
        # Rated as lender means the borrower wrote the review
        query = query.filter_by(reviewer_role='borrower' if role == 'lender' else 'lender')

    reviews = query.order_by(Review.created_at.desc()).all()
    return jsonify({
        'reviews': [review.to_dict() for review in reviews],
        'total': len(reviews),
        'lender_rating': {'average': user.lender_rating_average, 'count': user.lender_rating_count},
        'borrower_rating': {'average': user.borrower_rating_average, 'count': user.borrower_rating_count}
    }), 200


@reviews_bp.route('/can-review/<int:transaction_id>', methods=['GET'])
@token_required
def can_review(current_user_id, transaction_id):
    """Check if current user can review this transaction and who they would review."""
    transaction = Transaction.query.get(transaction_id)
    if not transaction:
        return jsonify({'error': 'Transaction not found'}), 404

    role = transaction.role_of(current_user_id)
    if not role:
        return jsonify({
            'can_review': False,
            'reason': 'You are not part of this transaction'
        }), 200

    if transaction.status != TransactionStatus.COMPLETED:
        return jsonify({
            'can_review': False,
            'reason': 'Transaction must be completed before leaving reviews'
        }), 200

    already = transaction.lender_reviewed if role == 'lender' else transaction.borrower_reviewed
    if already:
        return jsonify({
            'can_review': False,
            'reason': 'You have already reviewed this transaction'
        }), 200

    reviewee_id, reviewee_role = _counterpart(transaction, role)
    return jsonify({
        'can_review': True,
        'reviewer_role': role,
        'reviewee_id': reviewee_id,
        'reviewee_role': reviewee_role
    }), 200
