"""User model for authentication and user management."""

from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
from lendit import db
from lendit.utils.user_helpers import get_display_name


class PremiumStatus:
    NONE = 'none'
    ACTIVE = 'active'
    CANCELLED = 'cancelled'
    EXPIRED = 'expired'


class User(db.Model):
    """User model for the lending platform."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(80), nullable=True)
    last_name = db.Column(db.String(80), nullable=True)
    nickname = db.Column(db.String(80), nullable=True)
    zip_code = db.Column(db.String(10), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    premium_status = db.Column(db.String(20), default=PremiumStatus.NONE, nullable=False)
    premium_until = db.Column(db.DateTime, nullable=True)  # End of the paid period after cancelling
    payout_account_id = db.Column(db.String(255), nullable=True)  # Connected account for transfers

    # Ratings received in each role
    lender_rating_average = db.Column(db.Float, default=0.0, nullable=False)
    lender_rating_count = db.Column(db.Integer, default=0, nullable=False)
    borrower_rating_average = db.Column(db.Float, default=0.0, nullable=False)
    borrower_rating_count = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    items = db.relationship('Item', backref='owner', lazy=True, foreign_keys='Item.owner_id')

    def set_password(self, password):
        """Hash and set the user password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if the provided password matches the hash."""
        return check_password_hash(self.password_hash, password)

    @property
    def is_premium(self):
        if self.premium_status == PremiumStatus.ACTIVE:
            return True
        # Cancelled premium keeps its benefits until the paid period ends
        if self.premium_status == PremiumStatus.CANCELLED and self.premium_until is not None:
            return datetime.utcnow() < self.premium_until
        return False

    def add_rating(self, role, rating):
        """Fold a new rating into the running average for the given role."""
        if role == 'lender':
            count = self.lender_rating_count + 1
            self.lender_rating_average = (self.lender_rating_average * self.lender_rating_count + rating) / count
            self.lender_rating_count = count
        else:
            count = self.borrower_rating_count + 1
            self.borrower_rating_average = (self.borrower_rating_average * self.borrower_rating_count + rating) / count
            self.borrower_rating_count = count

    def to_public_dict(self):
        """Fields visible to other users."""
        return {
            'id': self.id,
            'username': self.username,
            'nickname': self.nickname,
            'display_name': get_display_name(self),
            'first_name': self.first_name,
            'last_name': self.last_name,
            'zip_code': self.zip_code,
            'is_premium': self.is_premium,
            'lender_rating': {'average': round(self.lender_rating_average, 2), 'count': self.lender_rating_count},
            'borrower_rating': {'average': round(self.borrower_rating_average, 2), 'count': self.borrower_rating_count},
            'created_at': self.created_at.isoformat(),
        }

    def to_dict(self):
        """Convert user to dictionary."""
        data = self.to_public_dict()
        data.update({
            'email': self.email,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'is_active': self.is_active,
            'premium_status': self.premium_status,
            'premium_until': self.premium_until.isoformat() if self.premium_until else None,
            'payout_account_id': self.payout_account_id,
            'updated_at': self.updated_at.isoformat(),
        })
        return data

    def __repr__(self):
        return f'<User {self.username}>'
