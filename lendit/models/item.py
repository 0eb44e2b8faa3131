"""Item model for lendable listings."""

from datetime import datetime
from lendit import db


class ItemStatus:
    AVAILABLE = 'available'
    UNAVAILABLE = 'unavailable'
    REQUESTED = 'requested'
    BORROWED = 'borrowed'
    LENT = 'lent'
    RETURNED = 'returned'

    # Statuses an owner may set by hand
    OWNER_SETTABLE = (AVAILABLE, UNAVAILABLE)


class Item(db.Model):
    """Item an owner offers for weekly lending."""

    __tablename__ = 'items'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(50), nullable=False, index=True)
    price = db.Column(db.Float, nullable=False, index=True)  # Weekly lending fee
    currency = db.Column(db.String(3), default='EUR', nullable=False)
    image_urls = db.Column(db.JSON, nullable=True)  # Array of image URLs
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    status = db.Column(db.String(20), default=ItemStatus.AVAILABLE, nullable=False, index=True)
    location = db.Column(db.String(255), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self, distance=None):
        """Convert item to dictionary."""
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'price': self.price,
            'currency': self.currency,
            'image_urls': self.image_urls or [],
            'owner_id': self.owner_id,
            'owner': self.owner.username if self.owner else None,
            'status': self.status,
            'location': self.location,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }
        if distance is not None:
            data['distance'] = round(distance, 1)
        return data

    def __repr__(self):
        return f'<Item {self.id}: {self.title}>'
