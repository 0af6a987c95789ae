# stockkeeper/models/stock_lot.py

from sqlalchemy.orm import validates

from stockkeeper.extensions import db
from stockkeeper.timeutils import utcnow, isoformat


class StockLot(db.Model):
    """A batch of a named item held at a storage location.

    Lots are only ever decremented by allocation and flipped to ``expired``
    by the sweeper. Writes are versioned through ``version_id`` so two
    concurrent dispenses cannot both commit against the same quantity.
    """
    __tablename__ = 'stock_lot'

    STATUS_ACTIVE = 'active'
    STATUS_EXPIRED = 'expired'
    STATUSES = (STATUS_ACTIVE, STATUS_EXPIRED)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    label = db.Column(db.String(40), nullable=False, unique=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    quantity_received = db.Column(db.Integer, nullable=False)
    expiration_date = db.Column(db.Date)
    received_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    version_id = db.Column(db.Integer, nullable=False)

    category_id = db.Column(db.Integer, db.ForeignKey('category.id'), nullable=False)
    unit_id = db.Column(db.Integer, db.ForeignKey('unit.id'), nullable=False)
    period_id = db.Column(db.Integer, db.ForeignKey('period.id'), nullable=False)
    storage_id = db.Column(db.Integer, db.ForeignKey('storage.id'), nullable=False)

    category = db.relationship('Category')
    unit = db.relationship('Unit')
    period = db.relationship('Period')
    storage = db.relationship('Storage')

    __mapper_args__ = {
        'version_id_col': version_id
    }

    __table_args__ = (
        db.CheckConstraint('quantity >= 0', name='ck_stock_lot_quantity_non_negative'),
        db.CheckConstraint('quantity <= quantity_received', name='ck_stock_lot_quantity_received'),
    )

    @validates('name')
    def validate_name(self, key, value):
        value = (value or '').strip()
        if not value:
            raise ValueError("Item name cannot be empty")
        return value

    @validates('quantity')
    def validate_quantity(self, key, value):
        value = _whole_number(value, "Quantity")
        if self.quantity_received is not None and value > self.quantity_received:
            raise ValueError("Quantity cannot exceed the quantity received")
        return value

    @validates('quantity_received')
    def validate_quantity_received(self, key, value):
        value = _whole_number(value, "Quantity received")
        if self.quantity is not None and self.quantity > value:
            raise ValueError("Quantity cannot exceed the quantity received")
        return value

    @validates('status')
    def validate_status(self, key, value):
        if value not in self.STATUSES:
            raise ValueError("Invalid lot status")
        return value

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'label': self.label,
            'quantity': self.quantity,
            'quantity_received': self.quantity_received,
            'expiration_date': isoformat(self.expiration_date),
            'received_date': isoformat(self.received_date),
            'status': self.status,
            'category': self.category.name if self.category else None,
            'unit': self.unit.name if self.unit else None,
            'period': self.period.name if self.period else None,
            'storage': self.storage.name if self.storage else None,
        }

    def __repr__(self):
        return f'<StockLot {self.label}>'


def _whole_number(value, field):
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a whole number")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{field} must be a whole number")
    try:
        value = int(value)
    except (ValueError, TypeError):
        raise ValueError(f"{field} must be a whole number")
    if value < 0:
        raise ValueError(f"{field} cannot be negative")
    return value
