# stockkeeper/models/procurement.py

from sqlalchemy.orm import validates

from stockkeeper.extensions import db
from stockkeeper.timeutils import utcnow, isoformat


class ProcurementRequest(db.Model):
    """A proposed purchase waiting for, or past, an admin decision.

    ``pending`` is the only non-terminal status. ``confirmed_at`` and
    ``confirmed_by`` record whoever decided, for rejections too.
    """
    __tablename__ = 'procurement_request'

    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_REJECTED = 'rejected'
    STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_REJECTED)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    requested_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    confirmed_at = db.Column(db.DateTime)

    unit_id = db.Column(db.Integer, db.ForeignKey('unit.id'), nullable=False)
    requested_by_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    confirmed_by_id = db.Column(db.Integer, db.ForeignKey('user.id'))

    unit = db.relationship('Unit')
    requested_by = db.relationship('User', foreign_keys=[requested_by_id])
    confirmed_by = db.relationship('User', foreign_keys=[confirmed_by_id])

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='ck_procurement_quantity_positive'),
    )

    @validates('status')
    def validate_status(self, key, value):
        if value not in self.STATUSES:
            raise ValueError("Invalid procurement status")
        return value

    @property
    def is_pending(self):
        return self.status == self.STATUS_PENDING

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'quantity': self.quantity,
            'unit': self.unit.name if self.unit else None,
            'status': self.status,
            'requested_at': isoformat(self.requested_at),
            'requested_by': self.requested_by.username if self.requested_by else None,
            'confirmed_at': isoformat(self.confirmed_at),
            'confirmed_by': self.confirmed_by.username if self.confirmed_by else None,
        }

    def __repr__(self):
        return f'<ProcurementRequest {self.name} ({self.status})>'
