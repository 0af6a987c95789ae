# stockkeeper/models/allocation.py

from stockkeeper.extensions import db
from stockkeeper.timeutils import utcnow, isoformat


class Allocation(db.Model):
    """Outgoing transaction: units drawn from one lot by one dispense request."""
    __tablename__ = 'allocation'

    id = db.Column(db.Integer, primary_key=True)
    quantity = db.Column(db.Integer, nullable=False)
    taken_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    lot_id = db.Column(db.Integer, db.ForeignKey('stock_lot.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    lot = db.relationship('StockLot', backref=db.backref('allocations', lazy='dynamic'))
    user = db.relationship('User')

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='ck_allocation_quantity_positive'),
    )

    def to_dict(self):
        lot = self.lot
        return {
            'id': self.id,
            'lot_id': self.lot_id,
            'label': lot.label if lot else None,
            'name': lot.name if lot else None,
            'quantity': self.quantity,
            'taken_at': isoformat(self.taken_at),
            'user': self.user.username if self.user else None,
        }

    def __repr__(self):
        return f'<Allocation {self.quantity} from lot {self.lot_id}>'
