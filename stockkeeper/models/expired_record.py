# stockkeeper/models/expired_record.py

from stockkeeper.extensions import db
from stockkeeper.timeutils import utcnow, isoformat


class ExpiredRecord(db.Model):
    """Snapshot of a lot taken when an admin moves it to the expired ledger."""
    __tablename__ = 'expired_record'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    label = db.Column(db.String(40), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    expiration_date = db.Column(db.Date, nullable=False)
    received_date = db.Column(db.Date, nullable=False)
    expired_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    category_id = db.Column(db.Integer, db.ForeignKey('category.id'), nullable=False)
    unit_id = db.Column(db.Integer, db.ForeignKey('unit.id'), nullable=False)
    period_id = db.Column(db.Integer, db.ForeignKey('period.id'), nullable=False)
    storage_id = db.Column(db.Integer, db.ForeignKey('storage.id'), nullable=False)
    # One record per lot: a lot can only be migrated once
    lot_id = db.Column(db.Integer, db.ForeignKey('stock_lot.id'), nullable=False, unique=True)
    moved_by_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    category = db.relationship('Category')
    unit = db.relationship('Unit')
    period = db.relationship('Period')
    storage = db.relationship('Storage')
    lot = db.relationship('StockLot', backref=db.backref('expired_record', uselist=False))
    moved_by = db.relationship('User')

    @classmethod
    def from_lot(cls, lot, moved_by, expired_at):
        return cls(
            name=lot.name,
            label=lot.label,
            quantity=lot.quantity,
            expiration_date=lot.expiration_date,
            received_date=lot.received_date,
            category_id=lot.category_id,
            unit_id=lot.unit_id,
            period_id=lot.period_id,
            storage_id=lot.storage_id,
            lot_id=lot.id,
            moved_by_id=moved_by.id,
            expired_at=expired_at,
        )

    def to_dict(self):
        return {
            'id': self.id,
            'lot_id': self.lot_id,
            'name': self.name,
            'label': self.label,
            'quantity': self.quantity,
            'expiration_date': isoformat(self.expiration_date),
            'received_date': isoformat(self.received_date),
            'expired_at': isoformat(self.expired_at),
            'category': self.category.name if self.category else None,
            'unit': self.unit.name if self.unit else None,
            'period': self.period.name if self.period else None,
            'storage': self.storage.name if self.storage else None,
            'moved_by': self.moved_by.username if self.moved_by else None,
        }

    def __repr__(self):
        return f'<ExpiredRecord {self.label}>'
