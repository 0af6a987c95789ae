# stockkeeper/models/activity_log.py

from stockkeeper.extensions import db
from stockkeeper.timeutils import utcnow, isoformat


class ActivityLog(db.Model):
    """Audit row for a user action on stock or procurement."""
    __tablename__ = 'activity_log'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    action_type = db.Column(db.String(20), nullable=False)  # receive, take, expire, request, confirm, reject, delete
    lot_id = db.Column(db.Integer, db.ForeignKey('stock_lot.id'))
    procurement_id = db.Column(db.Integer)  # no FK, deleted requests keep their log
    quantity = db.Column(db.Integer)  # signed stock change
    notes = db.Column(db.Text)
    timestamp = db.Column(db.DateTime, default=utcnow, nullable=False)

    lot = db.relationship('StockLot')

    def to_dict(self):
        return {
            'id': self.id,
            'user': self.log_owner.username if self.log_owner else None,
            'action_type': self.action_type,
            'lot_id': self.lot_id,
            'procurement_id': self.procurement_id,
            'quantity': self.quantity,
            'notes': self.notes,
            'timestamp': isoformat(self.timestamp),
        }

    def __repr__(self):
        return f'<ActivityLog {self.action_type} by User {self.user_id}>'
