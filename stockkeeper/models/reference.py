# stockkeeper/models/reference.py

from sqlalchemy.orm import validates

from stockkeeper.extensions import db


class ReferenceMixin:
    """Simple named lookup rows that stock lots point at."""

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)

    @validates('name')
    def validate_name(self, key, value):
        value = (value or '').strip()
        if not value:
            raise ValueError("Name cannot be empty")
        return value

    def to_dict(self):
        return {'id': self.id, 'name': self.name}

    def __repr__(self):
        return f'<{type(self).__name__} {self.name}>'


class Category(ReferenceMixin, db.Model):
    __tablename__ = 'category'


class Unit(ReferenceMixin, db.Model):
    __tablename__ = 'unit'


class Period(ReferenceMixin, db.Model):
    __tablename__ = 'period'


class Storage(ReferenceMixin, db.Model):
    __tablename__ = 'storage'


# Defaults used by the seed-reference command
DEFAULT_REFERENCE_DATA = {
    Category: ['Reagents', 'Consumables', 'Medicines'],
    Unit: ['Pcs', 'Box', 'Bottle', 'Pack'],
    Period: ['Semester 1', 'Semester 2'],
    Storage: ['Main Warehouse', 'Cold Room'],
}
