from flask_wtf import FlaskForm
from wtforms import (
    StringField,
    IntegerField,
    DateField
)
from wtforms.validators import DataRequired, InputRequired, NumberRange, Optional, ValidationError


class ReceiveLotForm(FlaskForm):
    """Form for recording a lot entering stock.

    Every field except the expiration date is required.
    """
    name = StringField('Item Name', validators=[DataRequired()])
    quantity = IntegerField('Quantity', validators=[
        InputRequired(),
        NumberRange(min=1, message="Quantity must be at least 1")
    ])
    category_id = IntegerField('Category', validators=[InputRequired()])
    unit_id = IntegerField('Unit', validators=[InputRequired()])
    period_id = IntegerField('Period', validators=[InputRequired()])
    storage_id = IntegerField('Storage', validators=[InputRequired()])
    received_date = DateField('Date Received', validators=[DataRequired()])
    expiration_date = DateField('Expiration Date', validators=[Optional()])

    def validate_expiration_date(self, field):
        if field.data and self.received_date.data and field.data < self.received_date.data:
            raise ValidationError('Expiration date cannot be before the date received')


class TakeItemForm(FlaskForm):
    """Form for dispensing an item from stock."""
    item_name = StringField('Item', validators=[DataRequired(message='Select an item to take')])
    quantity = IntegerField('Quantity', validators=[
        InputRequired(),
        NumberRange(min=1, message="Quantity must be at least 1")
    ])


class ProcurementForm(FlaskForm):
    """Form for proposing a purchase."""
    name = StringField('Item Name', validators=[DataRequired()])
    quantity = IntegerField('Quantity', validators=[
        InputRequired(),
        NumberRange(min=1, message="Quantity must be at least 1")
    ])
    unit_id = IntegerField('Unit', validators=[InputRequired()])


class DateRangeForm(FlaskForm):
    """Optional inclusive date range read from the query string."""
    start = DateField('Start Date', validators=[Optional()])
    end = DateField('End Date', validators=[Optional()])

    def validate_end(self, field):
        if field.data and self.start.data and field.data < self.start.data:
            raise ValidationError('End date cannot be before start date')
