# stockkeeper/models/__init__.py

from stockkeeper.models.user import User
from stockkeeper.models.reference import Category, Unit, Period, Storage
from stockkeeper.models.stock_lot import StockLot
from stockkeeper.models.allocation import Allocation
from stockkeeper.models.expired_record import ExpiredRecord
from stockkeeper.models.procurement import ProcurementRequest
from stockkeeper.models.activity_log import ActivityLog

__all__ = [
    'User',
    'Category',
    'Unit',
    'Period',
    'Storage',
    'StockLot',
    'Allocation',
    'ExpiredRecord',
    'ProcurementRequest',
    'ActivityLog',
]
