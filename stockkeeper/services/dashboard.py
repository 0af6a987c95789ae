from __future__ import annotations

from stockkeeper.models import (
    Allocation,
    Category,
    ExpiredRecord,
    Period,
    ProcurementRequest,
    StockLot,
    Storage,
    Unit,
    User,
)


def dashboard_counts(actor) -> dict[str, int]:
    """Record counts for the dashboard cards.

    Non-admins only count their own procurement requests.
    """
    procurements = ProcurementRequest.query
    if not actor.is_admin():
        procurements = procurements.filter(ProcurementRequest.requested_by_id == actor.id)

    return {
        'lots_all': StockLot.query.count(),
        'lots_active': StockLot.query.filter(
            StockLot.status == StockLot.STATUS_ACTIVE,
            StockLot.quantity > 0,
        ).count(),
        'expired_records': ExpiredRecord.query.count(),
        'allocations': Allocation.query.count(),
        'procurements': procurements.count(),
        'categories': Category.query.count(),
        'units': Unit.query.count(),
        'periods': Period.query.count(),
        'storages': Storage.query.count(),
        'users': User.query.count(),
    }
