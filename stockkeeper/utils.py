# stockkeeper/utils.py

from stockkeeper.models import ActivityLog
from stockkeeper.extensions import db


def create_activity_log(
    user,
    action_type,
    lot=None,
    procurement=None,
    quantity=None,
    notes=None,
    timestamp=None
):
    """Create a user activity log entry.

    The entry is added to the current session and committed together with
    the change it describes.

    Args:
        user: The user performing the action
        action_type: Type of action (receive/take/expire/request/confirm/reject/delete)
        lot: Stock lot being affected
        procurement: Procurement request being affected
        quantity: Stock change (+/-)
        notes: Optional notes about the action
        timestamp: When the action happened, defaults to now

    Returns:
        ActivityLog: The created log entry
    """
    log = ActivityLog(
        user_id=user.id,
        action_type=action_type,
        lot_id=lot.id if lot else None,
        procurement_id=procurement.id if procurement else None,
        quantity=quantity,
        notes=notes
    )
    if timestamp is not None:
        log.timestamp = timestamp
    db.session.add(log)
    return log
