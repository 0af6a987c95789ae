from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from stockkeeper.errors import AlreadyProcessedError, NotFoundError, ValidationError
from stockkeeper.extensions import db
from stockkeeper.models import ProcurementRequest, Unit
from stockkeeper.services import require_admin, require_positive_int, require_text
from stockkeeper.timeutils import end_of_day, start_of_day, utcnow
from stockkeeper.utils import create_activity_log


def request_procurement(name, quantity, unit_id, requester, now=None) -> ProcurementRequest:
    """File a new procurement proposal. Any authenticated user may do this."""
    name = require_text(name, "Item name is required.")
    quantity = require_positive_int(quantity, "Quantity must be a positive whole number.")
    if unit_id is None or unit_id == '':
        raise ValidationError("Unit is required.")
    if db.session.get(Unit, unit_id) is None:
        raise NotFoundError("Unit not found.")
    now = now or utcnow()

    procurement = ProcurementRequest(
        name=name,
        quantity=quantity,
        unit_id=unit_id,
        requested_by_id=requester.id,
        status=ProcurementRequest.STATUS_PENDING,
        requested_at=now,
    )
    try:
        db.session.add(procurement)
        db.session.flush()
        create_activity_log(
            requester,
            'request',
            procurement=procurement,
            notes=f"Requested {quantity} {name}",
            timestamp=now,
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error while filing procurement request")
        raise

    current_app.logger.info(
        f"User {requester.username} requested procurement of {quantity} {name}"
    )
    return procurement


def _decide(request_id, actor, new_status, now):
    """Move a pending request to a terminal status with one conditional UPDATE.

    The status check and the write happen in the same statement, so two
    admins deciding the same request cannot both succeed.
    """
    now = now or utcnow()
    try:
        result = db.session.execute(
            update(ProcurementRequest)
            .where(
                ProcurementRequest.id == request_id,
                ProcurementRequest.status == ProcurementRequest.STATUS_PENDING,
            )
            .values(
                status=new_status,
                confirmed_at=now,
                confirmed_by_id=actor.id,
            )
            .execution_options(synchronize_session='fetch')
        )
        if result.rowcount == 0:
            db.session.rollback()
            if db.session.get(ProcurementRequest, request_id) is None:
                raise NotFoundError("Procurement request not found.")
            raise AlreadyProcessedError("This procurement request has already been processed.")

        procurement = db.session.get(ProcurementRequest, request_id)
        create_activity_log(
            actor,
            'confirm' if new_status == ProcurementRequest.STATUS_CONFIRMED else 'reject',
            procurement=procurement,
            notes=f"{procurement.name} x{procurement.quantity}",
            timestamp=now,
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"DB error while deciding procurement {request_id}")
        raise

    current_app.logger.info(
        f"User {actor.username} marked procurement {request_id} as {new_status}"
    )
    return db.session.get(ProcurementRequest, request_id)


def confirm_procurement(request_id, actor, now=None) -> ProcurementRequest:
    require_admin(actor, "confirm procurement requests")
    return _decide(request_id, actor, ProcurementRequest.STATUS_CONFIRMED, now)


def reject_procurement(request_id, actor, now=None) -> ProcurementRequest:
    """Reject a pending request.

    Only pending requests can be rejected; a confirmed request stays confirmed.
    """
    require_admin(actor, "reject procurement requests")
    return _decide(request_id, actor, ProcurementRequest.STATUS_REJECTED, now)


def delete_procurement(request_id, actor) -> None:
    """Delete a request regardless of its status."""
    require_admin(actor, "delete procurement requests")
    procurement = db.session.get(ProcurementRequest, request_id)
    if procurement is None:
        raise NotFoundError("Procurement request not found.")
    try:
        create_activity_log(
            actor,
            'delete',
            procurement=procurement,
            notes=f"Deleted {procurement.status} request for {procurement.name}",
        )
        db.session.delete(procurement)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"DB error while deleting procurement {request_id}")
        raise

    current_app.logger.info(f"User {actor.username} deleted procurement {request_id}")


def list_procurements(status=None, requested_by=None) -> list[ProcurementRequest]:
    query = ProcurementRequest.query
    if status:
        if status not in ProcurementRequest.STATUSES:
            raise ValidationError(f"Unknown status: {status}")
        query = query.filter(ProcurementRequest.status == status)
    if requested_by is not None:
        query = query.filter(ProcurementRequest.requested_by_id == requested_by.id)
    return query.order_by(
        ProcurementRequest.requested_at.desc(), ProcurementRequest.id.desc()
    ).all()


def confirmed_procurements(start=None, end=None) -> list[ProcurementRequest]:
    """Confirmed requests, optionally within an inclusive confirmation date range."""
    query = ProcurementRequest.query.filter(
        ProcurementRequest.status == ProcurementRequest.STATUS_CONFIRMED
    )
    if start is not None:
        query = query.filter(ProcurementRequest.confirmed_at >= start_of_day(start))
    if end is not None:
        query = query.filter(ProcurementRequest.confirmed_at <= end_of_day(end))
    return query.order_by(ProcurementRequest.confirmed_at.desc()).all()
