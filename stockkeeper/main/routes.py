# stockkeeper/main/routes.py

from flask import current_app, jsonify, request, send_file
from flask_login import current_user, login_required

from stockkeeper.auth.decorators import admin_required
from stockkeeper.exporting import (
    EXPORT_COLUMNS,
    allocation_rows,
    expired_rows,
    generate_excel,
    procurement_rows,
)
from stockkeeper.extensions import limiter
from stockkeeper.main import bp
from stockkeeper.main.forms import DateRangeForm, ProcurementForm, ReceiveLotForm, TakeItemForm
from stockkeeper.models import ActivityLog, StockLot
from stockkeeper.services.allocation import allocate, available_stock, list_allocations
from stockkeeper.services.dashboard import dashboard_counts
from stockkeeper.services.expiration import (
    current_expiry_notices,
    expiry_overview,
    list_expired_records,
    migrate_to_expired,
)
from stockkeeper.services.procurement import (
    confirm_procurement,
    confirmed_procurements,
    delete_procurement,
    list_procurements,
    reject_procurement,
    request_procurement,
)
from stockkeeper.services.receiving import receive_lot
from stockkeeper.timeutils import utcnow


def _actor():
    return current_user._get_current_object()


def _invalid(form):
    return jsonify({'error': 'Invalid input', 'fields': form.errors}), 400


def _date_range():
    """Parse ?start=&end= into a validated form, or None if invalid."""
    form = DateRangeForm(formdata=request.args, meta={'csrf': False})
    if not form.validate():
        return None, form
    return (form.start.data, form.end.data), form


@bp.route('/')
@bp.route('/index')
def index():
    """Service banner."""
    return jsonify({'service': 'stockkeeper', 'status': 'ok'})


@bp.route('/dashboard')
@login_required
def dashboard():
    """Record counts for the dashboard."""
    return jsonify({
        'user': current_user.to_dict(),
        'counts': dashboard_counts(_actor()),
    })


@bp.route('/lots')
@login_required
def list_lots():
    """Active lots with stock left, newest received first."""
    lots = (
        StockLot.query
        .filter(StockLot.status == StockLot.STATUS_ACTIVE, StockLot.quantity > 0)
        .order_by(StockLot.received_date.desc(), StockLot.id.desc())
        .all()
    )
    return jsonify({'lots': [lot.to_dict() for lot in lots]})


@bp.route('/lots', methods=['POST'])
@login_required
@limiter.limit("60 per hour")
def add_lot():
    """Record a lot entering stock."""
    form = ReceiveLotForm()
    if not form.validate_on_submit():
        return _invalid(form)

    lot = receive_lot(
        name=form.name.data,
        quantity=form.quantity.data,
        category_id=form.category_id.data,
        unit_id=form.unit_id.data,
        period_id=form.period_id.data,
        storage_id=form.storage_id.data,
        received_date=form.received_date.data,
        expiration_date=form.expiration_date.data,
        actor=_actor(),
    )
    return jsonify({'message': 'Lot received successfully', 'lot': lot.to_dict()}), 201


@bp.route('/items')
@login_required
def list_items():
    """Allocatable quantity per item name."""
    lots = StockLot.query.filter(
        StockLot.status == StockLot.STATUS_ACTIVE, StockLot.quantity > 0
    ).all()
    return jsonify({'items': available_stock(lots, utcnow())})


@bp.route('/items/take', methods=['POST'])
@login_required
@limiter.limit("60 per hour")
def take_item():
    """Dispense an item, drawing from lots in FEFO/FIFO order."""
    form = TakeItemForm()
    if not form.validate_on_submit():
        return _invalid(form)

    result = allocate(form.item_name.data, form.quantity.data, _actor())
    payload = result.to_dict()
    payload['message'] = result.summary
    return jsonify(payload), 201


@bp.route('/outgoing')
@login_required
def outgoing():
    """Allocation ledger, newest first."""
    bounds, form = _date_range()
    if bounds is None:
        return _invalid(form)
    allocations = list_allocations(*bounds)
    return jsonify({'allocations': [allocation.to_dict() for allocation in allocations]})


@bp.route('/lots/<int:lot_id>/expire', methods=['POST'])
@login_required
@admin_required
def expire_lot(lot_id):
    """Move an expired lot into the expired ledger."""
    record = migrate_to_expired(lot_id, _actor())
    return jsonify({
        'message': 'Lot moved to expired successfully',
        'record': record.to_dict(),
    })


@bp.route('/expired')
@login_required
def expired():
    """Lots approaching expiry, lots past expiry and the expired ledger."""
    return jsonify(expiry_overview().to_dict())


@bp.route('/notifications')
@login_required
def notifications():
    """Expiry warnings for the coming window."""
    notices = current_expiry_notices()
    return jsonify({
        'count': len(notices),
        'urgent': sum(1 for notice in notices if notice.severity == 'urgent'),
        'notices': [notice.to_dict() for notice in notices],
    })


@bp.route('/procurements')
@login_required
def procurements():
    """Procurement requests, newest first."""
    requests = list_procurements(status=request.args.get('status') or None)
    return jsonify({'procurements': [item.to_dict() for item in requests]})


@bp.route('/procurements', methods=['POST'])
@login_required
def add_procurement():
    """Propose a purchase; it waits for an admin decision."""
    form = ProcurementForm()
    if not form.validate_on_submit():
        return _invalid(form)

    procurement = request_procurement(
        form.name.data,
        form.quantity.data,
        form.unit_id.data,
        _actor(),
    )
    return jsonify({
        'message': 'Procurement request submitted and awaiting admin confirmation',
        'procurement': procurement.to_dict(),
    }), 201


@bp.route('/procurements/<int:request_id>/confirm', methods=['POST'])
@login_required
@admin_required
def confirm(request_id):
    procurement = confirm_procurement(request_id, _actor())
    return jsonify({
        'message': 'Procurement confirmed',
        'procurement': procurement.to_dict(),
    })


@bp.route('/procurements/<int:request_id>/reject', methods=['POST'])
@login_required
@admin_required
def reject(request_id):
    procurement = reject_procurement(request_id, _actor())
    return jsonify({
        'message': 'Procurement rejected',
        'procurement': procurement.to_dict(),
    })


@bp.route('/procurements/<int:request_id>/delete', methods=['POST'])
@login_required
@admin_required
def delete(request_id):
    delete_procurement(request_id, _actor())
    return jsonify({'message': 'Procurement request deleted'})


@bp.route('/export/<ledger>')
@login_required
def export_ledger(ledger):
    """Export a ledger as an Excel workbook.

    ``procurements`` only includes confirmed requests.
    """
    if ledger not in EXPORT_COLUMNS:
        return jsonify({'error': f'Unknown ledger: {ledger}'}), 404

    bounds, form = _date_range()
    if bounds is None:
        return _invalid(form)

    tz_name = current_app.config.get('TIMEZONE', 'Asia/Jakarta')
    if ledger == 'outgoing':
        rows = allocation_rows(list_allocations(*bounds), tz_name)
        sheet = 'Outgoing Items'
    elif ledger == 'expired':
        rows = expired_rows(list_expired_records(*bounds), tz_name)
        sheet = 'Expired Items'
    else:
        rows = procurement_rows(confirmed_procurements(*bounds), tz_name)
        sheet = 'Procurements'

    output = generate_excel(rows, sheet, columns=EXPORT_COLUMNS[ledger])
    return send_file(
        output,
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        as_attachment=True,
        download_name=f'{ledger}-report.xlsx'
    )


@bp.route('/logs')
@login_required
@admin_required
def activity_logs():
    """Most recent user activity."""
    limit = request.args.get('limit', 100, type=int)
    logs = ActivityLog.query.order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc()).limit(limit).all()
    return jsonify({'logs': [log.to_dict() for log in logs]})
