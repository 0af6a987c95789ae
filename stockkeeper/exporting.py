# stockkeeper/exporting.py

import io

import pandas as pd

from stockkeeper.timeutils import format_timestamp


def _local(timestamp, tz_name):
    if timestamp is None:
        return '-'
    return format_timestamp(timestamp, tz_name).strftime('%Y-%m-%d %H:%M')


def _day(value):
    return value.strftime('%Y-%m-%d') if value else '-'


def allocation_rows(allocations, tz_name):
    rows = []
    for allocation in allocations:
        lot = allocation.lot
        rows.append({
            'Item': lot.name,
            'Label': lot.label,
            'Quantity': allocation.quantity,
            'Category': lot.category.name,
            'Unit': lot.unit.name,
            'Storage': lot.storage.name,
            'Period': lot.period.name,
            'Expiration Date': _day(lot.expiration_date),
            'Received Date': _day(lot.received_date),
            'Taken At': _local(allocation.taken_at, tz_name),
            'User': allocation.user.username,
        })
    return rows


def expired_rows(records, tz_name):
    return [{
        'Item': record.name,
        'Label': record.label,
        'Quantity': record.quantity,
        'Category': record.category.name,
        'Unit': record.unit.name,
        'Storage': record.storage.name,
        'Period': record.period.name,
        'Expiration Date': _day(record.expiration_date),
        'Received Date': _day(record.received_date),
        'Moved At': _local(record.expired_at, tz_name),
        'Moved By': record.moved_by.username,
    } for record in records]


def procurement_rows(procurements, tz_name):
    return [{
        'Item': procurement.name,
        'Quantity': procurement.quantity,
        'Unit': procurement.unit.name,
        'Status': procurement.status,
        'Requested By': procurement.requested_by.username,
        'Requested At': _local(procurement.requested_at, tz_name),
        'Decided By': procurement.confirmed_by.username if procurement.confirmed_by else '-',
        'Decided At': _local(procurement.confirmed_at, tz_name),
    } for procurement in procurements]


def generate_excel(data, sheet_name, columns=None):
    """Generate Excel file as a stream.

    Args:
        data: List of dictionaries, one per row
        sheet_name: Worksheet title
        columns: Column order, used for the header when ``data`` is empty

    Returns:
        BytesIO: Excel file stream
    """
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        df = pd.DataFrame(data, columns=columns)
        df.to_excel(writer, sheet_name=sheet_name, index=False)
        workbook = writer.book
        worksheet = writer.sheets[sheet_name]

        header_format = workbook.add_format({
            'bold': True,
            'bg_color': '#4F81BD',
            'font_color': 'white',
            'border': 1
        })

        for col_num, value in enumerate(df.columns.values):
            worksheet.write(0, col_num, value, header_format)
            max_len = max([len(str(value))] + [len(str(cell)) for cell in df[value]])
            worksheet.set_column(col_num, col_num, max_len + 2)

    output.seek(0)
    return output


EXPORT_COLUMNS = {
    'outgoing': [
        'Item', 'Label', 'Quantity', 'Category', 'Unit', 'Storage', 'Period',
        'Expiration Date', 'Received Date', 'Taken At', 'User',
    ],
    'expired': [
        'Item', 'Label', 'Quantity', 'Category', 'Unit', 'Storage', 'Period',
        'Expiration Date', 'Received Date', 'Moved At', 'Moved By',
    ],
    'procurements': [
        'Item', 'Quantity', 'Unit', 'Status', 'Requested By', 'Requested At',
        'Decided By', 'Decided At',
    ],
}
