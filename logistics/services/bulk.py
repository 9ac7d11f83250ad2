"""
LOGISTICS App - Bulk Spreadsheet Operations

Handles:
1. Reading .xlsx (openpyxl) and .csv uploads into header-keyed rows
2. Admin column sync: overwrite one shipment column per row
3. Seller bulk booking: one shipment (and AWB) per row
"""

import csv
import io
import logging
import zipfile
from decimal import Decimal
from typing import Dict, List

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from core.models import Staff, StaffStatus
from logistics.models import Shipment, normalize_status
from logistics.services import lifecycle
from logistics.services.lifecycle import ShipmentDraft, ShipmentValidationError

logger = logging.getLogger(__name__)

BULK_SYNC_LOCATION = 'System Bulk Update'
BULK_UPLOAD_LOCATION = 'Bulk Upload'

SYNC_COLUMNS = (
    'current_status',
    'payment_status',
    'weight',
    'delivery_boy_id',
    'receiver_phone',
    'cost',
)

# Spreadsheet header -> draft field
BULK_CREATE_COLUMNS = {
    'Client Order ID': 'client_order_id',
    'Sender Name': 'sender_name',
    'Sender Mobile': 'sender_phone',
    'Pickup Address': 'sender_address',
    'Sender City': 'sender_city',
    'Sender State': 'sender_state',
    'Pickup Pincode': 'sender_pincode',
    'Receiver Name': 'receiver_name',
    'Receiver Mobile': 'receiver_phone',
    'Receiver Address': 'receiver_address',
    'Receiver City': 'receiver_city',
    'Receiver State': 'receiver_state',
    'Receiver Pincode': 'receiver_pincode',
    'Weight (kg)': 'weight',
    'Payment Mode': 'payment_mode',
    'Product Value': 'declared_value',
    'Package Type': 'package_type',
}


# ============================================
# SPREADSHEET READING
# ============================================

def _cell_text(value) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        # Phone numbers and pincodes come back from Excel as floats
        return str(int(value))
    return str(value).strip()


def _read_xlsx(uploaded_file) -> List[Dict[str, str]]:
    wb = load_workbook(uploaded_file, read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        rows = list(ws.iter_rows(values_only=True))
    finally:
        wb.close()

    if not rows:
        return []
    headers = [_cell_text(h) for h in rows[0]]
    records = []
    for row in rows[1:]:
        values = [_cell_text(v) for v in row]
        if not any(values):
            continue
        records.append({h: v for h, v in zip(headers, values) if h})
    return records


def _read_csv(uploaded_file) -> List[Dict[str, str]]:
    raw = uploaded_file.read()
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8-sig')
    reader = csv.DictReader(io.StringIO(raw))
    records = []
    for row in reader:
        cleaned = {(k or '').strip(): (v or '').strip() for k, v in row.items() if k}
        if any(cleaned.values()):
            records.append(cleaned)
    return records


def read_rows(uploaded_file) -> List[Dict[str, str]]:
    """Rows of the first sheet keyed by header text; blank rows skipped."""
    name = (getattr(uploaded_file, 'name', '') or '').lower()
    if name.endswith('.xlsx'):
        try:
            return _read_xlsx(uploaded_file)
        except (OSError, KeyError, ValueError, zipfile.BadZipFile, InvalidFileException) as e:
            raise ShipmentValidationError(f"Could not read spreadsheet: {e}")
    if name.endswith('.csv'):
        return _read_csv(uploaded_file)
    raise ShipmentValidationError("Unsupported file type, upload .xlsx or .csv")


# ============================================
# ADMIN COLUMN SYNC
# ============================================

def _find_shipment(ref: str) -> Shipment:
    """Match by AWB (case-insensitive), then by legacy reference ID."""
    matches = list(
        Shipment.objects.filter(Q(awb_code__iexact=ref) | Q(reference_id=ref))[:2]
    )
    by_awb = [s for s in matches if s.awb_code.upper() == ref.upper()]
    if by_awb:
        return by_awb[0]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise ShipmentValidationError(f"Reference {ref} matches more than one shipment")
    raise ShipmentValidationError(f"No shipment found for {ref}")


def _parse_amount(value: str, column: str) -> Decimal:
    try:
        amount = Decimal(value)
    except (ArithmeticError, ValueError):
        raise ShipmentValidationError(f"{column} must be numeric, got '{value}'")
    if not amount.is_finite():
        raise ShipmentValidationError(f"{column} must be numeric, got '{value}'")
    if amount < 0:
        raise ShipmentValidationError(f"{column} cannot be negative")
    return amount


def _sync_row(ref: str, column: str, value: str):
    with transaction.atomic():
        shipment = _find_shipment(ref)

        if column == 'current_status':
            if normalize_status(value) is None:
                raise ShipmentValidationError(f"Unknown status '{value}'")
            lifecycle.override_status(shipment, value, location=BULK_SYNC_LOCATION)
            return

        if column == 'delivery_boy_id':
            try:
                staff = Staff.objects.get(pk=value)
            except (Staff.DoesNotExist, DjangoValidationError) as e:
                raise ShipmentValidationError(f"Unknown driver '{value}'") from e
            if staff.status != StaffStatus.ACTIVE:
                raise ShipmentValidationError(f"Driver '{staff.name}' is not active")
            lifecycle.assign_driver(shipment, staff)
            return

        if column in ('weight', 'cost'):
            setattr(shipment, column, _parse_amount(value, column))
        else:
            limit = Shipment._meta.get_field(column).max_length
            if len(value) > limit:
                raise ShipmentValidationError(f"{column} is longer than {limit} characters")
            setattr(shipment, column, value)
        shipment.save(update_fields=[column, 'updated_at'])


def bulk_sync_column(rows: List[Dict[str, str]], target_column: str,
                     ref_column: str = 'AWB', value_column: str = 'Value') -> dict:
    """
    Overwrite `target_column` for each row's shipment.

    Every row runs in its own transaction; a bad row never affects the
    others. Returns {success, failed, errors}.
    """
    if target_column not in SYNC_COLUMNS:
        raise ShipmentValidationError(f"Column '{target_column}' cannot be bulk updated")

    results = {'success': 0, 'failed': 0, 'errors': []}

    # Header row is spreadsheet row 1
    for row_number, row in enumerate(rows, start=2):
        ref = (row.get(ref_column) or '').strip()
        value = (row.get(value_column) or '').strip()

        if not ref or not value:
            results['failed'] += 1
            results['errors'].append({'row': row_number, 'error': 'Missing reference or value'})
            continue

        try:
            _sync_row(ref, target_column, value)
        except ValueError as e:
            results['failed'] += 1
            results['errors'].append({'row': row_number, 'error': str(e)})
            continue

        results['success'] += 1

    logger.info(
        f"[BULK] Sync {target_column}: {results['success']} ok, {results['failed']} failed"
    )
    return results


# ============================================
# SELLER BULK BOOKING
# ============================================

def draft_from_row(row: Dict[str, str]) -> ShipmentDraft:
    """Map a bulk-create spreadsheet row onto a booking draft."""
    data = {}
    for header, field_name in BULK_CREATE_COLUMNS.items():
        value = row.get(header)
        if value not in (None, ''):
            data[field_name] = value

    if not data.get('receiver_name') or not data.get('receiver_address'):
        raise ShipmentValidationError("Receiver Name and Receiver Address are required")

    draft_fields = dict(data)
    if str(data.get('payment_mode', '')).strip().lower() == 'cod':
        draft_fields['cod_amount'] = data.get('declared_value', '0')
    return ShipmentDraft.from_dict(draft_fields)


def bulk_create_shipments(rows: List[Dict[str, str]], user) -> dict:
    """
    Book one shipment per row for `user`.

    Rows are independent: a bad row is reported and skipped.
    Returns {shipments, errors}.
    """
    created, errors = [], []
    reserved = set()
    default_sender = _default_sender_name(user)

    for row_number, row in enumerate(rows, start=2):
        try:
            if not (row.get('Sender Name') or '').strip():
                row = {**row, 'Sender Name': default_sender}
            draft = draft_from_row(row)
            shipment = lifecycle.book_shipment(
                draft, user, location=BULK_UPLOAD_LOCATION, reserved_awbs=reserved
            )
        except ValueError as e:
            errors.append({'row': row_number, 'error': str(e)})
            continue
        created.append(shipment)

    logger.info(f"[BULK] Created {len(created)} shipments for {user} ({len(errors)} errors)")
    return {'shipments': created, 'errors': errors}


def _default_sender_name(user) -> str:
    profile = getattr(user, 'profile', None)
    if profile and profile.business_name:
        return profile.business_name
    return user.full_name or user.email
