"""
ERP Field Mapping
=================

Konversi response details ERP ke kolom ``RepairOrder``. Mapping total dan
deterministik: setiap field ERP punya satu tujuan lokal atau sengaja dibuang.
"""

import re
from datetime import timedelta
from typing import Any, Dict, Optional

from ...dates import parse_date
from ...models import utcnow
from ...schemas.erp import ERPOrderDetails

# Urutan penting: aturan pertama yang cocok menang
STATUS_RULES = (
    (("DELIVERED", "RECEIVED"), "RECEIVED"),
    (("SHIPPED", "TRANSIT"), "SHIPPED"),
    (("APPROVED",), "APPROVED"),
    (("PACKED",), "SHIPPED"),
    (("CANCEL",), "CANCELLED"),
    (("SCRAP",), "SCRAP"),
    (("COMPLETED", "DONE"), "COMPLETED"),
    (("PROGRESS", "WORKING"), "IN PROGRESS"),
    (("QUOTED", "QUOTE"), "QUOTED"),
    (("HOLD",), "ON HOLD"),
    (("BER", "BEYOND"), "BER"),
)
DEFAULT_STATUS = "WAITING QUOTE"

UNKNOWN_VENDOR = "Unknown Vendor"
UNKNOWN_PART = "Unknown Part"

# Field bisnis RepairOrder yang ditulis sync (selain notes, lihat condition_note)
MAPPED_FIELDS = (
    'shop_name', 'part', 'serial', 'part_description', 'estimated_cost',
    'current_status', 'current_status_date', 'terms', 'tracking_number',
    'last_date_updated', 'estimated_delivery_date', 'erp_po_id',
)

# Metadata sync, berubah tiap run
SYNC_METADATA_FIELDS = ('erp_last_sync_at', 'erp_sync_status')

_LEAD_TIME_UNITS = (("WEEK", 7), ("DAY", 1), ("MONTH", 30))
_DIGITS = re.compile(r'\d+')


def map_erp_status(raw_status: Optional[str]) -> str:
    """Normalisasi status ERP ke status lokal (substring match)."""
    status = (raw_status or "").upper().strip()
    for needles, mapped in STATUS_RULES:
        if any(needle in status for needle in needles):
            return mapped
    return DEFAULT_STATUS


def parse_ro_number(order_no: Optional[str]) -> Optional[int]:
    """'RO171', 'RO-171', '171' -> 171. None kalau tidak ada angka."""
    if not order_no:
        return None
    match = _DIGITS.search(order_no)
    return int(match.group()) if match else None


def extract_date(timestamp: Optional[str]) -> Optional[str]:
    """'2023-11-17T18:40:48.000Z' -> '2023-11-17'"""
    if not timestamp:
        return None
    value = timestamp.split('T')[0].split(' ')[0].strip()
    return value or None


def calculate_estimated_date(created: Optional[str], lead_time: Optional[str]) -> Optional[str]:
    """
    Tanggal estimasi = created + lead time ("2 WEEKS", "30 DAYS", "1 MONTH").
    Return YYYY-MM-DD atau None kalau format tidak dikenal.
    """
    if not created or not lead_time:
        return None
    created_date = parse_date(created)
    if created_date is None:
        return None

    clean = lead_time.upper().strip()
    for unit, multiplier in _LEAD_TIME_UNITS:
        if unit in clean:
            digits = re.sub(r'\D', '', clean)
            days = int(digits) * multiplier if digits else 0
            break
    else:
        return None

    if days == 0:
        return None
    return (created_date + timedelta(days=days)).isoformat()


def map_details_to_local(details: ERPOrderDetails) -> Dict[str, Any]:
    """Map details ERP ke dict kolom RepairOrder (MAPPED_FIELDS + SYNC_METADATA_FIELDS)."""
    body = details.body
    main_part = details.parts_list[0] if details.parts_list else None
    modified_date = extract_date(body.modified_time)

    serial = None
    lead_time = None
    if main_part is not None:
        serial = (main_part.tags.sn if main_part.tags else None) or \
                 (main_part.json_data.pn_sn if main_part.json_data else None)
        lead_time = main_part.leadtime

    calculated_delivery = calculate_estimated_date(body.created_time, lead_time)

    return {
        'shop_name': (body.vendor.vendorname if body.vendor else None) or UNKNOWN_VENDOR,
        'part': (main_part.product.name if main_part and main_part.product else None) or UNKNOWN_PART,
        'serial': serial or None,
        'part_description': (main_part.comment if main_part else None) or None,
        'estimated_cost': float(main_part.unit_price) if main_part and main_part.unit_price else None,
        'current_status': map_erp_status(body.status.status),
        'current_status_date': modified_date,
        'terms': body.term_sale or None,
        'tracking_number': body.ship_via or None,
        'last_date_updated': modified_date,
        'estimated_delivery_date': calculated_delivery or lead_time or None,
        'erp_po_id': str(body.po_id),
        'erp_last_sync_at': utcnow(),
        'erp_sync_status': 'SYNCED',
    }


def condition_note(details: ERPOrderDetails) -> Optional[str]:
    """Baris notes dari kondisi part pertama, e.g. 'Condition: OH'."""
    main_part = details.parts_list[0] if details.parts_list else None
    if main_part is None or not main_part.condition:
        return None
    return f"Condition: {main_part.condition}"
