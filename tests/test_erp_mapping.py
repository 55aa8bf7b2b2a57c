import pytest

from repair_tracker.services.integration.erp_mapping import (
    MAPPED_FIELDS, SYNC_METADATA_FIELDS, UNKNOWN_PART, UNKNOWN_VENDOR, calculate_estimated_date,
    condition_note, extract_date, map_details_to_local, map_erp_status, parse_ro_number,
)
from tests.fakes import make_details


@pytest.mark.parametrize("raw, expected", [
    ("Delivered", "RECEIVED"),
    ("RECEIVED", "RECEIVED"),
    ("In Transit", "SHIPPED"),
    ("shipped", "SHIPPED"),
    ("Approved", "APPROVED"),
    ("Packed", "SHIPPED"),
    ("Cancelled", "CANCELLED"),
    ("Scrapped", "SCRAP"),
    ("Completed", "COMPLETED"),
    ("Work in progress", "IN PROGRESS"),
    ("Quoted", "QUOTED"),
    ("On Hold", "ON HOLD"),
    ("Beyond economic repair", "BER"),
    ("Open", "WAITING QUOTE"),
    ("", "WAITING QUOTE"),
    (None, "WAITING QUOTE"),
])
def test_map_erp_status(raw, expected):
    assert map_erp_status(raw) == expected


@pytest.mark.parametrize("order_no, expected", [
    ("RO171", 171),
    ("RO-171", 171),
    ("171", 171),
    ("G38462", 38462),
    ("ABC", None),
    (None, None),
])
def test_parse_ro_number(order_no, expected):
    assert parse_ro_number(order_no) == expected


def test_extract_date():
    assert extract_date("2023-11-17T18:40:48.000Z") == "2023-11-17"
    assert extract_date("2023-11-17 18:40:48") == "2023-11-17"
    assert extract_date(None) is None
    assert extract_date("") is None


@pytest.mark.parametrize("lead_time, expected", [
    ("2 WEEKS", "2023-11-15"),
    ("30 days", "2023-12-01"),
    ("1 MONTH", "2023-12-01"),
    ("ASAP", None),
    ("0 DAYS", None),
])
def test_calculate_estimated_date(lead_time, expected):
    assert calculate_estimated_date("2023-11-01T09:00:00.000Z", lead_time) == expected


def test_calculate_estimated_date_needs_both_inputs():
    assert calculate_estimated_date(None, "2 WEEKS") is None
    assert calculate_estimated_date("2023-11-01", None) is None
    assert calculate_estimated_date("unknown", "2 WEEKS") is None


def test_map_details_to_local():
    details = make_details(5, po_no="RO-1005", status="In Transit", vendor="Acme Aero",
                           part="Fuel Pump", serial="SN-55", unit_price=1250.0,
                           leadtime="2 WEEKS", created_time="2024-01-01T08:00:00.000Z",
                           modified_time="2024-01-10T12:30:00.000Z", term_sale="NET 30")

    mapped = map_details_to_local(details)

    assert set(mapped) == set(MAPPED_FIELDS) | set(SYNC_METADATA_FIELDS)
    assert not set(MAPPED_FIELDS) & set(SYNC_METADATA_FIELDS)
    assert mapped['shop_name'] == "Acme Aero"
    assert mapped['part'] == "Fuel Pump"
    assert mapped['serial'] == "SN-55"
    assert mapped['part_description'] == "Fuel Pump overhaul"
    assert mapped['estimated_cost'] == 1250.0
    assert mapped['current_status'] == "SHIPPED"
    assert mapped['current_status_date'] == "2024-01-10"
    assert mapped['last_date_updated'] == "2024-01-10"
    assert mapped['terms'] == "NET 30"
    assert mapped['tracking_number'] == "FEDEX 1234"
    assert mapped['estimated_delivery_date'] == "2024-01-15"
    assert mapped['erp_po_id'] == "5"
    assert mapped['erp_sync_status'] == "SYNCED"


def test_map_details_defaults_without_parts_or_vendor():
    details = make_details(6, vendor=None, part=None)

    mapped = map_details_to_local(details)

    assert mapped['shop_name'] == UNKNOWN_VENDOR
    assert mapped['part'] == UNKNOWN_PART
    assert mapped['serial'] is None
    assert mapped['estimated_cost'] is None
    assert mapped['estimated_delivery_date'] is None


def test_unrecognised_lead_time_is_kept_as_text():
    details = make_details(7, leadtime="TBD")
    assert map_details_to_local(details)['estimated_delivery_date'] == "TBD"


def test_condition_note():
    assert condition_note(make_details(8, condition="OH")) == "Condition: OH"
    assert condition_note(make_details(9)) is None
    assert condition_note(make_details(10, part=None)) is None
