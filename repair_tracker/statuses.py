"""
Repair Order Statuses
=====================

Klasifikasi status repair order. Status di database adalah free text
(hasil input manual, import spreadsheet, atau sync ERP), jadi semua
pencocokan dilakukan setelah normalisasi: uppercase + trim.

Setiap grup adalah anggota ``StatusGroup`` yang membawa daftar varian
dan ``MatchRule``-nya sendiri.
"""

from enum import Enum
from typing import NamedTuple, Optional, Tuple


class MatchRule(str, Enum):
    EXACT = "EXACT"
    PREFIX = "PREFIX"


class StatusGroup(Enum):
    WAITING_QUOTE = (("WAITING QUOTE", "WAITING FOR QUOTE", "AWAITING QUOTE", "PENDING"), MatchRule.EXACT)
    IN_WORK = (("IN WORK", "IN PROGRESS", "WORKING"), MatchRule.EXACT)
    SHIPPED = (("SHIPPED", "IN TRANSIT", "CURRENTLY BEING SHIPPED", "SHIPPING"), MatchRule.EXACT)
    # "APPROVED >>>>" dan sejenisnya masih dihitung approved
    APPROVED = (("APPROVED",), MatchRule.PREFIX)

    def __init__(self, variants: Tuple[str, ...], rule: MatchRule):
        self.variants = variants
        self.rule = rule

    def matches(self, status: Optional[str]) -> bool:
        normalized = normalize_status(status)
        if not normalized:
            return False
        if self.rule is MatchRule.PREFIX:
            return any(normalized.startswith(variant) for variant in self.variants)
        return normalized in self.variants


class StatusMembership(NamedTuple):
    waiting_quote: bool
    in_work: bool
    shipped: bool
    approved: bool


# Status yang sudah keluar dari active set (dipindah ke sheet NET/PAID/RETURNS)
ARCHIVED_STATUSES = ("COMPLETE", "NET", "PAID", "RETURNS", "BER", "RAI", "CANCELLED")

# Tidak dihitung di value-in-work
VALUE_EXCLUDED_STATUSES = ("PAID", "BER", "RAI", "RETURNED")

# Karakter yang dibuang di ujung status, juga dipakai ``trim(col, chars)`` di SQL
STATUS_WHITESPACE = " \t\r\n\v\f\u00a0"

# Status yang memicu follow-up flow
TRACKED_STATUSES = (
    "WAITING QUOTE",
    "APPROVED",
    "IN WORK",
    "IN PROGRESS",
    "SHIPPED",
    "IN TRANSIT",
    "RECEIVED",
)


def normalize_status(status: Optional[str]) -> str:
    if not status:
        return ""
    return status.strip(STATUS_WHITESPACE).upper()


def is_waiting_quote(status: Optional[str]) -> bool:
    return StatusGroup.WAITING_QUOTE.matches(status)


def is_in_work(status: Optional[str]) -> bool:
    return StatusGroup.IN_WORK.matches(status)


def is_shipped(status: Optional[str]) -> bool:
    return StatusGroup.SHIPPED.matches(status)


def is_approved(status: Optional[str]) -> bool:
    return StatusGroup.APPROVED.matches(status)


def is_archived(status: Optional[str]) -> bool:
    return normalize_status(status) in ARCHIVED_STATUSES


def is_tracked_status(status: Optional[str]) -> bool:
    return normalize_status(status) in TRACKED_STATUSES


def counts_toward_value(status: Optional[str]) -> bool:
    return normalize_status(status) not in VALUE_EXCLUDED_STATUSES


def classify_status(status: Optional[str]) -> StatusMembership:
    """Membership status terhadap keempat grup dashboard."""
    return StatusMembership(
        waiting_quote=is_waiting_quote(status),
        in_work=is_in_work(status),
        shipped=is_shipped(status),
        approved=is_approved(status),
    )
