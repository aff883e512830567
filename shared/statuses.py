"""
Carrier status normalization.

Carriers send free-text statuses ("Out_for_Delivery", "SHPFR1", "In Transit").
This module maps them onto a StatusClass using an ordered rule list where the
first matching rule wins.
"""

from typing import Optional

from shared.models import StatusClass


def normalize_status(raw: Optional[str]) -> str:
    """Trim, uppercase and turn underscores into spaces. None becomes ""."""
    if raw is None:
        return ""
    return str(raw).strip().upper().replace("_", " ")


def _contains_any(*needles: str):
    return lambda status: any(needle in status for needle in needles)


# Order matters: "OUT FOR DELIVERY" must be tested before "DELIVERED" style rules
_RULES = [
    (_contains_any("OUT FOR DELIVERY"), StatusClass.OUT_FOR_DELIVERY),
    (lambda status: status == "DELIVERED", StatusClass.DELIVERED),
    (_contains_any("IN TRANSIT", "PICKED UP"), StatusClass.IN_TRANSIT),
    (_contains_any("SHIPMENT BOOKED", "OUT FOR PICKUP", "SHPFR1", "SHIPPED"), StatusClass.FULFILLED),
    (_contains_any("RTO", "RETURN TO ORIGIN"), StatusClass.RETURN_TO_ORIGIN),
]


def classify(raw: Optional[str]) -> StatusClass:
    """
    Classify a raw carrier status.

    Total over any input: None, empty or unrecognized strings yield UNKNOWN.
    """
    status = normalize_status(raw)
    for matches, status_class in _RULES:
        if matches(status):
            return status_class
    return StatusClass.UNKNOWN


def status_unchanged(current: Optional[str], previous: Optional[str]) -> bool:
    """True when both statuses are present and normalize to the same value."""
    if current is None or previous is None:
        return False
    return normalize_status(current) == normalize_status(previous)
