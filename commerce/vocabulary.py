"""
Status vocabularies of the commerce platform.

Two different enumerations exist on the platform side:
- fulfillment event statuses (GraphQL fulfillmentEventCreate), e.g. OUT_FOR_DELIVERY
- tracking statuses (REST update_tracking), e.g. out_for_delivery

Classes without an entry fall back to the InTransit value in both tables.
FULFILLED relies on that fallback.
"""

from typing import Optional

from shared.models import StatusClass
from shared.statuses import normalize_status

DEFAULT_EVENT_STATUS = "IN_TRANSIT"
DEFAULT_TRACKING_STATUS = "in_transit"

EVENT_STATUS_BY_CLASS = {
    StatusClass.IN_TRANSIT: "IN_TRANSIT",
    StatusClass.OUT_FOR_DELIVERY: "OUT_FOR_DELIVERY",
    StatusClass.DELIVERED: "DELIVERED",
    StatusClass.RETURN_TO_ORIGIN: "ATTEMPTED_DELIVERY",
}

TRACKING_STATUS_BY_CLASS = {
    StatusClass.IN_TRANSIT: "in_transit",
    StatusClass.OUT_FOR_DELIVERY: "out_for_delivery",
    StatusClass.DELIVERED: "delivered",
    StatusClass.RETURN_TO_ORIGIN: "failure",
}


def event_status_for(status_class: Optional[StatusClass]) -> str:
    return EVENT_STATUS_BY_CLASS.get(status_class, DEFAULT_EVENT_STATUS)


def tracking_status_for(status_class: Optional[StatusClass]) -> str:
    return TRACKING_STATUS_BY_CLASS.get(status_class, DEFAULT_TRACKING_STATUS)


# Free-text carrier strings, first match wins
_EVENT_TEXT_RULES = [
    (("IN TRANSIT",), "IN_TRANSIT"),
    (("OUT FOR DELIVERY",), "OUT_FOR_DELIVERY"),
    (("RTO", "RETURN", "FAILURE"), "ATTEMPTED_DELIVERY"),
    (("PICKUP",), "READY_FOR_PICKUP"),
    (("CONFIRMED",), "CONFIRMED"),
    (("LABEL PRINTED",), "LABEL_PRINTED"),
    (("PICKED UP",), "PICKED_UP"),
]


def event_status_for_text(raw: Optional[str]) -> str:
    """Map a raw carrier string onto a fulfillment event status."""
    status = normalize_status(raw)
    if status == "DELIVERED":
        return "DELIVERED"
    for needles, event_status in _EVENT_TEXT_RULES:
        if any(needle in status for needle in needles):
            return event_status
    return DEFAULT_EVENT_STATUS


def tracking_status_for_text(raw: Optional[str]) -> str:
    """Map a raw carrier string onto a REST tracking status."""
    status = normalize_status(raw)
    if "IN TRANSIT" in status:
        return "in_transit"
    if "OUT FOR DELIVERY" in status:
        return "out_for_delivery"
    if status == "DELIVERED":
        return "delivered"
    if "RTO" in status or "RETURN" in status:
        return "failure"
    return DEFAULT_TRACKING_STATUS
