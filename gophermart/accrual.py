"""Client for the external accrual calculation system."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8080"
_TIMEOUT = 10.0


class AccrualStatus(str, Enum):
    """State of an order as reported by the accrual system."""

    UNSPECIFIED = "UNSPECIFIED"  # status is not determined
    REGISTERED = "REGISTERED"  # order registered, reward not yet calculated
    INVALID = "INVALID"  # order rejected, no reward will be granted
    PROCESSING = "PROCESSING"  # calculation in progress
    PROCESSED = "PROCESSED"  # calculation finished


@dataclass
class Accrual:
    """An accrual record as exchanged with the accrual system."""

    order: str
    status: str
    accrual: int = 0


def get_accrual(order_number: str, base_url: str = DEFAULT_BASE_URL) -> tuple[AccrualStatus, int]:
    """Query the accrual system for an order.

    Transport failures propagate as ``requests`` exceptions. The response
    status is logged; the result is always an unspecified status and zero.
    """
    url = f"{base_url.rstrip('/')}/api/orders/{quote(order_number, safe='')}"
    with requests.Session() as session:
        response = session.get(url, timeout=_TIMEOUT)
    logger.info("accrual system answered %d for order %s", response.status_code, order_number)
    return AccrualStatus.UNSPECIFIED, 0