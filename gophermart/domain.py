"""Core domain types for loyalty orders."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class OrderStatus(str, Enum):
    """Processing state of an uploaded order."""

    NEW = "NEW"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    INVALID = "INVALID"


@dataclass
class Order:
    """An order uploaded by a user, with its accrual state."""

    number: str
    status: str
    accrual: int
    uploaded_at: datetime
    user_id: int