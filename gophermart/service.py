"""Business operations on users and orders, and the order-processing worker."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable

from gophermart.accrual import AccrualStatus, get_accrual
from gophermart.domain import Order, OrderStatus
from gophermart.queue import Message, MessageQueue
from gophermart.repository import Repository, RepositoryError

logger = logging.getLogger(__name__)

AccrualLookup = Callable[[str], "tuple[AccrualStatus, int]"]


class OrderHandler:
    """Processes queued order messages against the accrual system."""

    def __init__(self, repo: Repository, accrual_lookup: AccrualLookup = get_accrual) -> None:
        self._repo = repo
        self._accrual_lookup = accrual_lookup

    def handle_message(self, message: Message) -> bool:
        """Handle one message; return True when it needs no further tries.

        Malformed payloads and storage or lookup failures raise.
        """
        logger.info("message payload: %s", message.payload)
        payload = json.loads(message.payload)
        order_number = payload.get("order_number", "") if isinstance(payload, dict) else ""

        order = self._repo.get_order(order_number)
        if order.status == OrderStatus.NEW.value:
            self._repo.update_order_status(order_number, OrderStatus.PROCESSING.value)
            status, amount = self._accrual_lookup(order_number)
            if status == AccrualStatus.REGISTERED:
                return False
            if amount > 0:
                self._repo.update_order_accrual_status(
                    order_number, amount, OrderStatus.PROCESSED.value
                )
        return True


class Service:
    """Application operations, with an optional background order consumer."""

    def __init__(
        self,
        repo: Repository,
        queue: MessageQueue | None = None,
        accrual_lookup: AccrualLookup = get_accrual,
    ) -> None:
        self._repo = repo
        self._queue = queue
        self._handler = OrderHandler(repo, accrual_lookup)
        self._stop = threading.Event()
        self._worker: threading.Thread | None = None

    def add_user(self, login: str, password: str) -> int:
        """Register a user and return the new id."""
        return self._repo.insert_user(login, password)

    def add_order(self, order_number: str, user_id: int) -> None:
        """Register an order for a user."""
        self._repo.add_order(order_number, user_id)

    def get_order(self, order_number: str) -> Order | None:
        """Return the order with this number, or None if it cannot be read."""
        try:
            return self._repo.get_order(order_number)
        except RepositoryError:
            return None

    def get_user_orders(self, user_id: int) -> list[Order]:
        """Return every order uploaded by a user."""
        return self._repo.get_user_orders(user_id)

    def publish(self, order_number: str) -> int:
        """Queue an order for processing and return the message id."""
        if self._queue is None:
            raise RuntimeError("no message queue configured")
        message_id = self._queue.publish({"order_number": order_number})
        logger.info("message published with id %d", message_id)
        return message_id

    def start_consumer(self) -> None:
        """Start processing queued orders in a background thread."""
        if self._queue is None or self._worker is not None:
            return
        self._stop.clear()
        self._worker = threading.Thread(
            target=self._queue.run,
            args=(self._handler.handle_message, self._stop),
            name="gophermart-consumer",
            daemon=True,
        )
        self._worker.start()

    def stop(self) -> None:
        """Stop the background consumer and wait for it to finish."""
        self._stop.set()
        if self._worker is not None:
            self._worker.join()
            self._worker = None