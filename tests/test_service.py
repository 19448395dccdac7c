import json
import time

import pytest

from gophermart.accrual import AccrualStatus
from gophermart.domain import Order
from gophermart.queue import Message, MessageQueue
from gophermart.repository import OrderNotFoundError, Repository
from gophermart.service import OrderHandler, Service

ORDER = "79927398713"


@pytest.fixture
def repo(tmp_path):
    r = Repository(f"sqlite:///{tmp_path / 'db.sqlite'}")
    yield r
    r.close()


@pytest.fixture
def queue(tmp_path):
    q = MessageQueue(f"sqlite:///{tmp_path / 'queue.sqlite'}")
    yield q
    q.close()


def _message(order_number):
    return Message(id=1, payload=json.dumps({"order_number": order_number}), consumed_count=1)


def _lookup(status, amount):
    calls = []

    def lookup(number):
        calls.append(number)
        return status, amount

    lookup.calls = calls
    return lookup


class _MemoryRepo:
    def __init__(self):
        self.orders = {}

    def get_order(self, number):
        try:
            return self.orders[number]
        except KeyError:
            raise OrderNotFoundError(number) from None

    def update_order_status(self, number, status):
        self.orders[number].status = status

    def update_order_accrual_status(self, number, accrual, status):
        self.orders[number].accrual = accrual
        self.orders[number].status = status


def test_new_order_gets_processed(repo):
    repo.add_order(ORDER, 1)
    repo.update_order_status(ORDER, "NEW")
    lookup = _lookup(AccrualStatus.PROCESSED, 500)
    assert OrderHandler(repo, lookup).handle_message(_message(ORDER)) is True
    order = repo.get_order(ORDER)
    assert (order.status, order.accrual) == ("PROCESSED", 500)
    assert lookup.calls == [ORDER]


def test_registered_answer_leaves_message_pending(repo):
    repo.add_order(ORDER, 1)
    repo.update_order_status(ORDER, "NEW")
    handler = OrderHandler(repo, _lookup(AccrualStatus.REGISTERED, 0))
    assert handler.handle_message(_message(ORDER)) is False
    assert repo.get_order(ORDER).status == "PROCESSING"


def test_zero_accrual_keeps_processing_status(repo):
    repo.add_order(ORDER, 1)
    repo.update_order_status(ORDER, "NEW")
    handler = OrderHandler(repo, _lookup(AccrualStatus.UNSPECIFIED, 0))
    assert handler.handle_message(_message(ORDER)) is True
    order = repo.get_order(ORDER)
    assert (order.status, order.accrual) == ("PROCESSING", 0)


def test_non_new_order_is_left_alone(repo):
    repo.add_order(ORDER, 1)
    lookup = _lookup(AccrualStatus.PROCESSED, 500)
    assert OrderHandler(repo, lookup).handle_message(_message(ORDER)) is True
    assert repo.get_order(ORDER).status == "REGISTERED"
    assert lookup.calls == []


def test_missing_order_raises(repo):
    handler = OrderHandler(repo, _lookup(AccrualStatus.PROCESSED, 1))
    with pytest.raises(OrderNotFoundError):
        handler.handle_message(_message(ORDER))


def test_malformed_payload_raises(repo):
    handler = OrderHandler(repo, _lookup(AccrualStatus.PROCESSED, 1))
    with pytest.raises(json.JSONDecodeError):
        handler.handle_message(Message(id=1, payload="{oops", consumed_count=1))


def test_user_and_order_operations(repo):
    service = Service(repo)
    user_id = service.add_user("user@example.com", "password")
    service.add_order(ORDER, user_id)
    assert service.get_order(ORDER).user_id == user_id
    assert [o.number for o in service.get_user_orders(user_id)] == [ORDER]


def test_get_order_missing_returns_none(repo):
    assert Service(repo).get_order(ORDER) is None


def test_publish_puts_order_number_on_queue(repo, queue):
    service = Service(repo, queue)
    message_id = service.publish(ORDER)
    message = queue.fetch()
    assert message.id == message_id
    assert json.loads(message.payload) == {"order_number": ORDER}


def test_publish_without_queue_raises(repo):
    with pytest.raises(RuntimeError):
        Service(repo).publish(ORDER)


def test_consumer_processes_published_order(queue):
    memory = _MemoryRepo()
    memory.orders[ORDER] = Order(ORDER, "NEW", 0, None, 1)
    service = Service(memory, queue, _lookup(AccrualStatus.PROCESSED, 500))
    service.publish(ORDER)
    service.start_consumer()
    try:
        deadline = time.monotonic() + 5
        while memory.orders[ORDER].status != "PROCESSED" and time.monotonic() < deadline:
            time.sleep(0.02)
    finally:
        service.stop()
    assert memory.orders[ORDER].accrual == 500
    assert queue.fetch() is None