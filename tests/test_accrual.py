import re

import pytest
import requests
import responses

from gophermart.accrual import Accrual, AccrualStatus, get_accrual


def test_get_accrual_requests_order_path_and_returns_unspecified():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            "http://localhost:8080/api/orders/12345678903",
            json={"order": "12345678903", "status": "PROCESSED", "accrual": 500},
        )
        result = get_accrual("12345678903")
        assert result == (AccrualStatus.UNSPECIFIED, 0)
        assert len(rsps.calls) == 1


def test_get_accrual_uses_given_base_url():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, "http://accrual.example.com/api/orders/79927398713", status=204)
        status, amount = get_accrual("79927398713", "http://accrual.example.com/")
        assert status is AccrualStatus.UNSPECIFIED
        assert amount == 0
        assert rsps.calls[0].request.url == "http://accrual.example.com/api/orders/79927398713"


def test_get_accrual_escapes_path_parameter():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, re.compile(r"http://accrual\.example\.com/api/orders/.*"))
        result = get_accrual("a/b", "http://accrual.example.com")
        assert result == (AccrualStatus.UNSPECIFIED, 0)
        assert len(rsps.calls) == 1
        assert rsps.calls[0].request.url == "http://accrual.example.com/api/orders/a%2Fb"


def test_get_accrual_ignores_error_status():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, "http://localhost:8080/api/orders/1", status=500)
        assert get_accrual("1") == (AccrualStatus.UNSPECIFIED, 0)


def test_get_accrual_raises_on_connection_failure():
    with responses.RequestsMock(assert_all_requests_are_fired=False):
        with pytest.raises(requests.ConnectionError):
            get_accrual("1")


def test_accrual_defaults_to_zero_reward():
    record = Accrual(order="42", status=AccrualStatus.REGISTERED.value)
    assert record.accrual == 0
    assert record.status == AccrualStatus.REGISTERED


@pytest.mark.parametrize("status", list(AccrualStatus))
def test_accrual_status_round_trip(status):
    assert AccrualStatus(status.value) is status