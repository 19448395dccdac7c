"""HTTP interface of the loyalty service."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable

from flask import Flask, Response, g, jsonify, request

from gophermart.domain import Order
from gophermart.luhn import valid
from gophermart.repository import RepositoryError
from gophermart.service import Service

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def format_timestamp(value: datetime) -> str:
    """Format a time as RFC 3339 with whole seconds; naive times count as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.replace(microsecond=0)
    offset = value.utcoffset()
    if not offset:
        return value.strftime("%Y-%m-%dT%H:%M:%S") + "Z"
    return value.isoformat(timespec="seconds")


def order_to_json(order: Order) -> dict[str, Any]:
    """Return the wire form of an order; a zero accrual is left out."""
    data: dict[str, Any] = {"number": order.number, "status": order.status}
    if order.accrual:
        data["accrual"] = order.accrual
    data["uploaded_at"] = format_timestamp(order.uploaded_at)
    return data


def _parse_int(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"invalid integer: {text!r}")
    number = int(text)
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise ValueError(f"integer out of range: {text!r}")
    return number


def _http_error(status: int, error: object) -> Response:
    response = jsonify(code=status, message=str(error))
    response.status_code = status
    return response


def _register_problem(data: Any) -> str | None:
    if not isinstance(data, dict):
        return "request body must be a JSON object"
    for field in ("login", "password"):
        value = data.get(field)
        if not isinstance(value, str) or not value:
            return f"field {field!r} is required"
    return None


def _authorized(view: Callable[..., Response]) -> Callable[..., Response]:
    @wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Response:
        header = request.headers.get("Authorization", "")
        if not header:
            response = jsonify("Unauthorized")
            response.status_code = 401
            return response
        try:
            g.user_id = _parse_int(header)
        except ValueError:
            g.user_id = 0
        return view(*args, **kwargs)

    return wrapper


def create_app(service: Service) -> Flask:
    """Build the web application serving the user and order endpoints."""
    app = Flask("gophermart")

    @app.post("/api/user/register")
    def user_register() -> Response:
        try:
            data = json.loads(request.get_data(as_text=True))
        except ValueError as exc:
            return _http_error(400, exc)
        problem = _register_problem(data)
        if problem is not None:
            return _http_error(400, problem)
        try:
            user_id = service.add_user(data["login"], data["password"])
        except RepositoryError as exc:
            return _http_error(400, exc)
        response = Response(status=200)
        response.headers["Authorization"] = str(user_id)
        return response

    @app.post("/api/user/orders")
    @_authorized
    def post_user_orders() -> Response:
        user_id = g.user_id
        order_number = request.get_data(as_text=True)
        service.publish(order_number)
        try:
            number = _parse_int(order_number)
        except ValueError as exc:
            return _http_error(400, exc)
        if not valid(number):
            return _http_error(422, "invalid order number")
        existing = service.get_order(order_number)
        if existing is not None:
            if existing.user_id == user_id:
                return Response(status=200)
            return _http_error(409, "order already exists")
        try:
            service.add_order(order_number, user_id)
        except RepositoryError as exc:
            return _http_error(400, exc)
        return Response(status=202)

    @app.get("/api/user/orders")
    @_authorized
    def get_user_orders() -> Response:
        try:
            orders = service.get_user_orders(g.user_id)
        except RepositoryError as exc:
            return _http_error(500, exc)
        if not orders:
            return Response(status=204)
        return jsonify([order_to_json(order) for order in orders])

    return app