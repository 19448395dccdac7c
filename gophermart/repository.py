"""Relational storage for users and orders."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from gophermart.domain import Order

_REGISTERED = "REGISTERED"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


_metadata = sa.MetaData()
_id_type = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

_users = sa.Table(
    "users",
    _metadata,
    sa.Column("id", _id_type, primary_key=True, autoincrement=True),
    sa.Column("login", sa.Text, nullable=False),
    sa.Column("password", sa.Text, nullable=False),
    sa.Index("users_login_uindex", "login", unique=True),
)

_orders = sa.Table(
    "orders",
    _metadata,
    sa.Column("number", sa.Text, primary_key=True),
    sa.Column("status", sa.Text, nullable=False),
    sa.Column("accrual", sa.BigInteger, default=0, server_default=sa.text("0")),
    sa.Column(
        "uploaded_at",
        sa.DateTime(timezone=True),
        nullable=False,
        default=_utc_now,
        server_default=sa.func.now(),
    ),
    sa.Column("user_id", sa.BigInteger, nullable=False),
)


class RepositoryError(Exception):
    """A storage operation failed."""


class OrderNotFoundError(RepositoryError):
    """No order has the requested number."""


def _normalize_uri(uri: str) -> str:
    if uri.startswith("postgres://"):
        return "postgresql://" + uri[len("postgres://"):]
    return uri


def _to_order(row: sa.Row) -> Order:
    uploaded_at = row.uploaded_at
    if uploaded_at.tzinfo is None:
        uploaded_at = uploaded_at.replace(tzinfo=timezone.utc)
    return Order(
        number=row.number,
        status=row.status,
        accrual=int(row.accrual or 0),
        uploaded_at=uploaded_at,
        user_id=int(row.user_id),
    )


class Repository:
    """Users and orders kept in a SQL database."""

    def __init__(self, database_uri: str) -> None:
        try:
            self._engine = sa.create_engine(_normalize_uri(database_uri))
        except (SQLAlchemyError, ImportError) as exc:
            raise RepositoryError(f"cannot open database: {exc}") from exc
        try:
            _metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            self._engine.dispose()
            raise RepositoryError(f"cannot create schema: {exc}") from exc

    def __enter__(self) -> Repository:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def _transaction(self) -> Iterator[sa.Connection]:
        try:
            with self._engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise RepositoryError(str(exc)) from exc

    def insert_user(self, login: str, password: str) -> int:
        """Store a user and return the new id."""
        with self._transaction() as conn:
            result = conn.execute(sa.insert(_users).values(login=login, password=password))
            return int(result.inserted_primary_key[0])

    def add_order(self, order_number: str, user_id: int) -> None:
        """Register an order for a user."""
        with self._transaction() as conn:
            conn.execute(
                sa.insert(_orders).values(number=order_number, status=_REGISTERED, user_id=user_id)
            )

    def get_order(self, order_number: str) -> Order:
        """Return the order with this number or raise OrderNotFoundError."""
        with self._transaction() as conn:
            row = conn.execute(
                sa.select(_orders).where(_orders.c.number == order_number)
            ).one_or_none()
        if row is None:
            raise OrderNotFoundError(f"order {order_number} not found")
        return _to_order(row)

    def get_user_orders(self, user_id: int) -> list[Order]:
        """Return every order uploaded by a user."""
        with self._transaction() as conn:
            rows = conn.execute(sa.select(_orders).where(_orders.c.user_id == user_id)).all()
        return [_to_order(row) for row in rows]

    def update_order_status(self, order_number: str, status: str) -> None:
        """Set an order's status."""
        with self._transaction() as conn:
            conn.execute(
                sa.update(_orders).where(_orders.c.number == order_number).values(status=status)
            )

    def update_order_accrual_status(self, order_number: str, accrual: int, status: str) -> None:
        """Set an order's accrual and status together."""
        with self._transaction() as conn:
            conn.execute(
                sa.update(_orders)
                .where(_orders.c.number == order_number)
                .values(accrual=accrual, status=status)
            )

    def close(self) -> None:
        """Release all database connections."""
        self._engine.dispose()