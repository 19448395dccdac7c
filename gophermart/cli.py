"""Command-line entry point that runs the loyalty service."""

from __future__ import annotations

import sys
from collections.abc import Sequence

from gophermart.api import create_app
from gophermart.config import load_config
from gophermart.queue import MessageQueue
from gophermart.repository import Repository, RepositoryError
from gophermart.service import Service


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts; an empty host means every interface."""
    host, sep, port_text = address.rpartition(":")
    if not sep or not port_text.isdigit():
        raise ValueError(f"invalid address: {address!r}")
    port = int(port_text)
    if port > 65535:
        raise ValueError(f"port out of range: {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host or "0.0.0.0", port


def main(argv: Sequence[str] | None = None) -> int:
    """Load settings, open storage and serve HTTP until interrupted."""
    settings = load_config(argv)
    try:
        host, port = parse_address(settings.run_address)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 1
    try:
        repo = Repository(settings.database_uri)
    except RepositoryError as exc:
        print(exc, file=sys.stderr)
        return 1
    try:
        queue = MessageQueue(settings.database_uri)
    except Exception as exc:
        repo.close()
        print(exc, file=sys.stderr)
        return 1

    service = Service(repo, queue)
    service.start_consumer()
    try:
        create_app(service).run(host=host, port=port)
    finally:
        service.stop()
        queue.close()
        repo.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())