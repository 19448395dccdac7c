"""Runtime settings gathered from command-line flags and the environment."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

DEFAULT_RUN_ADDRESS = ":8080"
DEFAULT_DATABASE_URI = ""
DEFAULT_ACCRUAL_ADDRESS = ":9090"


@dataclass(frozen=True)
class Settings:
    """Service settings."""

    run_address: str = DEFAULT_RUN_ADDRESS
    database_uri: str = DEFAULT_DATABASE_URI
    accrual_system_address: str = DEFAULT_ACCRUAL_ADDRESS


# (settings field, environment key, default)
_OPTIONS = (
    ("run_address", "RUN_ADDRESS", DEFAULT_RUN_ADDRESS),
    ("database_uri", "DATABASE_URI", DEFAULT_DATABASE_URI),
    ("accrual_system_address", "ACCRUAL_SYSTEM_ADDRESS", DEFAULT_ACCRUAL_ADDRESS),
)


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        self.exit(1, f"Error: {message}\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="gophermart")
    parser.add_argument(
        "-a", "--address", dest="RUN_ADDRESS", default=None,
        help=f"gophermart address and port (default {DEFAULT_RUN_ADDRESS})",
    )
    parser.add_argument("-d", "--database", dest="DATABASE_URI", default=None, help="database URI")
    parser.add_argument(
        "-r", "--accural", dest="ACCRUAL_SYSTEM_ADDRESS", default=None,
        help=f"accrual address and port (default {DEFAULT_ACCRUAL_ADDRESS})",
    )
    parser.add_argument("extra", nargs="*", help=argparse.SUPPRESS)
    return parser


def load_config(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Build settings: explicit flags win over environment, environment over defaults.

    Bad flags print an error and raise ``SystemExit(1)``.
    """
    args = _build_parser().parse_args(sys.argv[1:] if argv is None else list(argv))
    env = os.environ if environ is None else environ

    values = {}
    for field_name, key, default in _OPTIONS:
        flag_value = getattr(args, key)
        if flag_value is not None:
            values[field_name] = flag_value
        elif env.get(key):
            values[field_name] = env[key]
        else:
            values[field_name] = default

    settings = Settings(**values)
    print("RunAddress:", settings.run_address)
    print("DatabaseURI:", settings.database_uri)
    print("AccrualSystemAddress:", settings.accrual_system_address)
    return settings