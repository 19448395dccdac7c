"""Luhn check digits for order numbers."""

from __future__ import annotations


def _checksum(number: int) -> int:
    total = 0
    position = 0
    while number > 0:
        number, digit = divmod(number, 10)
        if position % 2 == 0:
            digit *= 2
            if digit > 9:
                digit = digit % 10 + digit // 10
        total += digit
        position += 1
    return total % 10


def calculate_luhn(number: int) -> int:
    """Return the check digit to append to ``number``."""
    check = _checksum(number)
    return 0 if check == 0 else 10 - check


def valid(number: int) -> bool:
    """Tell whether ``number`` ends with a correct Luhn check digit."""
    return (number % 10 + _checksum(int(number / 10) if number < 0 else number // 10)) % 10 == 0