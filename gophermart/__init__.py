"""Loyalty programme HTTP service: users, Luhn-checked orders and a database-backed order queue."""

__version__ = "0.1.0"