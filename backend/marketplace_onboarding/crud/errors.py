"""
Custom exceptions for customer registry lookups.
"""


class CustomerNotFound(Exception):
    """Raised when a customer identifier has no row in the registry."""
