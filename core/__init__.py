"""
Core Module Package.

Infrastructure shared by every engine package.

Components:
- clock: Unified, mockable time abstraction
- customer: The immutable customer input record
"""

from .clock import ClockProtocol, MockClock, SystemClock, from_iso8601, to_iso8601
from .customer import Customer, CustomerTier, InvalidCustomerError


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "to_iso8601",
    "from_iso8601",
    "Customer",
    "CustomerTier",
    "InvalidCustomerError",
]
