"""
Infrastructure package for tablemap.

Centralizes database connectivity concerns (URI validation, the driver
contract, connection establishment with retry). Keep this layer focused on I/O
and resource management, decoupled from mapping logic.
"""

from tablemap.infrastructure.db_factory import Driver, open_driver, redact_dsn, validate_uri

__all__ = [
    "Driver",
    "open_driver",
    "redact_dsn",
    "validate_uri",
]
