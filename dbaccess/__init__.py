"""Database access layer: one shared connection, parameterized queries."""

from .config import DatabaseConfig
from .connection import ConnectionManager, close_instance, get_instance
from .errors import (
    CharsetError,
    ConnectError,
    DatabaseError,
    ExecError,
    PrepareError,
    TransactionError,
)
from .log_config import disable_logging, enable_logging
from .params import Param, param_types

__all__ = [
    "ConnectionManager",
    "DatabaseConfig",
    "Param",
    "param_types",
    "get_instance",
    "close_instance",
    "enable_logging",
    "disable_logging",
    "DatabaseError",
    "ConnectError",
    "CharsetError",
    "PrepareError",
    "ExecError",
    "TransactionError",
]
