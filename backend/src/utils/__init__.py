"""
Utility modules for the UpdateHub backend.

This package contains shared utilities used across the application:
- logging_config: Named loggers and formatters
- client_ip: Originating client address behind reverse proxies
"""

from backend.src.utils.client_ip import get_client_ip
from backend.src.utils.logging_config import get_logger, init_logging

__all__ = [
    "get_client_ip",
    "get_logger",
    "init_logging",
]
