"""
Core module initialization.
Exports configuration, logging and error utilities.
"""

from snappy_serve.core.config import get_settings, Settings, EnvironmentMode
from snappy_serve.core.errors import ErrorKind, ServiceResult

__all__ = ["get_settings", "Settings", "EnvironmentMode", "ErrorKind", "ServiceResult"]
