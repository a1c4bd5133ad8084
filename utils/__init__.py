"""
Utilities package for the Spotify analytics gateway.
Provides common logging helpers.
"""
from .logger import setup_logger, OperationLogger, ColoredFormatter

__all__ = [
    'setup_logger',
    'OperationLogger',
    'ColoredFormatter'
]
