"""
modrtu.api - Outer interfaces for the Modbus RTU master
"""

from .rest import create_rest_app, http_status

__all__ = [
    'create_rest_app',
    'http_status'
]
