"""
Modbus RTU Package
Master-side implementation of the Modbus RTU protocol
"""

# Core classes
from .base import ModbusPort, transmit_direction
from .master import ModbusMaster, create_master

# Status codes
from .status import Status, Success, RetryableError, TerminalError, run_with_retries

# Protocol functions
from .protocol import (
    ModbusRequest, build_request, decode_response,
    build_read_request, build_write_single_coil_request, build_write_single_register_request,
    build_write_multiple_coils_request, build_write_multiple_registers_request,
    pack_bits, unpack_bits
)

# CRC functions
from .crc import calculate_crc, crc_bytes, validate_crc

# Transports
from .transport import Transport, SerialTransport, TransportError, Direction

# Utility functions
from .utils import find_serial_ports, scan_for_slaves

__all__ = [
    'ModbusPort',
    'ModbusMaster',
    'create_master',
    'transmit_direction',
    'Status',
    'Success',
    'RetryableError',
    'TerminalError',
    'run_with_retries',
    'ModbusRequest',
    'build_request',
    'decode_response',
    'build_read_request',
    'build_write_single_coil_request',
    'build_write_single_register_request',
    'build_write_multiple_coils_request',
    'build_write_multiple_registers_request',
    'pack_bits',
    'unpack_bits',
    'calculate_crc',
    'crc_bytes',
    'validate_crc',
    'Transport',
    'SerialTransport',
    'TransportError',
    'Direction',
    'find_serial_ports',
    'scan_for_slaves',
]
