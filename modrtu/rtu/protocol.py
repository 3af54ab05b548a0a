"""
Modbus RTU Protocol Module
Handles request building and response parsing for Modbus RTU
"""

import logging
import struct
from dataclasses import dataclass
from typing import List, Sequence

from .crc import crc_bytes
from .status import Status, Success, RetryableError, TerminalError, Outcome, exception_status
from modrtu.config import (
    FUNC_READ_COILS, FUNC_READ_DISCRETE_INPUTS,
    FUNC_READ_HOLDING_REGISTERS, FUNC_READ_INPUT_REGISTERS,
    FUNC_WRITE_SINGLE_COIL, FUNC_WRITE_SINGLE_REGISTER,
    FUNC_WRITE_MULTIPLE_COILS, FUNC_WRITE_MULTIPLE_REGISTERS,
    EXCEPTION_FLAG, EXCEPTION_RESPONSE_LENGTH, WRITE_RESPONSE_LENGTH,
    CRC_LENGTH, COIL_ON, COIL_OFF
)

logger = logging.getLogger(__name__)

BIT_READ_FUNCTIONS = (FUNC_READ_COILS, FUNC_READ_DISCRETE_INPUTS)
REGISTER_READ_FUNCTIONS = (FUNC_READ_HOLDING_REGISTERS, FUNC_READ_INPUT_REGISTERS)
WRITE_FUNCTIONS = (
    FUNC_WRITE_SINGLE_COIL, FUNC_WRITE_SINGLE_REGISTER,
    FUNC_WRITE_MULTIPLE_COILS, FUNC_WRITE_MULTIPLE_REGISTERS
)

FUNCTION_NAMES = {
    FUNC_READ_COILS: "Read Coils",
    FUNC_READ_DISCRETE_INPUTS: "Read Discrete Inputs",
    FUNC_READ_HOLDING_REGISTERS: "Read Holding Registers",
    FUNC_READ_INPUT_REGISTERS: "Read Input Registers",
    FUNC_WRITE_SINGLE_COIL: "Write Single Coil",
    FUNC_WRITE_SINGLE_REGISTER: "Write Single Register",
    FUNC_WRITE_MULTIPLE_COILS: "Write Multiple Coils",
    FUNC_WRITE_MULTIPLE_REGISTERS: "Write Multiple Registers",
}


@dataclass(frozen=True)
class ModbusRequest:
    """
    One request PDU, kept unchanged across retries of the same transaction

    Args:
        slave_address: Target slave (1-247)
        function_code: Modbus function code
        address: Starting address or single item address
        value: Quantity for reads and multiple writes, value for single writes
        payload: Byte count and data for multiple writes
    """
    slave_address: int
    function_code: int
    address: int
    value: int
    payload: bytes = b''

    @property
    def expected_byte_count(self) -> int:
        """Data bytes a read response must carry, 0 for writes"""
        if self.function_code in BIT_READ_FUNCTIONS:
            return (self.value + 7) // 8
        if self.function_code in REGISTER_READ_FUNCTIONS:
            return self.value * 2
        return 0

    def pdu(self) -> bytes:
        """Slave address, function code and data, without CRC"""
        return struct.pack('>BBHH', self.slave_address, self.function_code,
                           self.address, self.value) + self.payload

    def __str__(self):
        name = FUNCTION_NAMES.get(self.function_code, f"0x{self.function_code:02X}")
        return f"{name} slave={self.slave_address} address={self.address} value={self.value}"


def build_request(request: ModbusRequest) -> bytes:
    """
    Build Modbus RTU request frame

    Args:
        request: Request to encode

    Returns:
        bytes: Complete RTU frame with CRC
    """
    frame = request.pdu()
    # Append CRC in little-endian format (low byte first)
    frame += crc_bytes(frame)
    logger.debug(f"Built request: {frame.hex()}")
    return frame


def pack_bits(values: Sequence[bool]) -> bytes:
    """Pack booleans LSB first, starting with the lowest address"""
    packed = bytearray((len(values) + 7) // 8)
    for i, value in enumerate(values):
        if value:
            packed[i // 8] |= (1 << (i % 8))
    return bytes(packed)


def unpack_bits(data: bytes, count: int) -> List[bool]:
    """Unpack the first count coil states from packed bytes"""
    return [bool(data[i // 8] & (1 << (i % 8))) for i in range(count)]


def build_read_request(slave_address: int, function_code: int, address: int, count: int) -> ModbusRequest:
    """
    Build request for read functions (coils, discrete inputs, registers)

    Args:
        slave_address: Slave unit ID
        function_code: Function code (0x01, 0x02, 0x03, 0x04)
        address: Starting address
        count: Number of items to read

    Returns:
        ModbusRequest: Request carrying only address and quantity
    """
    return ModbusRequest(slave_address, function_code, address, count)


def build_write_single_coil_request(slave_address: int, address: int, value: bool) -> ModbusRequest:
    # Value is 0xFF00 for ON, 0x0000 for OFF
    return ModbusRequest(slave_address, FUNC_WRITE_SINGLE_COIL, address,
                         COIL_ON if value else COIL_OFF)


def build_write_single_register_request(slave_address: int, address: int, value: int) -> ModbusRequest:
    return ModbusRequest(slave_address, FUNC_WRITE_SINGLE_REGISTER, address, value)


def build_write_multiple_coils_request(slave_address: int, address: int,
                                       values: Sequence[bool]) -> ModbusRequest:
    """
    Build request for write multiple coils

    Args:
        slave_address: Slave unit ID
        address: Starting address
        values: Coil states, lowest address first

    Returns:
        ModbusRequest: Request with byte count and packed coils as payload
    """
    coil_bytes = pack_bits(values)
    payload = bytes([len(coil_bytes)]) + coil_bytes
    return ModbusRequest(slave_address, FUNC_WRITE_MULTIPLE_COILS, address, len(values), payload)


def build_write_multiple_registers_request(slave_address: int, address: int,
                                           values: Sequence[int]) -> ModbusRequest:
    """
    Build request for write multiple registers

    Args:
        slave_address: Slave unit ID
        address: Starting address
        values: Register values, each 0-65535

    Returns:
        ModbusRequest: Request with byte count and big-endian values as payload
    """
    count = len(values)
    payload = bytes([count * 2]) + struct.pack(f'>{count}H', *values)
    return ModbusRequest(slave_address, FUNC_WRITE_MULTIPLE_REGISTERS, address, count, payload)


def parse_read_registers_response(data: bytes) -> List[int]:
    """Convert big-endian register bytes to a list of values"""
    return list(struct.unpack(f'>{len(data) // 2}H', data))


def decode_response(response: bytes, request: ModbusRequest) -> Outcome:
    """
    Validate a CRC-checked response against the outstanding request

    Args:
        response: Complete response frame including CRC
        request: The request this response answers

    Returns:
        Outcome: Success with the read data (packed bytes for bit reads,
        register list for register reads, None for writes), TerminalError
        for slave exceptions, RetryableError for anything unexpected
    """
    slave_address = response[0]
    function_code = response[1]

    if slave_address != request.slave_address:
        logger.error(
            f"Response from wrong slave address (expected 0x{request.slave_address:02X}, "
            f"got 0x{slave_address:02X})"
        )
        return RetryableError(Status.UNEXPECTED_RESPONSE)

    # Exception response: [slave, function | 0x80, exception_code, crc_lo, crc_hi]
    if function_code & EXCEPTION_FLAG:
        if len(response) < EXCEPTION_RESPONSE_LENGTH:
            logger.error(f"Truncated exception response: {response.hex()}")
            return RetryableError(Status.UNEXPECTED_RESPONSE)
        exception_code = response[2]
        status = exception_status(exception_code)
        logger.error(
            f"Modbus exception (FC: 0x{request.function_code:02X}, "
            f"ExCode: 0x{exception_code:02X}): {status.description}"
        )
        return TerminalError(status)

    if function_code != request.function_code:
        logger.error(
            f"Response with wrong function code (expected 0x{request.function_code:02X}, "
            f"got 0x{function_code:02X})"
        )
        return RetryableError(Status.UNEXPECTED_RESPONSE)

    if function_code in BIT_READ_FUNCTIONS or function_code in REGISTER_READ_FUNCTIONS:
        # [slave, function, byte_count, data..., crc_lo, crc_hi]
        if len(response) < 3 + CRC_LENGTH:
            logger.error(f"Read response too short: {response.hex()}")
            return RetryableError(Status.UNEXPECTED_RESPONSE)
        byte_count = response[2]
        if len(response) != 3 + byte_count + CRC_LENGTH or byte_count != request.expected_byte_count:
            logger.error(
                f"Invalid read response length: byte count {byte_count}, frame length {len(response)}, "
                f"expected {request.expected_byte_count} data bytes"
            )
            return RetryableError(Status.UNEXPECTED_RESPONSE)
        data = response[3:3 + byte_count]
        if function_code in BIT_READ_FUNCTIONS:
            return Success(bytes(data))
        return Success(parse_read_registers_response(data))

    if function_code in WRITE_FUNCTIONS:
        # Echo of address and value/quantity
        if len(response) != WRITE_RESPONSE_LENGTH:
            logger.error(f"Invalid write response length {len(response)}: {response.hex()}")
            return RetryableError(Status.UNEXPECTED_RESPONSE)
        return Success()

    logger.error(f"Unsupported function code in response: 0x{function_code:02X}")
    return RetryableError(Status.UNEXPECTED_RESPONSE)
