"""
Serial transport used by the Modbus RTU master
"""

import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

import serial

from modrtu.config import PortConfig, READ_POLL_INTERVAL

logger = logging.getLogger(__name__)

BYTESIZES = {7: serial.SEVENBITS, 8: serial.EIGHTBITS}
PARITIES = {'none': serial.PARITY_NONE, 'even': serial.PARITY_EVEN, 'odd': serial.PARITY_ODD}
STOPBITS = {1: serial.STOPBITS_ONE, 2: serial.STOPBITS_TWO}


class TransportError(Exception):
    """Raised by a transport when the underlying device fails"""


class Direction(Enum):
    TRANSMIT = 'transmit'
    RECEIVE = 'receive'


class Transport(ABC):
    """
    Byte stream to the bus

    A transport is owned by exactly one port and only used while that
    port's lock is held.
    """

    @abstractmethod
    def configure(self, config: PortConfig) -> None:
        """Open the device and apply line settings"""

    def set_direction(self, direction: Direction) -> None:
        """Drive the RS-485 DE/RE line, no-op for full duplex links"""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Queue data for sending, return the number of bytes accepted"""

    @abstractmethod
    def wait_tx_complete(self, timeout: float) -> bool:
        """Block until all queued bytes left the wire, False on timeout"""

    @abstractmethod
    def read(self, max_bytes: int, timeout: float) -> bytes:
        """Return up to max_bytes received bytes, empty if none arrive within timeout"""

    @abstractmethod
    def flush_input(self) -> None:
        """Discard bytes already buffered on the receive side"""

    @abstractmethod
    def close(self) -> None:
        """Release the device"""


class SerialTransport(Transport):
    """
    Transport on top of pyserial

    The RS-485 driver enable line is driven through RTS when the port
    config names a direction-control pin.
    """

    def __init__(self, rts_active_high: bool = True):
        self.rts_active_high = rts_active_high
        self.serial_conn: Optional[serial.Serial] = None
        self.config: Optional[PortConfig] = None

    def configure(self, config: PortConfig) -> None:
        if not config.device:
            raise TransportError(f"No serial device configured for port {config.port_id}")
        try:
            conn = serial.serial_for_url(config.device, do_not_open=True)
            conn.baudrate = config.baudrate
            conn.bytesize = BYTESIZES[config.data_bits]
            conn.parity = PARITIES[config.parity]
            conn.stopbits = STOPBITS[config.stop_bits]
            conn.timeout = READ_POLL_INTERVAL
            conn.xonxoff = False
            conn.rtscts = False
            conn.open()
        except (serial.SerialException, ValueError) as e:
            raise TransportError(f"Failed to open {config.device}: {e}") from e

        self.serial_conn = conn
        self.config = config
        if config.has_direction_control:
            self.set_direction(Direction.RECEIVE)
        logger.info(
            f"Opened {config.device} at {config.baudrate} baud "
            f"({config.data_bits}{config.parity[0].upper()}{config.stop_bits})"
        )

    def _require_open(self) -> serial.Serial:
        if self.serial_conn is None or not self.serial_conn.is_open:
            raise TransportError("Serial port is not open")
        return self.serial_conn

    def set_direction(self, direction: Direction) -> None:
        if self.config is None or not self.config.has_direction_control:
            return
        transmit = direction is Direction.TRANSMIT
        self._require_open().rts = transmit if self.rts_active_high else not transmit

    def write(self, data: bytes) -> int:
        written = self._require_open().write(data)
        return len(data) if written is None else written

    def wait_tx_complete(self, timeout: float) -> bool:
        conn = self._require_open()
        deadline = time.monotonic() + timeout
        try:
            while conn.out_waiting > 0:
                if time.monotonic() >= deadline:
                    return False
                time.sleep(0.001)
        except NotImplementedError:
            pass
        conn.flush()
        return True

    def read(self, max_bytes: int, timeout: float) -> bytes:
        conn = self._require_open()
        if conn.timeout != timeout:
            conn.timeout = timeout
        data = conn.read(1)
        if data and max_bytes > 1:
            waiting = conn.in_waiting
            if waiting:
                data += conn.read(min(waiting, max_bytes - 1))
        return data

    def flush_input(self) -> None:
        self._require_open().reset_input_buffer()

    def close(self) -> None:
        if self.serial_conn is not None and self.serial_conn.is_open:
            self.serial_conn.close()
            logger.info(f"Closed {self.config.device if self.config else 'serial port'}")
        self.serial_conn = None
