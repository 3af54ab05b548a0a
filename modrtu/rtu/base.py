"""
Base Modbus RTU Communication Module
One logical port: transport ownership, locking and the request/response cycle
"""

import logging
import time
from contextlib import contextmanager
from threading import Lock
from typing import Union

from .crc import validate_crc
from .protocol import ModbusRequest, build_request, decode_response
from .status import Status, Outcome, RetryableError, run_with_retries
from .transport import Transport, TransportError, Direction
from modrtu.config import (
    PortConfig, MAX_ADU_LENGTH, MIN_ADU_LENGTH, TX_DONE_TIMEOUT, READ_POLL_INTERVAL
)

logger = logging.getLogger(__name__)


@contextmanager
def transmit_direction(transport: Transport, enabled: bool):
    """
    Hold the bus in transmit direction for the duration of the block.

    The line goes back to receive on every exit path, including errors
    raised while switching to transmit.
    """
    if not enabled:
        yield
        return
    try:
        transport.set_direction(Direction.TRANSMIT)
        yield
    finally:
        transport.set_direction(Direction.RECEIVE)


class ModbusPort:
    """
    Runtime state of one Modbus RTU port

    Owns the transport and the lock that keeps a single transaction in
    flight. Created by ModbusMaster.init() and discarded by deinit().
    """

    def __init__(self,
                 config: PortConfig,
                 transport: Transport,
                 device_logger: logging.Logger = None):
        """
        Args:
            config: Serial and retry settings for this port
            transport: Transport the port exclusively owns
            device_logger: Logger for port-specific logs (if None, will use module logger)
        """
        self.config = config
        self.transport = transport
        self.lock = Lock()
        self.initialized = False
        self.device_logger = device_logger if device_logger is not None else logger

    def open(self) -> None:
        """Configure the transport and mark the port ready"""
        self.transport.configure(self.config)
        self.initialized = True
        self.device_logger.info(
            f"Modbus port {self.config.port_id} initialized on {self.config.device} "
            f"(TX:{self.config.tx_pin}, RX:{self.config.rx_pin}, RTS:{self.config.rts_pin}, "
            f"Baud:{self.config.baudrate}, Data:{self.config.data_bits}, "
            f"Stop:{self.config.stop_bits}, Parity:{self.config.parity})"
        )

    def close(self) -> None:
        """Release the transport, waiting for an in-flight transaction to finish"""
        with self.lock:
            self.initialized = False
            self.transport.close()
        self.device_logger.info(f"Modbus port {self.config.port_id} de-initialized")

    def execute(self, request: ModbusRequest) -> Outcome:
        """
        Run one transaction including retries.

        The port lock is held for the whole sequence, so the worst case
        blocking time is (max_retries + 1) * response_timeout plus retry delays.

        Args:
            request: Request to send, reused unchanged for every attempt

        Returns:
            Outcome: Success with decoded data, or the terminal/last error
        """
        frame = build_request(request)

        def attempt(number: int) -> Outcome:
            return self._attempt(frame, request, number)

        def on_retry(number: int, status: Status) -> None:
            self.device_logger.warning(
                f"Modbus communication failed on port {self.config.port_id}, "
                f"slave 0x{request.slave_address:02X}: {status} "
                f"(retry {number}/{self.config.max_retries})"
            )

        with self.lock:
            if not self.initialized:
                return RetryableError(Status.NOT_INITIALIZED)
            outcome = run_with_retries(attempt, self.config.max_retries,
                                       self.config.retry_delay, on_retry)

        if isinstance(outcome, RetryableError):
            self.device_logger.error(
                f"{request} failed after {self.config.max_retries + 1} attempts: {outcome.status}"
            )
        return outcome

    def _attempt(self, frame: bytes, request: ModbusRequest, number: int) -> Outcome:
        try:
            self.transport.flush_input()

            self.device_logger.debug(
                f"Sending request to slave {request.slave_address}, function "
                f"0x{request.function_code:02X} (attempt {number + 1}): {frame.hex()}"
            )
            with transmit_direction(self.transport, self.config.has_direction_control):
                bytes_written = self.transport.write(frame)
                if bytes_written != len(frame):
                    self.device_logger.error(
                        f"Failed to write all bytes on port {self.config.port_id}. "
                        f"Wrote {bytes_written} of {len(frame)}."
                    )
                    return RetryableError(Status.ERROR)
                if not self.transport.wait_tx_complete(TX_DONE_TIMEOUT):
                    self.device_logger.error(f"TX done wait timeout on port {self.config.port_id}")
                    return RetryableError(Status.TIMEOUT)

            response = self._receive()
        except (TransportError, OSError) as e:
            self.device_logger.error(f"Transport error on port {self.config.port_id}: {e}")
            return RetryableError(Status.ERROR)

        if isinstance(response, Status):
            return RetryableError(response)

        self.device_logger.debug(f"Received response: {response.hex()}")
        return decode_response(response, request)

    def _receive(self) -> Union[bytes, Status]:
        """
        Accumulate bytes until they form a CRC-valid frame or the timeout elapses

        Returns:
            bytes on a CRC match, otherwise Status.TIMEOUT (nothing received)
            or Status.CRC_ERROR (bytes received, no valid frame)
        """
        response = bytearray()
        deadline = time.monotonic() + self.config.response_timeout

        while len(response) < MAX_ADU_LENGTH:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            chunk = self.transport.read(MAX_ADU_LENGTH - len(response),
                                        min(READ_POLL_INTERVAL, remaining))
            if chunk:
                response.extend(chunk)
                if len(response) >= MIN_ADU_LENGTH and validate_crc(response):
                    return bytes(response)

        if not response:
            self.device_logger.warning(f"Modbus response timeout on port {self.config.port_id}")
            return Status.TIMEOUT

        self.device_logger.warning(
            f"Modbus response CRC error or incomplete on port {self.config.port_id}. "
            f"Received {len(response)} bytes: {response.hex()}"
        )
        return Status.CRC_ERROR

    def __repr__(self):
        return f"ModbusPort(port_id={self.config.port_id}, device={self.config.device!r}, initialized={self.initialized})"
