"""
Modbus RTU Master
Port registry and the typed read/write operations exposed to applications
"""

import logging
from threading import Lock
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .base import ModbusPort
from .protocol import (
    ModbusRequest, build_read_request,
    build_write_single_coil_request, build_write_single_register_request,
    build_write_multiple_coils_request, build_write_multiple_registers_request
)
from .status import Status, Success
from .transport import Transport, SerialTransport, TransportError
from modrtu.config import (
    PortConfig, load_port_configs,
    FUNC_READ_COILS, FUNC_READ_DISCRETE_INPUTS,
    FUNC_READ_HOLDING_REGISTERS, FUNC_READ_INPUT_REGISTERS,
    MAX_READ_BITS, MAX_READ_REGISTERS, MAX_WRITE_COILS, MAX_WRITE_REGISTERS,
    MIN_SLAVE_ADDRESS, MAX_SLAVE_ADDRESS, MAX_DATA_ADDRESS
)

logger = logging.getLogger(__name__)

TransportFactory = Callable[[PortConfig], Transport]


def _serial_transport(config: PortConfig) -> Transport:
    return SerialTransport()


class ModbusMaster:
    """
    Modbus RTU master for a set of logical serial ports

    Each configured port gets at most one ModbusPort between init() and
    deinit(). Operations on the same port are serialized by that port's
    lock; different ports work independently.

    Every operation returns a Status. Reads return (Status, data) where
    data is None unless the status is Status.OK.
    """

    def __init__(self,
                 port_configs: Optional[Mapping[int, PortConfig]] = None,
                 transport_factory: Optional[TransportFactory] = None):
        """
        Args:
            port_configs: Port settings keyed by logical port id
                (default: built-in table overlaid with environment variables)
            transport_factory: Creates the transport for a port (default: pyserial)
        """
        self.port_configs: Dict[int, PortConfig] = dict(
            port_configs if port_configs is not None else load_port_configs()
        )
        self.transport_factory = transport_factory or _serial_transport
        self._ports: Dict[int, ModbusPort] = {}
        self._registry_lock = Lock()

    # Lifecycle

    def init(self, port: int) -> Status:
        """
        Open the transport for a port and make it ready for transactions

        Returns:
            Status: OK, INVALID_PARAM for an unknown port, ALREADY_INITIALIZED,
            or ERROR if the transport could not be configured
        """
        config = self.port_configs.get(port)
        if config is None:
            logger.error(f"Invalid Modbus port: {port}")
            return Status.INVALID_PARAM

        with self._registry_lock:
            if port in self._ports:
                logger.warning(f"Modbus port {port} already initialized.")
                return Status.ALREADY_INITIALIZED

            handle = ModbusPort(config, self.transport_factory(config))
            try:
                handle.open()
            except (TransportError, OSError) as e:
                logger.error(f"Failed to initialize Modbus port {port}: {e}")
                return Status.ERROR

            self._ports[port] = handle
        return Status.OK

    def deinit(self, port: int) -> Status:
        """
        Release the transport of a port. Safe to call repeatedly.

        Returns:
            Status: OK (also when the port was not initialized), INVALID_PARAM
            for an unknown port, ERROR if closing the transport failed
        """
        if port not in self.port_configs:
            logger.error(f"Invalid Modbus port: {port}")
            return Status.INVALID_PARAM

        with self._registry_lock:
            handle = self._ports.pop(port, None)

        if handle is None:
            logger.debug(f"Modbus port {port} not initialized.")
            return Status.OK

        try:
            handle.close()
        except (TransportError, OSError) as e:
            logger.error(f"Failed to close transport for Modbus port {port}: {e}")
            return Status.ERROR
        return Status.OK

    def deinit_all(self) -> None:
        """De-initialize every initialized port"""
        for port in list(self._ports):
            self.deinit(port)

    def is_initialized(self, port: int) -> bool:
        return port in self._ports

    def get_port(self, port: int) -> Optional[ModbusPort]:
        return self._ports.get(port)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.deinit_all()
        return False

    # Validation helpers

    @staticmethod
    def _valid_slave(slave_address: int) -> bool:
        # Address 0 (broadcast) expects no reply and is not supported
        return MIN_SLAVE_ADDRESS <= slave_address <= MAX_SLAVE_ADDRESS

    @staticmethod
    def _valid_range(start_address: int, count: int, limit: int) -> bool:
        return (1 <= count <= limit
                and 0 <= start_address <= MAX_DATA_ADDRESS
                and start_address + count - 1 <= MAX_DATA_ADDRESS)

    def _check_target(self, operation: str, slave_address: int, address: int) -> bool:
        if not self._valid_slave(slave_address):
            logger.error(f"Invalid slave address for {operation}: {slave_address}")
            return False
        if not 0 <= address <= MAX_DATA_ADDRESS:
            logger.error(f"Invalid address for {operation}: {address}")
            return False
        return True

    def _transact(self, port: int, request: ModbusRequest):
        handle = self._ports.get(port)
        if handle is None:
            logger.error(f"Modbus port {port} not initialized or invalid.")
            return Status.NOT_INITIALIZED, None

        outcome = handle.execute(request)
        if isinstance(outcome, Success):
            return Status.OK, outcome.data
        return outcome.status, None

    def _read(self, port: int, operation: str, function_code: int,
              slave_address: int, start_address: int, count: int, limit: int):
        if not self._valid_range(start_address, count, limit) or \
                not self._check_target(operation, slave_address, start_address):
            logger.error(
                f"Invalid parameters for {operation}: start={start_address}, count={count}, "
                f"slave={slave_address}"
            )
            return Status.INVALID_PARAM, None
        request = build_read_request(slave_address, function_code, start_address, count)
        return self._transact(port, request)

    # Read operations

    def read_coils(self, port: int, slave_address: int, start_address: int,
                   count: int) -> Tuple[Status, Optional[bytes]]:
        """
        Read coils (function 0x01)

        Args:
            port: Logical port id
            slave_address: Slave address (1-247)
            start_address: First coil address (0-65535)
            count: Number of coils (1-2000)

        Returns:
            Tuple[Status, Optional[bytes]]: Status and ceil(count / 8) bytes of
            coil states packed LSB first (see protocol.unpack_bits)
        """
        return self._read(port, 'ReadCoils', FUNC_READ_COILS,
                          slave_address, start_address, count, MAX_READ_BITS)

    def read_discrete_inputs(self, port: int, slave_address: int, start_address: int,
                             count: int) -> Tuple[Status, Optional[bytes]]:
        """Read discrete inputs (function 0x02), same format as read_coils"""
        return self._read(port, 'ReadDiscreteInputs', FUNC_READ_DISCRETE_INPUTS,
                          slave_address, start_address, count, MAX_READ_BITS)

    def read_holding_registers(self, port: int, slave_address: int, start_address: int,
                               count: int) -> Tuple[Status, Optional[List[int]]]:
        """
        Read holding registers (function 0x03)

        Args:
            port: Logical port id
            slave_address: Slave address (1-247)
            start_address: First register address (0-65535)
            count: Number of registers (1-125)

        Returns:
            Tuple[Status, Optional[List[int]]]: Status and register values
        """
        return self._read(port, 'ReadHoldingRegisters', FUNC_READ_HOLDING_REGISTERS,
                          slave_address, start_address, count, MAX_READ_REGISTERS)

    def read_input_registers(self, port: int, slave_address: int, start_address: int,
                             count: int) -> Tuple[Status, Optional[List[int]]]:
        """Read input registers (function 0x04), same format as read_holding_registers"""
        return self._read(port, 'ReadInputRegisters', FUNC_READ_INPUT_REGISTERS,
                          slave_address, start_address, count, MAX_READ_REGISTERS)

    # Write operations

    def write_single_coil(self, port: int, slave_address: int, address: int, state: bool) -> Status:
        """Write one coil (function 0x05)"""
        if not self._check_target('WriteSingleCoil', slave_address, address):
            return Status.INVALID_PARAM
        request = build_write_single_coil_request(slave_address, address, bool(state))
        return self._transact(port, request)[0]

    def write_single_register(self, port: int, slave_address: int, address: int, value: int) -> Status:
        """Write one holding register (function 0x06), value 0-65535"""
        if not self._check_target('WriteSingleRegister', slave_address, address):
            return Status.INVALID_PARAM
        if not 0 <= value <= 0xFFFF:
            logger.error(f"Invalid register value for WriteSingleRegister: {value}")
            return Status.INVALID_PARAM
        request = build_write_single_register_request(slave_address, address, value)
        return self._transact(port, request)[0]

    def write_multiple_coils(self, port: int, slave_address: int, start_address: int,
                             values: Sequence[bool]) -> Status:
        """
        Write consecutive coils (function 0x0F)

        Args:
            port: Logical port id
            slave_address: Slave address (1-247)
            start_address: First coil address
            values: Coil states, 1-1968 of them, lowest address first

        Returns:
            Status: OK when the slave echoed the request
        """
        if values is None or not self._valid_range(start_address, len(values), MAX_WRITE_COILS) or \
                not self._check_target('WriteMultipleCoils', slave_address, start_address):
            logger.error(
                f"Invalid parameters for WriteMultipleCoils: start={start_address}, "
                f"count={len(values) if values is not None else None}, slave={slave_address}"
            )
            return Status.INVALID_PARAM
        request = build_write_multiple_coils_request(slave_address, start_address, values)
        return self._transact(port, request)[0]

    def write_multiple_registers(self, port: int, slave_address: int, start_address: int,
                                 values: Sequence[int]) -> Status:
        """
        Write consecutive holding registers (function 0x10)

        Args:
            port: Logical port id
            slave_address: Slave address (1-247)
            start_address: First register address
            values: Register values, 1-123 of them, each 0-65535

        Returns:
            Status: OK when the slave echoed the request
        """
        if values is None or not self._valid_range(start_address, len(values), MAX_WRITE_REGISTERS) or \
                not self._check_target('WriteMultipleRegisters', slave_address, start_address):
            logger.error(
                f"Invalid parameters for WriteMultipleRegisters: start={start_address}, "
                f"count={len(values) if values is not None else None}, slave={slave_address}"
            )
            return Status.INVALID_PARAM
        if any(not 0 <= value <= 0xFFFF for value in values):
            logger.error(f"Register value out of range for WriteMultipleRegisters: {list(values)}")
            return Status.INVALID_PARAM
        request = build_write_multiple_registers_request(slave_address, start_address, values)
        return self._transact(port, request)[0]


def create_master(port_configs: Optional[Mapping[int, PortConfig]] = None,
                  transport_factory: Optional[TransportFactory] = None) -> ModbusMaster:
    """
    Create a master and initialize every configured port

    Ports that fail to initialize are logged and left uninitialized.
    """
    master = ModbusMaster(port_configs, transport_factory)
    for port in master.port_configs:
        status = master.init(port)
        if status is not Status.OK:
            logger.warning(f"Port {port} not available: {status}")
    return master
