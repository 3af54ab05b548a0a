"""
modrtu configuration
Protocol constants and per-port serial settings
"""

import os
import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional

logger = logging.getLogger(__name__)

# Modbus function codes
FUNC_READ_COILS = 0x01
FUNC_READ_DISCRETE_INPUTS = 0x02
FUNC_READ_HOLDING_REGISTERS = 0x03
FUNC_READ_INPUT_REGISTERS = 0x04
FUNC_WRITE_SINGLE_COIL = 0x05
FUNC_WRITE_SINGLE_REGISTER = 0x06
FUNC_WRITE_MULTIPLE_COILS = 0x0F
FUNC_WRITE_MULTIPLE_REGISTERS = 0x10

EXCEPTION_FLAG = 0x80

# Exception codes
EXCEPTION_ILLEGAL_FUNCTION = 0x01
EXCEPTION_ILLEGAL_DATA_ADDRESS = 0x02
EXCEPTION_ILLEGAL_DATA_VALUE = 0x03
EXCEPTION_SLAVE_DEVICE_FAILURE = 0x04
EXCEPTION_ACKNOWLEDGE = 0x05
EXCEPTION_SLAVE_DEVICE_BUSY = 0x06
EXCEPTION_GATEWAY_PATH_UNAVAILABLE = 0x0A
EXCEPTION_GATEWAY_TARGET_NO_RESPONSE = 0x0B

# Frame limits
MAX_ADU_LENGTH = 256
MIN_ADU_LENGTH = 4
CRC_LENGTH = 2
WRITE_RESPONSE_LENGTH = 8
EXCEPTION_RESPONSE_LENGTH = 5

# Quantity limits per request
MAX_READ_BITS = 2000
MAX_READ_REGISTERS = 125
MAX_WRITE_COILS = 1968
MAX_WRITE_REGISTERS = 123

MIN_SLAVE_ADDRESS = 1
MAX_SLAVE_ADDRESS = 247
MAX_DATA_ADDRESS = 0xFFFF

COIL_ON = 0xFF00
COIL_OFF = 0x0000

# Seconds to wait for the UART to drain before releasing the RS-485 driver
TX_DONE_TIMEOUT = 0.1
# Seconds per transport read while accumulating a response
READ_POLL_INTERVAL = 0.01

SUPPORTED_BAUDRATES = (1200, 2400, 4800, 9600, 19200, 38400, 57600, 115200)
SUPPORTED_DATA_BITS = (7, 8)
SUPPORTED_STOP_BITS = (1, 2)
SUPPORTED_PARITIES = ('none', 'even', 'odd')

# Logical port identifiers
PORT_0 = 0
PORT_1 = 1
PORT_2 = 2

ENV_PREFIX = 'MODRTU_PORT'


@dataclass(frozen=True)
class PortConfig:
    """
    Serial settings for one logical Modbus port

    Args:
        port_id: Logical port number
        device: Serial device path or pyserial URL
        tx_pin: Transmit pin identifier (informational for host serial ports)
        rx_pin: Receive pin identifier
        rts_pin: RS-485 DE/RE pin, None when the port has no direction control
        baudrate: Line speed
        data_bits: 7 or 8
        stop_bits: 1 or 2
        parity: 'none', 'even' or 'odd'
        response_timeout_ms: Time allowed for a slave to answer one attempt
        max_retries: Additional attempts after the first one
        rx_buffer_size: Receive buffer size in bytes
        tx_buffer_size: Transmit buffer size in bytes
        retry_delay_ms: Pause after a failed attempt before the next one
    """
    port_id: int
    device: Optional[str] = None
    tx_pin: int = -1
    rx_pin: int = -1
    rts_pin: Optional[int] = None
    baudrate: int = 9600
    data_bits: int = 8
    stop_bits: int = 1
    parity: str = 'none'
    response_timeout_ms: int = 1000
    max_retries: int = 2
    rx_buffer_size: int = 256
    tx_buffer_size: int = 256
    retry_delay_ms: int = 50

    def __post_init__(self):
        if self.baudrate not in SUPPORTED_BAUDRATES:
            raise ValueError(f"Unsupported baud rate: {self.baudrate}")
        if self.data_bits not in SUPPORTED_DATA_BITS:
            raise ValueError(f"Unsupported data bits: {self.data_bits}")
        if self.stop_bits not in SUPPORTED_STOP_BITS:
            raise ValueError(f"Unsupported stop bits: {self.stop_bits}")
        if self.parity not in SUPPORTED_PARITIES:
            raise ValueError(f"Unsupported parity: {self.parity}")
        if self.response_timeout_ms <= 0:
            raise ValueError(f"Response timeout must be positive: {self.response_timeout_ms}")
        if self.max_retries < 0:
            raise ValueError(f"Retry count cannot be negative: {self.max_retries}")
        if self.retry_delay_ms < 0:
            raise ValueError(f"Retry delay cannot be negative: {self.retry_delay_ms}")
        if self.rx_buffer_size < MAX_ADU_LENGTH:
            raise ValueError(f"RX buffer must hold a full frame ({MAX_ADU_LENGTH} bytes)")

    @property
    def has_direction_control(self) -> bool:
        return self.rts_pin is not None

    @property
    def response_timeout(self) -> float:
        """Response timeout in seconds"""
        return self.response_timeout_ms / 1000.0

    @property
    def retry_delay(self) -> float:
        return self.retry_delay_ms / 1000.0


# Defaults for the three UARTs of the controller board
DEFAULT_PORT_CONFIGS: Dict[int, PortConfig] = {
    PORT_0: PortConfig(
        port_id=PORT_0,
        device='/dev/ttyS0',
        tx_pin=17,
        rx_pin=16,
        rts_pin=None,
        baudrate=115200,
        parity='none',
        response_timeout_ms=500,
        max_retries=3,
        rx_buffer_size=256,
        tx_buffer_size=128,
    ),
    PORT_1: PortConfig(
        port_id=PORT_1,
        device='/dev/ttyUSB0',
        tx_pin=4,
        rx_pin=5,
        rts_pin=2,
        baudrate=9600,
        parity='even',
        response_timeout_ms=1000,
        max_retries=2,
        rx_buffer_size=512,
        tx_buffer_size=256,
    ),
    PORT_2: PortConfig(
        port_id=PORT_2,
        device='/dev/ttyUSB1',
        tx_pin=18,
        rx_pin=19,
        rts_pin=21,
        baudrate=19200,
        parity='none',
        response_timeout_ms=750,
        max_retries=1,
        rx_buffer_size=256,
        tx_buffer_size=128,
    ),
}


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if value is None or value == '':
        return None
    return int(value)


def load_port_configs(defaults: Optional[Dict[int, PortConfig]] = None) -> Dict[int, PortConfig]:
    """
    Build the port table from defaults overlaid with environment variables.

    Recognized variables, with <n> the logical port number:
    MODRTU_PORT<n>_DEVICE, _BAUDRATE, _DATA_BITS, _STOP_BITS, _PARITY,
    _TIMEOUT_MS, _RETRIES, _RTS_PIN (empty or -1 disables), _RETRY_DELAY_MS

    Returns:
        Dict[int, PortConfig]: Port configurations keyed by logical port id

    Raises:
        ValueError: If an environment value is not valid for its field
    """
    if defaults is None:
        defaults = DEFAULT_PORT_CONFIGS

    configs = {}
    for port_id, config in defaults.items():
        prefix = f"{ENV_PREFIX}{port_id}_"
        overrides = {}

        device = os.environ.get(prefix + 'DEVICE')
        if device:
            overrides['device'] = device

        for field, suffix in (('baudrate', 'BAUDRATE'),
                              ('data_bits', 'DATA_BITS'),
                              ('stop_bits', 'STOP_BITS'),
                              ('response_timeout_ms', 'TIMEOUT_MS'),
                              ('max_retries', 'RETRIES'),
                              ('retry_delay_ms', 'RETRY_DELAY_MS')):
            value = _env_int(prefix + suffix)
            if value is not None:
                overrides[field] = value

        parity = os.environ.get(prefix + 'PARITY')
        if parity:
            overrides['parity'] = parity.lower()

        if prefix + 'RTS_PIN' in os.environ:
            rts_pin = _env_int(prefix + 'RTS_PIN')
            overrides['rts_pin'] = None if rts_pin is None or rts_pin < 0 else rts_pin

        if overrides:
            logger.debug(f"Port {port_id} overrides from environment: {overrides}")
            config = replace(config, **overrides)
        configs[port_id] = config

    return configs
