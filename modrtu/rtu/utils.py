"""
Modbus RTU Utility Functions
Helper functions for serial port discovery and bus scanning
"""

import glob
import logging
from typing import Dict, Iterable, List

import serial.tools.list_ports

from .master import ModbusMaster
from .status import Status

logger = logging.getLogger(__name__)


def find_serial_ports() -> List[str]:
    """
    Find available serial ports on the system

    Returns:
        List[str]: List of available serial port paths
    """
    available_ports = [port.device for port in serial.tools.list_ports.comports()]

    # Fallback to checking common device paths
    if not available_ports:
        for pattern in ('/dev/ttyUSB*', '/dev/ttyACM*'):
            available_ports.extend(sorted(glob.glob(pattern)))

    logger.info(f"Found {len(available_ports)} serial ports: {available_ports}")
    return available_ports


def scan_for_slaves(master: ModbusMaster,
                    port: int,
                    slave_ids: Iterable[int] = range(1, 248),
                    register: int = 0) -> Dict[int, Status]:
    """
    Probe slave addresses on an initialized port

    A slave counts as present when it answers a one-register read, either
    with data or with a Modbus exception.

    Args:
        master: Master owning the port
        port: Logical port id
        slave_ids: Addresses to probe
        register: Holding register used for the probe read

    Returns:
        Dict[int, Status]: Status of the probe read for every slave that answered
    """
    found = {}
    for slave_id in slave_ids:
        status, _ = master.read_holding_registers(port, slave_id, register, 1)
        if status is Status.OK or status.is_exception:
            logger.info(f"Slave {slave_id} answered on port {port}: {status}")
            found[slave_id] = status
        elif status in (Status.NOT_INITIALIZED, Status.INVALID_PARAM):
            logger.error(f"Scan aborted on port {port}: {status}")
            break
    return found
