"""
Modbus RTU CRC16
Polynomial 0xA001 (reflected 0x8005), initial value 0xFFFF
"""

from modrtu.config import MIN_ADU_LENGTH, CRC_LENGTH


def calculate_crc(data: bytes) -> int:
    """
    Calculate Modbus RTU CRC16

    Args:
        data: Frame bytes without CRC (slave address + PDU)

    Returns:
        int: CRC16 value
    """
    crc = 0xFFFF
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 0x0001:
                crc >>= 1
                crc ^= 0xA001
            else:
                crc >>= 1
    return crc


def crc_bytes(data: bytes) -> bytes:
    """Return the CRC of data as it goes on the wire (low byte first)"""
    crc = calculate_crc(data)
    return bytes([crc & 0xFF, (crc >> 8) & 0xFF])


def validate_crc(frame: bytes) -> bool:
    """
    Check the trailing CRC of a complete RTU frame

    Args:
        frame: Received frame including the two CRC bytes

    Returns:
        bool: True if the CRC over all but the last two bytes matches them
    """
    if len(frame) < MIN_ADU_LENGTH:
        return False
    received = frame[-CRC_LENGTH] | (frame[-1] << 8)
    return calculate_crc(frame[:-CRC_LENGTH]) == received
