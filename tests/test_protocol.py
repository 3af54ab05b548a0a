"""
Tests for modrtu.rtu CRC and frame encoding/decoding
"""

import struct
import unittest

from modrtu.rtu.crc import calculate_crc, crc_bytes, validate_crc
from modrtu.rtu.protocol import (
    ModbusRequest, build_request, decode_response, pack_bits, unpack_bits,
    build_read_request, build_write_single_coil_request, build_write_single_register_request,
    build_write_multiple_coils_request, build_write_multiple_registers_request
)
from modrtu.rtu.status import Status, Success, RetryableError, TerminalError

from fake_transport import rtu_frame


class TestCrc(unittest.TestCase):
    """Test cases for CRC16"""

    def test_reference_vector(self):
        """Test CRC of a read holding registers request"""
        data = bytes([0x01, 0x03, 0x00, 0x00, 0x00, 0x01])
        self.assertEqual(calculate_crc(data), 0x0A84)
        self.assertEqual(crc_bytes(data), b'\x84\x0A')

    def test_second_vector(self):
        """Test CRC of a ten register read request"""
        data = bytes.fromhex('01030000000a')
        self.assertEqual(crc_bytes(data), b'\xC5\xCD')

    def test_empty_input(self):
        """Test CRC of no data is the initial value"""
        self.assertEqual(calculate_crc(b''), 0xFFFF)

    def test_validate_crc(self):
        """Test CRC validation of a complete frame"""
        frame = bytes.fromhex('010300000001840a')
        self.assertTrue(validate_crc(frame))
        self.assertFalse(validate_crc(frame[:-1] + b'\x0B'))

    def test_validate_crc_short_frame(self):
        """Test frames shorter than four bytes never validate"""
        self.assertFalse(validate_crc(b'\x01\x81\x02'))


class TestRequestEncoding(unittest.TestCase):
    """Test cases for request frames"""

    def test_read_holding_registers_frame(self):
        """Test complete read holding registers frame"""
        frame = build_request(build_read_request(1, 0x03, 0, 1))
        self.assertEqual(frame, bytes.fromhex('010300000001840a'))

    def test_read_quantity_big_endian(self):
        """Test address and quantity are encoded big-endian"""
        frame = build_request(build_read_request(0x11, 0x03, 0x006B, 10))
        self.assertEqual(frame[:6], bytes([0x11, 0x03, 0x00, 0x6B, 0x00, 0x0A]))
        self.assertEqual(len(frame), 8)
        self.assertTrue(validate_crc(frame))

    def test_read_quantity_full_range(self):
        """Test quantity bytes for every register count a read allows"""
        for count in range(1, 126):
            with self.subTest(count=count):
                frame = build_request(build_read_request(1, 0x03, 0, count))
                self.assertEqual(frame[4:6], struct.pack('>H', count))

    def test_write_single_coil_on_off(self):
        """Test single coil values 0xFF00 and 0x0000"""
        on = build_request(build_write_single_coil_request(1, 10, True))
        off = build_request(build_write_single_coil_request(1, 10, False))
        self.assertEqual(on[:6], bytes([0x01, 0x05, 0x00, 0x0A, 0xFF, 0x00]))
        self.assertEqual(off[:6], bytes([0x01, 0x05, 0x00, 0x0A, 0x00, 0x00]))

    def test_write_single_register(self):
        """Test single register value is written literally"""
        frame = build_request(build_write_single_register_request(1, 1, 0x0003))
        self.assertEqual(frame[:6], bytes([0x01, 0x06, 0x00, 0x01, 0x00, 0x03]))

    def test_write_multiple_coils_packing(self):
        """Test coils are packed LSB first from the lowest address"""
        values = [True, False, True, True, False, False, True, True, True, False]
        frame = build_request(build_write_multiple_coils_request(0x11, 0x13, values))
        self.assertEqual(
            frame[:-2],
            bytes([0x11, 0x0F, 0x00, 0x13, 0x00, 0x0A, 0x02, 0xCD, 0x01])
        )

    def test_write_multiple_registers_payload(self):
        """Test byte count and big-endian register values"""
        frame = build_request(build_write_multiple_registers_request(0x11, 0x0001, [0x000A, 0x0102]))
        self.assertEqual(
            frame[:-2],
            bytes([0x11, 0x10, 0x00, 0x01, 0x00, 0x02, 0x04, 0x00, 0x0A, 0x01, 0x02])
        )

    def test_expected_byte_count(self):
        """Test data bytes expected in read responses"""
        for count, expected in ((1, 1), (7, 1), (8, 1), (9, 2), (2000, 250)):
            with self.subTest(count=count):
                self.assertEqual(build_read_request(1, 0x01, 0, count).expected_byte_count, expected)
        self.assertEqual(build_read_request(1, 0x02, 0, 2000).expected_byte_count, 250)
        self.assertEqual(build_read_request(1, 0x04, 0, 125).expected_byte_count, 250)
        self.assertEqual(build_write_single_register_request(1, 0, 5).expected_byte_count, 0)

    def test_bit_packing(self):
        """Test pack_bits and unpack_bits"""
        self.assertEqual(pack_bits([True] + [False] * 7 + [True]), b'\x01\x01')
        self.assertEqual(unpack_bits(b'\x55', 8),
                         [True, False, True, False, True, False, True, False])
        self.assertEqual(unpack_bits(b'\xCD\x01', 10),
                         [True, False, True, True, False, False, True, True, True, False])


class TestResponseDecoding(unittest.TestCase):
    """Test cases for decode_response"""

    def setUp(self):
        """Set up test fixtures"""
        self.read_regs = build_read_request(1, 0x03, 0, 2)
        self.read_coils = build_read_request(1, 0x01, 0, 10)

    def test_register_read(self):
        """Test register read returns the values"""
        outcome = decode_response(rtu_frame(1, 0x03, 4, 0x12, 0x34, 0x56, 0x78), self.read_regs)
        self.assertEqual(outcome, Success([0x1234, 0x5678]))

    def test_coil_read_returns_packed_bytes(self):
        """Test coil read returns the packed data bytes"""
        outcome = decode_response(rtu_frame(1, 0x01, 2, 0xCD, 0x01), self.read_coils)
        self.assertEqual(outcome, Success(b'\xCD\x01'))

    def test_exception_is_terminal(self):
        """Test exception response maps to a terminal status"""
        outcome = decode_response(rtu_frame(1, 0x83, 0x02), self.read_regs)
        self.assertEqual(outcome, TerminalError(Status.ILLEGAL_DATA_ADDRESS))

    def test_unknown_exception_code(self):
        """Test unknown exception code maps to ERROR"""
        outcome = decode_response(rtu_frame(1, 0x83, 0x07), self.read_regs)
        self.assertEqual(outcome, TerminalError(Status.ERROR))

    def test_exception_with_trailing_bytes(self):
        """Test exception code is taken from byte 2 of a longer frame"""
        outcome = decode_response(rtu_frame(1, 0x83, 0x02, 0x00), self.read_regs)
        self.assertEqual(outcome, TerminalError(Status.ILLEGAL_DATA_ADDRESS))

    def test_truncated_exception(self):
        """Test exception frame without exception code is retryable"""
        outcome = decode_response(rtu_frame(1, 0x83), self.read_regs)
        self.assertEqual(outcome, RetryableError(Status.UNEXPECTED_RESPONSE))

    def test_wrong_slave_address(self):
        """Test response from another slave"""
        outcome = decode_response(rtu_frame(2, 0x03, 4, 0, 1, 0, 2), self.read_regs)
        self.assertEqual(outcome, RetryableError(Status.UNEXPECTED_RESPONSE))

    def test_wrong_slave_address_exception(self):
        """Test address is checked before the exception flag"""
        outcome = decode_response(rtu_frame(2, 0x83, 0x02), self.read_regs)
        self.assertEqual(outcome, RetryableError(Status.UNEXPECTED_RESPONSE))

    def test_wrong_function_code(self):
        """Test response with another function code"""
        outcome = decode_response(rtu_frame(1, 0x04, 4, 0, 1, 0, 2), self.read_regs)
        self.assertEqual(outcome, RetryableError(Status.UNEXPECTED_RESPONSE))

    def test_byte_count_mismatch(self):
        """Test byte count that does not match the quantity"""
        outcome = decode_response(rtu_frame(1, 0x03, 2, 0, 1), self.read_regs)
        self.assertEqual(outcome, RetryableError(Status.UNEXPECTED_RESPONSE))

    def test_frame_shorter_than_byte_count(self):
        """Test frame length that does not match the byte count"""
        outcome = decode_response(rtu_frame(1, 0x03, 4, 0, 1), self.read_regs)
        self.assertEqual(outcome, RetryableError(Status.UNEXPECTED_RESPONSE))

    def test_coil_byte_count_must_match_quantity(self):
        """Test coil byte count must equal ceil(quantity / 8)"""
        outcome = decode_response(rtu_frame(1, 0x01, 1, 0xFF), self.read_coils)
        self.assertEqual(outcome, RetryableError(Status.UNEXPECTED_RESPONSE))

    def test_write_echo(self):
        """Test write echo is accepted"""
        request = build_write_single_register_request(1, 1, 3)
        self.assertEqual(decode_response(build_request(request), request), Success())

    def test_write_echo_wrong_length(self):
        """Test write response that is not eight bytes"""
        request = build_write_multiple_registers_request(1, 0, [1, 2])
        outcome = decode_response(rtu_frame(1, 0x10, 0, 0, 0), request)
        self.assertEqual(outcome, RetryableError(Status.UNEXPECTED_RESPONSE))

    def test_request_str(self):
        """Test request description names the function"""
        request = ModbusRequest(1, 0x03, 0, 2)
        self.assertIn('Read Holding Registers', str(request))


if __name__ == '__main__':
    unittest.main()
